"""WsgiDAV domain controller backed by Django authentication.

Clients log in with HTTP Basic credentials of a Django account; the
account becomes the acting user of every drive operation in the request.
"""

import logging
from typing import TYPE_CHECKING, Final, final, override

from django.conf import settings
from django.contrib.auth import authenticate
from django.core.handlers.wsgi import WSGIRequest
from wsgidav.dc.base_dc import BaseDomainController

if TYPE_CHECKING:
    from django.contrib.auth.models import User

logger = logging.getLogger(__name__)

# Key to store authenticated user in WSGI environ
ENVIRON_USER_KEY: Final = 'webdav.user'


@final
class DjangoDomainController(BaseDomainController):
    """Authenticates WebDAV requests against Django accounts.

    There are no anonymous shares: every path of every request needs
    credentials, and only Basic auth is offered.
    """

    @override
    def __init__(self, wsgidav_app: object, config: dict) -> None:
        """Initialize the domain controller.

        Args:
            wsgidav_app: WsgiDAV application instance.
            config: WsgiDAV configuration dictionary.
        """
        super().__init__(wsgidav_app, config)
        self._realm = settings.WEBDAV_REALM

    def get_domain_realm(self, path_info: str, environ: dict) -> str:
        """Realm announced in the WWW-Authenticate header."""
        return self._realm

    def require_authentication(self, realm_name: str, environ: dict) -> bool:
        """Every drive path is private."""
        return True

    def basic_auth_user(
        self,
        realm_name: str,
        user_name: str,
        password: str,
        environ: dict,
    ) -> bool:
        """Check Basic credentials and remember the account.

        On success the Django user is stored in the environ under
        ENVIRON_USER_KEY for the DAV provider.

        Args:
            realm_name: Realm name.
            user_name: Username from Basic Auth.
            password: Password from Basic Auth.
            environ: WSGI environ dictionary.

        Returns:
            True if the credentials belong to an active account.
        """
        user = self._authenticate(environ, user_name, password)
        if user is None:
            return False

        environ[ENVIRON_USER_KEY] = user
        logger.info('WebDAV login: %s', user_name)
        return True

    def supports_http_digest_auth(self) -> bool:
        """Passwords are hashed, so digest auth cannot be offered."""
        return False

    def _authenticate(
        self,
        environ: dict,
        user_name: str,
        password: str,
    ) -> 'User | None':
        # Authentication backends receive a real request object
        user: User | None = authenticate(
            request=WSGIRequest(environ),
            username=user_name,
            password=password,
        )

        if user is None:
            logger.warning('WebDAV login failed: %s', user_name)
            return None
        if not user.is_active:
            logger.warning('WebDAV login by inactive user: %s', user_name)
            return None
        return user
