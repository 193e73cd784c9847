"""WSGI application factory for the WebDAV server."""

import logging
from typing import Any

from wsgidav import wsgidav_app

from server.apps.webdav.dav_provider import DjangoDAVProvider
from server.apps.webdav.domain_controller import DjangoDomainController

logger = logging.getLogger(__name__)


def build_config(verbose: int = 3) -> dict[str, Any]:
    """Build the WsgiDAV configuration for the drive.

    The whole drive is mounted at '/'; authentication goes through
    DjangoDomainController with HTTP Basic only.

    Args:
        verbose: Logging verbosity level (0-5).

    Returns:
        WsgiDAV configuration dictionary.
    """
    return {
        'provider_mapping': {
            '/': DjangoDAVProvider(),
        },
        'http_authenticator': {
            'domain_controller': DjangoDomainController,
            'accept_basic': True,
            'accept_digest': False,
            'default_to_digest': False,
        },
        'verbose': verbose,
        'logging': {
            'enable': True,
            'enable_loggers': ['wsgidav'],
        },
        'dir_browser': {
            'enable': False,
        },
        # DAV class 2 locking, macOS Finder mounts read-only without it
        'lock_storage': True,
        'property_manager': True,
    }


def create_webdav_app(verbose: int = 3) -> wsgidav_app.WsgiDAVApp:
    """Create configured WsgiDAV WSGI application.

    Args:
        verbose: Logging verbosity level (0-5).

    Returns:
        WsgiDAV WSGI application serving the drive.
    """
    logger.info('Creating WsgiDAV application for the drive')
    return wsgidav_app.WsgiDAVApp(build_config(verbose))
