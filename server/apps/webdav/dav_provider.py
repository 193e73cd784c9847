"""Main WsgiDAV provider for Django integration.

This module provides the DAVProvider that bridges WsgiDAV with the
drive entry tree and its trash.
"""

import logging
from typing import final, override

from wsgidav.dav_provider import DAVCollection, DAVNonCollection, DAVProvider

from server.apps.drive.exceptions import EntryNotFoundError, InvalidParentError
from server.apps.drive.logic.file_operations import get_entry_at, list_trash
from server.apps.webdav.path_mapper import PathMapper
from server.apps.webdav.resources.base import get_user_from_environ
from server.apps.webdav.resources.collection import FolderCollection
from server.apps.webdav.resources.file_resource import FileResource
from server.apps.webdav.resources.trash_collection import TrashCollection
from server.apps.webdav.resources.trash_entry_resource import (
    TrashEntryResource,
)

logger = logging.getLogger(__name__)


@final
class DjangoDAVProvider(DAVProvider):
    """WsgiDAV provider for Django integration.

    Maps WebDAV paths to drive entries. Each authenticated user sees
    only their own drive, with the trash mounted at /.Trash.
    """

    @override
    def get_resource_inst(
        self,
        path: str,
        environ: dict,
    ) -> DAVCollection | DAVNonCollection | None:
        """Get resource instance for a given path.

        Args:
            path: WebDAV path requested.
            environ: WSGI environ dictionary.

        Returns:
            DAV resource instance, or None if not found.
        """
        user = get_user_from_environ(environ)
        path_mapper = PathMapper()

        if not path_mapper.validate_path(path):
            logger.warning(
                'Invalid path rejected: %s (user: %s)',
                path,
                user.username,
            )
            return None

        logger.debug(
            'Getting resource for path: %s (user: %s)',
            path,
            user.username,
        )

        if path_mapper.is_root(path):
            return FolderCollection(path, environ, user, None, path_mapper)

        if path_mapper.is_trash_root(path):
            return TrashCollection(path, environ, user, path_mapper)

        if path_mapper.is_trash_path(path):
            return self._get_trash_member(path, environ, path_mapper)

        try:
            entry = get_entry_at(user, path_mapper.to_drive_path(path))
        except (EntryNotFoundError, InvalidParentError):
            logger.debug('Resource not found: %s', path)
            return None

        if entry is None:
            return FolderCollection(path, environ, user, None, path_mapper)
        if entry.is_directory:
            return FolderCollection(path, environ, user, entry, path_mapper)
        return FileResource(path, environ, entry, path_mapper)

    @override
    def is_readonly(self) -> bool:
        """Check if the provider is read-only.

        Returns:
            False - we support write operations.
        """
        return False

    def _get_trash_member(
        self,
        path: str,
        environ: dict,
        path_mapper: PathMapper,
    ) -> TrashEntryResource | None:
        user = get_user_from_environ(environ)
        name = path_mapper.get_trash_item_name(path)
        for entry in list_trash(user):
            if path_mapper.trash_member_name(entry) == name:
                return TrashEntryResource(path, environ, entry, path_mapper)

        logger.debug('Trash member not found: %s', path)
        return None
