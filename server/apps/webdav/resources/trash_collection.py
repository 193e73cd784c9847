"""WebDAV trash collection (/.Trash/) implementation."""

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, final, override

from wsgidav.dav_error import HTTP_FORBIDDEN, HTTP_NOT_FOUND, DAVError
from wsgidav.dav_provider import DAVCollection

from server.apps.drive.logic.file_operations import empty_trash, list_trash
from server.apps.webdav.path_mapper import TRASH_FOLDER_NAME, PathMapper
from server.apps.webdav.resources.base import dav_errors
from server.apps.webdav.resources.trash_entry_resource import (
    TrashEntryResource,
)

if TYPE_CHECKING:
    from django.contrib.auth.models import User
    from wsgidav.dav_provider import DAVNonCollection

logger = logging.getLogger(__name__)


@final
class TrashCollection(DAVCollection):
    """Virtual /.Trash/ folder showing trashed entries.

    Provides WebDAV access to the trash:
    - PROPFIND: Lists entries trashed on their own, newest first
    - DELETE on collection: Empties entire trash
    - GET/DELETE on members: Download or permanently delete
    - MOVE from trash: Restore
    """

    def __init__(
        self,
        path: str,
        environ: dict,
        user: 'User',
        path_mapper: PathMapper,
    ) -> None:
        """Initialize trash collection.

        Args:
            path: WebDAV path (/.Trash/).
            environ: WSGI environ dictionary.
            user: Authenticated Django user.
            path_mapper: PathMapper for path translation.
        """
        super().__init__(path, environ)
        self._user = user
        self._path_mapper = path_mapper

    @override
    def get_display_name(self) -> str:
        """Get display name for trash folder."""
        return TRASH_FOLDER_NAME

    @override
    def get_creation_date(self) -> float:
        """Get folder creation timestamp (epoch for virtual folder)."""
        return 0.0

    @override
    def get_last_modified(self) -> float:
        """Get folder modification timestamp.

        Returns most recent trashing time, or now if trash is empty.

        Returns:
            Unix timestamp.
        """
        trashed = list_trash(self._user)
        if trashed and trashed[0].trashed_at:
            return trashed[0].trashed_at.timestamp()
        return datetime.now(tz=UTC).timestamp()

    @override
    def get_member_names(self) -> list[str]:
        """Get unique member names of all trashed entries.

        Returns:
            List of member names, newest first.
        """
        return [
            self._path_mapper.trash_member_name(entry)
            for entry in list_trash(self._user)
        ]

    @override
    def get_member(self, name: str) -> 'DAVNonCollection':
        """Get trashed entry by member name.

        Args:
            name: Member name to find.

        Returns:
            TrashEntryResource for the entry.

        Raises:
            DAVError: HTTP 404 if entry not found.
        """
        for entry in list_trash(self._user):
            if self._path_mapper.trash_member_name(entry) == name:
                return TrashEntryResource(
                    self._path_mapper.trash_member_path(entry),
                    self.environ,
                    entry,
                    self._path_mapper,
                )

        raise DAVError(HTTP_NOT_FOUND, f'Entry not found in trash: {name}')

    @override
    def create_empty_resource(self, name: str) -> 'DAVNonCollection':
        """Disallow creating files in trash.

        Args:
            name: Attempted filename.

        Raises:
            DAVError: HTTP 403 always.
        """
        raise DAVError(HTTP_FORBIDDEN, 'Cannot create files in trash')

    @override
    def create_collection(self, name: str) -> 'DAVCollection':
        """Disallow creating folders in trash.

        Args:
            name: Attempted folder name.

        Raises:
            DAVError: HTTP 403 always.
        """
        raise DAVError(HTTP_FORBIDDEN, 'Cannot create folders in trash')

    @override
    def delete(self) -> None:
        """Empty entire trash (DELETE on /.Trash/)."""
        logger.info('Emptying trash for user: %s', self._user.username)
        with dav_errors():
            report = empty_trash(self._user)
        logger.info('Emptied %d entries from trash', report.entries)

    @override
    def support_recursive_delete(self) -> bool:
        """Emptying the trash removes everything in one step."""
        return True

    @override
    def support_recursive_move(self, dest_path: str) -> bool:
        """The trash folder itself cannot be moved."""
        return False

    @override
    def get_etag(self) -> str | None:
        """Folders don't have stable ETags."""
        return None
