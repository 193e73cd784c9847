"""WebDAV resource for an entry in the trash."""

import logging
from io import BytesIO
from typing import IO, BinaryIO, Final, final, override

from django.db import transaction
from wsgidav.dav_error import HTTP_FORBIDDEN, DAVError
from wsgidav.dav_provider import DAVNonCollection

from server.apps.drive.logic.file_operations import (
    delete_permanent,
    get_entry_path,
    move_entry,
    open_content,
    restore,
)
from server.apps.drive.logic.trash_operations import ORPHAN_POLICY_ROOT
from server.apps.drive.models import Entry
from server.apps.webdav.path_mapper import PathMapper
from server.apps.webdav.resources.base import dav_errors, get_user_from_environ

# Custom property exposing where the entry was trashed from
ORIGINAL_PATH_PROPERTY: Final = '{DAV:}original-path'

_DIRECTORY_CONTENT_TYPE: Final = 'httpd/unix-directory'

logger = logging.getLogger(__name__)


@final
class TrashEntryResource(DAVNonCollection):
    """A file or folder in the trash.

    Trashed folders are shown as plain members; their content comes
    back with them on restore.

    Supports:
    - GET: Download file content
    - DELETE: Permanently delete the entry and its subtree
    - MOVE out of trash: Restore the entry to the destination

    Does NOT support:
    - PUT/POST: Cannot modify trashed entries
    - COPY: Cannot copy from trash (must restore first)
    """

    def __init__(
        self,
        path: str,
        environ: dict,
        entry: Entry,
        path_mapper: PathMapper,
    ) -> None:
        """Initialize trash entry resource.

        Args:
            path: WebDAV path (/.Trash/member-name).
            environ: WSGI environ dictionary.
            entry: Trashed entry.
            path_mapper: PathMapper for path translation.
        """
        super().__init__(path, environ)
        self._entry = entry
        self._user = get_user_from_environ(environ)
        self._path_mapper = path_mapper

    @override
    def get_display_name(self) -> str:
        """Get the entry's own name, not the unique member name."""
        return self._entry.name

    @override
    def get_content_length(self) -> int:
        """Get file size in bytes (0 for folders)."""
        return self._entry.size_bytes

    @override
    def get_content_type(self) -> str:
        """Get MIME type (a directory marker type for folders)."""
        if self._entry.is_directory:
            return _DIRECTORY_CONTENT_TYPE
        return self._entry.mime_type or 'application/octet-stream'

    @override
    def get_creation_date(self) -> float:
        """Get entry creation timestamp."""
        return self._entry.created_at.timestamp()

    @override
    def get_last_modified(self) -> float:
        """Get the time the entry was trashed.

        Returns:
            Unix timestamp of trashing.
        """
        if self._entry.trashed_at:
            return self._entry.trashed_at.timestamp()
        return self._entry.updated_at.timestamp()

    @override
    def get_etag(self) -> str | None:
        """Get entity tag (checksum for files)."""
        return self._entry.checksum_sha256 or None

    @override
    def support_etag(self) -> bool:
        """Check if ETag is supported."""
        return bool(self._entry.checksum_sha256)

    @override
    def get_content(self) -> IO[bytes]:
        """Get trashed file content.

        Returns:
            File-like object with content (empty for folders).
        """
        if self._entry.is_directory:
            return BytesIO(b'')
        with dav_errors():
            return open_content(self._user, self._entry.pk)

    @override
    def get_property_value(self, name: str) -> str | None:
        """Get DAV property value.

        Exposes the path the entry was trashed from as a custom property.

        Args:
            name: Property name (e.g., '{DAV:}original-path').

        Returns:
            Property value or None.
        """
        if name == ORIGINAL_PATH_PROPERTY:
            with dav_errors():
                return get_entry_path(self._user, self._entry.pk)
        return super().get_property_value(name)

    @override
    def delete(self) -> None:
        """Permanently delete the entry (and its subtree)."""
        logger.info(
            'Permanently deleting from trash: %s (ID: %s)',
            self._entry.name,
            self._entry.pk,
        )
        with dav_errors():
            delete_permanent(self._user, self._entry.pk)

    @override
    def support_recursive_move(self, dest_path: str) -> bool:
        """Restoring is a single metadata change."""
        return True

    @override
    def move_recursive(self, dest_path: str) -> None:
        """Restore the entry, then move it to the destination.

        Args:
            dest_path: Destination WebDAV path.

        Raises:
            DAVError: HTTP 403 for moves within the trash.
        """
        if self._path_mapper.is_trash_path(dest_path):
            raise DAVError(HTTP_FORBIDDEN, 'Cannot move within trash')

        dest_parent = self._path_mapper.get_parent_path(dest_path)
        dest_name = self._path_mapper.get_name(dest_path)
        logger.info(
            'Restoring from trash: %s -> %s',
            self._entry.name,
            dest_path,
        )

        with dav_errors(), transaction.atomic():
            restore(self._user, self._entry.pk, ORPHAN_POLICY_ROOT)
            move_entry(self._user, self._entry.pk, dest_parent, dest_name)

    @override
    def copy_move_single(self, dest_path: str, *, is_move: bool) -> None:
        """Handle MOVE (restore) or reject COPY.

        Args:
            dest_path: Destination WebDAV path.
            is_move: True for move, False for copy.

        Raises:
            DAVError: HTTP 403 for copy.
        """
        if not is_move:
            raise DAVError(HTTP_FORBIDDEN, 'Cannot copy from trash')
        self.move_recursive(dest_path)

    @override
    def begin_write(self, content_type: str | None = None) -> BinaryIO:
        """Disallow modifications to trashed entries.

        Args:
            content_type: MIME type (ignored).

        Raises:
            DAVError: HTTP 403 always.
        """
        raise DAVError(HTTP_FORBIDDEN, 'Cannot modify entries in trash')

    @override
    def support_ranges(self) -> bool:
        """Check if byte ranges are supported."""
        return not self._entry.is_directory

    def get_entry(self) -> Entry:
        """Get underlying Entry instance."""
        return self._entry
