"""WebDAV file resource (DAVNonCollection) implementation."""

import logging
from io import BytesIO
from typing import IO, TYPE_CHECKING, BinaryIO, final, override

from django.core.files.base import ContentFile
from wsgidav.dav_provider import DAVNonCollection

from server.apps.drive.logic.file_operations import (
    copy_file,
    move_entry,
    move_to_trash,
    open_content,
    replace_content,
    upload_file,
)
from server.apps.drive.models import Entry
from server.apps.webdav.path_mapper import PathMapper
from server.apps.webdav.resources.base import dav_errors, get_user_from_environ

if TYPE_CHECKING:
    from django.contrib.auth.models import User

logger = logging.getLogger(__name__)


@final
class FileResource(DAVNonCollection):
    """WebDAV resource representing an active file.

    Maps WebDAV operations to the drive file_operations module, acting
    as the authenticated user.
    """

    def __init__(
        self,
        path: str,
        environ: dict,
        entry: Entry,
        path_mapper: PathMapper,
    ) -> None:
        """Initialize file resource.

        Args:
            path: WebDAV path to the file.
            environ: WSGI environ dictionary.
            entry: File entry.
            path_mapper: PathMapper for path translation.
        """
        super().__init__(path, environ)
        self._entry = entry
        self._user = get_user_from_environ(environ)
        self._path_mapper = path_mapper

    @override
    def get_display_name(self) -> str:
        """Get the file name."""
        return self._entry.name

    @override
    def get_content_length(self) -> int:
        """Get file size in bytes."""
        return self._entry.size_bytes

    @override
    def get_content_type(self) -> str:
        """Get file MIME type."""
        return self._entry.mime_type or 'application/octet-stream'

    @override
    def get_creation_date(self) -> float:
        """Get file creation timestamp.

        Returns:
            Unix timestamp of upload time.
        """
        return self._entry.created_at.timestamp()

    @override
    def get_last_modified(self) -> float:
        """Get file modification timestamp.

        Returns:
            Unix timestamp of last modification.
        """
        return self._entry.updated_at.timestamp()

    @override
    def get_etag(self) -> str:
        """Get entity tag for the file.

        Uses SHA256 checksum as ETag for content-based caching.

        Returns:
            ETag string (checksum without quotes - WsgiDAV adds them).
        """
        return self._entry.checksum_sha256

    @override
    def support_etag(self) -> bool:
        """Check if ETag is supported."""
        return bool(self._entry.checksum_sha256)

    @override
    def get_content(self) -> IO[bytes]:
        """Get file content as file-like object.

        Streams content from the storage backend.

        Returns:
            File-like object with file content.
        """
        logger.debug('Getting content for file: %s', self.path)
        with dav_errors():
            return open_content(self._user, self._entry.pk)

    @override
    def begin_write(self, content_type: str | None = None) -> BinaryIO:
        """Begin writing new content to the file.

        Creates a buffer to collect uploaded content.
        The actual upload happens when the buffer is closed.

        Args:
            content_type: MIME type of content (optional).

        Returns:
            Writable file-like object.
        """
        logger.debug('Beginning write for file: %s', self.path)
        return _ReplaceBuffer(self._user, self._entry)

    @override
    def delete(self) -> None:
        """Move the file to the trash."""
        logger.info('Trashing file via WebDAV: %s', self.path)
        with dav_errors():
            move_to_trash(self._user, self._entry.pk)

    @override
    def support_ranges(self) -> bool:
        """Check if byte ranges are supported."""
        return True

    @override
    def support_recursive_move(self, dest_path: str) -> bool:
        """Moves only change metadata, so they are done in one step."""
        return True

    @override
    def move_recursive(self, dest_path: str) -> None:
        """Move or rename the file.

        Args:
            dest_path: Destination WebDAV path.
        """
        logger.info('Moving file from %s to %s', self.path, dest_path)
        with dav_errors():
            move_entry(
                self._user,
                self._entry.pk,
                self._path_mapper.get_parent_path(dest_path),
                self._path_mapper.get_name(dest_path),
            )

    @override
    def copy_move_single(self, dest_path: str, *, is_move: bool) -> None:
        """Copy or move this file to a new path.

        Args:
            dest_path: Destination WebDAV path.
            is_move: True for move, False for copy.

        Raises:
            DAVError: HTTP 507 if quota exceeded, 409 on name conflicts.
        """
        if is_move:
            self.move_recursive(dest_path)
            return

        logger.info('Copying file from %s to %s', self.path, dest_path)
        with dav_errors():
            copy_file(
                self._user,
                self._entry.pk,
                self._path_mapper.get_parent_path(dest_path),
                self._path_mapper.get_name(dest_path),
            )

    def get_entry(self) -> Entry:
        """Get underlying Entry instance."""
        return self._entry


@final
class NewFileResource(DAVNonCollection):
    """WebDAV resource for a file being created (doesn't exist yet).

    Used when a PUT request creates a new file.
    """

    def __init__(
        self,
        path: str,
        environ: dict,
        user: 'User',
        path_mapper: PathMapper,
    ) -> None:
        """Initialize new file resource.

        Args:
            path: WebDAV path where file will be created.
            environ: WSGI environ dictionary.
            user: Authenticated Django user.
            path_mapper: PathMapper for path translation.
        """
        super().__init__(path, environ)
        self._user = user
        self._path_mapper = path_mapper

    @override
    def get_content_length(self) -> int:
        """Get file size (0 for new files)."""
        return 0

    @override
    def get_content_type(self) -> str:
        """Get content type (unknown for new files)."""
        return 'application/octet-stream'

    @override
    def get_content(self) -> BinaryIO:
        """Get content (empty for new files)."""
        return BytesIO(b'')

    @override
    def get_etag(self) -> str | None:
        """Get entity tag (none for new files)."""
        return None

    @override
    def support_etag(self) -> bool:
        """Check if ETag is supported (not for new files)."""
        return False

    @override
    def begin_write(self, content_type: str | None = None) -> BinaryIO:
        """Begin writing content to create the file.

        Args:
            content_type: MIME type of content.

        Returns:
            Writable buffer that creates file on close.
        """
        logger.debug('Beginning write for new file: %s', self.path)
        return _CreateBuffer(
            self._user,
            self._path_mapper.get_parent_path(self.path),
            self._path_mapper.get_name(self.path),
        )


class _ReplaceBuffer(BytesIO):
    """Buffer collecting new content for an existing file."""

    def __init__(self, user: 'User', entry: Entry) -> None:
        super().__init__()
        self._user = user
        self._entry = entry

    @override
    def close(self) -> None:
        """Close buffer and replace the file's content.

        Raises:
            DAVError: HTTP 507 if quota exceeded.
        """
        if self.closed:
            return

        content = ContentFile(self.getvalue(), name=self._entry.name)
        logger.debug(
            'Writing %d bytes to file: %s',
            content.size,
            self._entry.name,
        )
        super().close()

        with dav_errors():
            replace_content(self._user, self._entry.pk, content)


class _CreateBuffer(BytesIO):
    """Buffer collecting content of a new file.

    Finder sends an empty PUT first, then LOCK, then PUT with content,
    so empty files are created too.
    """

    def __init__(self, user: 'User', parent_path: str, name: str) -> None:
        super().__init__()
        self._user = user
        self._parent_path = parent_path
        self._name = name

    @override
    def close(self) -> None:
        """Close buffer and create the file.

        Raises:
            DAVError: HTTP 507 if quota exceeded, 409 on name conflicts.
        """
        if self.closed:
            return

        content = ContentFile(self.getvalue(), name=self._name)
        logger.info(
            'Creating new file via WebDAV: %s in %s (%d bytes)',
            self._name,
            self._parent_path,
            content.size,
        )
        super().close()

        with dav_errors():
            upload_file(self._user, self._parent_path, self._name, content)
