"""Path translation between WebDAV paths and drive paths.

WebDAV paths are what the client sends: /documents/report.pdf, with the
virtual trash folder mounted at /.Trash. Drive paths are the same tree
without the trash mount, always starting with a single slash.
"""

from typing import TYPE_CHECKING, Final, final

from server.apps.drive.infrastructure.metadata import (
    TRASH_FOLDER_NAME,
    split_name,
)

if TYPE_CHECKING:
    from server.apps.drive.models import Entry

# Character used to split paths
_PATH_SEPARATOR: Final = '/'

# Special trash path
_TRASH_PATH: Final = _PATH_SEPARATOR + TRASH_FOLDER_NAME

# Hex digits of the entry id used to tell trash members apart
_TRASH_ID_LENGTH: Final = 12


@final
class PathMapper:
    """Translates between WebDAV paths and drive paths.

    Also names trash members: several trashed entries may share a name,
    so each is exposed as 'stem__<id prefix>.ext' inside /.Trash.
    """

    def to_drive_path(self, webdav_path: str) -> str:
        """Convert WebDAV path to drive path.

        Args:
            webdav_path: Client path (e.g., /documents/file.pdf/).

        Returns:
            Drive path (e.g., /documents/file.pdf), '/' for the root.
        """
        normalized = webdav_path.strip(_PATH_SEPARATOR)
        return _PATH_SEPARATOR + normalized

    def get_parent_path(self, webdav_path: str) -> str:
        """Get parent directory of a WebDAV path.

        Args:
            webdav_path: WebDAV path (e.g., /documents/reports/file.pdf).

        Returns:
            Parent path (e.g., /documents/reports).
            Returns / for root-level items.
        """
        normalized = webdav_path.strip(_PATH_SEPARATOR)

        if not normalized or _PATH_SEPARATOR not in normalized:
            return _PATH_SEPARATOR

        parent = normalized.rsplit(_PATH_SEPARATOR, 1)[0]
        return _PATH_SEPARATOR + parent

    def get_name(self, webdav_path: str) -> str:
        """Get file or folder name from WebDAV path.

        Args:
            webdav_path: WebDAV path (e.g., /documents/file.pdf).

        Returns:
            Last segment (e.g., file.pdf), empty string for the root.
        """
        normalized = webdav_path.strip(_PATH_SEPARATOR)
        return normalized.rsplit(_PATH_SEPARATOR, 1)[-1]

    def join_paths(self, parent: str, name: str) -> str:
        """Join parent path and name to create full WebDAV path.

        Args:
            parent: Parent WebDAV path (e.g., /documents).
            name: Name to append (e.g., file.pdf).

        Returns:
            Joined path (e.g., /documents/file.pdf).
        """
        parent_normalized = parent.strip(_PATH_SEPARATOR)
        name_normalized = name.strip(_PATH_SEPARATOR)

        if not parent_normalized:
            return _PATH_SEPARATOR + name_normalized

        joined = parent_normalized + _PATH_SEPARATOR + name_normalized
        return _PATH_SEPARATOR + joined

    def is_root(self, webdav_path: str) -> bool:
        """Check if path is the root directory."""
        return not webdav_path.strip(_PATH_SEPARATOR)

    def validate_path(self, webdav_path: str) -> bool:
        """Validate WebDAV path for security.

        Args:
            webdav_path: WebDAV path to validate.

        Returns:
            True if path has no traversal segments or null bytes.
        """
        segments = webdav_path.split(_PATH_SEPARATOR)
        if '..' in segments or '.' in segments:
            return False
        return '\x00' not in webdav_path

    def is_trash_path(self, webdav_path: str) -> bool:
        """Check if path is the trash folder or within it.

        Args:
            webdav_path: WebDAV path to check.

        Returns:
            True if path is /.Trash or /.Trash/something.
        """
        normalized = webdav_path.rstrip(_PATH_SEPARATOR)
        return normalized == _TRASH_PATH or normalized.startswith(
            _TRASH_PATH + _PATH_SEPARATOR,
        )

    def is_trash_root(self, webdav_path: str) -> bool:
        """Check if path is exactly /.Trash/."""
        return webdav_path.rstrip(_PATH_SEPARATOR) == _TRASH_PATH

    def get_trash_item_name(self, webdav_path: str) -> str:
        """Extract member name from a path like /.Trash/name.

        Args:
            webdav_path: Trash path (e.g., /.Trash/report__a1b2c3d4e5f6.pdf).

        Returns:
            Member name, empty string if not a trash item.
        """
        normalized = webdav_path.strip(_PATH_SEPARATOR)
        prefix = TRASH_FOLDER_NAME + _PATH_SEPARATOR
        if normalized.startswith(prefix):
            return normalized[len(prefix):]
        return ''

    def trash_member_name(self, entry: 'Entry') -> str:
        """Build the unique name of a trashed entry inside /.Trash.

        Example: 'report.pdf' -> 'report__a1b2c3d4e5f6.pdf'

        Args:
            entry: Trashed entry.

        Returns:
            Member name.
        """
        stem, suffix = split_name(entry.name)
        if entry.is_directory:
            stem, suffix = entry.name, ''
        return f'{stem}__{entry.pk.hex[:_TRASH_ID_LENGTH]}{suffix}'

    def trash_member_path(self, entry: 'Entry') -> str:
        """Full WebDAV path of a trashed entry."""
        return self.join_paths(_TRASH_PATH, self.trash_member_name(entry))
