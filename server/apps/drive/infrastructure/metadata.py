"""Metadata extraction and name validation utilities for entries."""

import hashlib
import mimetypes
from pathlib import Path
from typing import BinaryIO, Final

from server.apps.drive.exceptions import InvalidNameError
from server.apps.drive.models import NAME_MAX_LENGTH

_CHUNK_SIZE: Final = 8192  # 8KB chunks for checksum calculation

# Characters rejected in names (path separators and NUL)
_FORBIDDEN_CHARACTERS: Final = frozenset('/\\\x00')

# Names with a special meaning in paths
_RESERVED_NAMES: Final = frozenset(('.', '..'))

# Folder under which the trash is exposed at the root of the drive
TRASH_FOLDER_NAME: Final = '.Trash'

# Names only reserved directly under the root
RESERVED_ROOT_NAMES: Final = frozenset((TRASH_FOLDER_NAME,))


def detect_mime_type(filename: str) -> str:
    """Detect MIME type from file name.

    Uses Python's built-in mimetypes module to guess MIME type
    from filename extension.

    Args:
        filename: Filename with extension.

    Returns:
        MIME type string (e.g., 'image/jpeg', 'application/pdf').
        Returns 'application/octet-stream' if type cannot be determined.
    """
    mime_type, _ = mimetypes.guess_type(filename)
    if mime_type is None:
        return 'application/octet-stream'
    return mime_type


def calculate_checksum(file_obj: BinaryIO) -> str:
    """Calculate SHA256 checksum of file.

    Reads file in chunks to handle large files efficiently.
    Resets file pointer to beginning after calculation.

    Args:
        file_obj: File-like object to checksum.

    Returns:
        Hex-encoded SHA256 hash string.
    """
    sha256_hash = hashlib.sha256()

    # Reset file pointer to beginning
    file_obj.seek(0)

    # Read in chunks to handle large files
    for chunk in iter(lambda: file_obj.read(_CHUNK_SIZE), b''):
        sha256_hash.update(chunk)

    # Reset file pointer to beginning for subsequent operations
    file_obj.seek(0)

    return sha256_hash.hexdigest()


def get_content_size(file_obj: BinaryIO) -> int:
    """Get content size from file object.

    Args:
        file_obj: File-like object.

    Returns:
        Size in bytes.
    """
    size = getattr(file_obj, 'size', None)
    if size is not None:
        return size
    file_obj.seek(0)
    file_size = len(file_obj.read())
    file_obj.seek(0)
    return file_size


def validate_entry_name(name: str, *, at_root: bool = False) -> str:
    """Check a file or folder name can be stored.

    Names are compared case-sensitively and kept as given; only
    surrounding whitespace is rejected, never silently trimmed.

    Args:
        name: Proposed entry name.
        at_root: Whether the entry sits directly under the root, where
            the trash folder name is reserved.

    Returns:
        The name unchanged.

    Raises:
        InvalidNameError: If the name is empty, too long, reserved or
            contains a path separator.
    """
    if not name or not name.strip():
        raise InvalidNameError('Name cannot be empty')

    if name != name.strip():
        raise InvalidNameError(
            f'Name cannot start or end with whitespace: {name!r}',
        )

    if len(name) > NAME_MAX_LENGTH:
        raise InvalidNameError(
            f'Name longer than {NAME_MAX_LENGTH} characters',
        )

    if name in _RESERVED_NAMES:
        raise InvalidNameError(f'Reserved name: {name!r}')

    if at_root and name in RESERVED_ROOT_NAMES:
        raise InvalidNameError(f'Reserved at the root: {name!r}')

    if _FORBIDDEN_CHARACTERS.intersection(name):
        raise InvalidNameError(f'Name contains a path separator: {name!r}')

    return name


def split_name(name: str) -> tuple[str, str]:
    """Split a name into stem and suffix.

    Example: 'report.final.pdf' -> ('report.final', '.pdf')

    Args:
        name: Entry name.

    Returns:
        Tuple of stem and suffix (suffix keeps its dot, may be empty).
    """
    path = Path(name)
    return path.stem, path.suffix
