"""Exceptions for drive app.

Every error the drive logic raises derives from :class:`DriveError`, so
callers (the WebDAV layer, management commands) can tell domain failures
apart from programming errors.
"""

import uuid


class DriveError(Exception):
    """Base class for drive failures."""


class EntryNotFoundError(DriveError):
    """Raised when a referenced entry or path does not exist."""


class NameConflictError(DriveError):
    """Raised when an active sibling already uses the requested name."""

    def __init__(self, parent_id: uuid.UUID | None, name: str) -> None:
        """Initialize NameConflictError.

        Args:
            parent_id: Folder holding the conflicting entry (None for root).
            name: Requested name.
        """
        self.parent_id = parent_id
        self.name = name
        location = str(parent_id) if parent_id else 'root'
        super().__init__(f'Name already in use: {name!r} in {location}')


class InvalidNameError(DriveError):
    """Raised for names that cannot be stored (empty, '/', '..')."""


class InvalidParentError(DriveError):
    """Raised when a parent is missing, not a folder, or not owned."""


class IllegalMoveError(DriveError):
    """Base class for moves that would break the tree."""


class CycleError(IllegalMoveError):
    """Raised when a folder would be moved below one of its descendants."""


class SelfContainmentError(IllegalMoveError):
    """Raised when a folder would be moved into itself."""


class QuotaExceededError(DriveError):
    """Raised when upload would exceed user's storage quota."""

    def __init__(
        self,
        quota_bytes: int,
        used_bytes: int,
        required_bytes: int,
    ) -> None:
        """Initialize QuotaExceededError.

        Args:
            quota_bytes: Total quota limit in bytes.
            used_bytes: Currently used bytes.
            required_bytes: Bytes needed for the operation.
        """
        self.quota_bytes = quota_bytes
        self.used_bytes = used_bytes
        self.required_bytes = required_bytes

        available = quota_bytes - used_bytes
        super().__init__(
            f'Quota exceeded: need {required_bytes} bytes, '
            f'only {available} bytes available '
            f'(quota: {quota_bytes}, used: {used_bytes})',
        )


class InvalidStateError(DriveError):
    """Raised when an operation does not fit the entry's active/trashed state."""


class OrphanedParentError(DriveError):
    """Raised when a restore target's folder is trashed or gone."""


class ForbiddenError(DriveError):
    """Raised when the acting user does not own the entry."""


class StorageIOError(DriveError):
    """Raised when the byte storage backend fails."""
