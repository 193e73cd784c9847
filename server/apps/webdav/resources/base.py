"""Base utilities for WebDAV resources."""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Final

from wsgidav.dav_error import (
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_FORBIDDEN,
    HTTP_INSUFFICIENT_STORAGE,
    HTTP_INTERNAL_ERROR,
    HTTP_NOT_FOUND,
    DAVError,
)

from server.apps.drive.exceptions import (
    DriveError,
    EntryNotFoundError,
    ForbiddenError,
    IllegalMoveError,
    InvalidNameError,
    InvalidParentError,
    InvalidStateError,
    NameConflictError,
    OrphanedParentError,
    QuotaExceededError,
    StorageIOError,
)
from server.apps.webdav.domain_controller import ENVIRON_USER_KEY

if TYPE_CHECKING:
    from django.contrib.auth.models import User

logger = logging.getLogger(__name__)

# HTTP status for each drive error, first match wins
_STATUS_BY_ERROR: Final[tuple[tuple[type[DriveError], int], ...]] = (
    (QuotaExceededError, HTTP_INSUFFICIENT_STORAGE),
    (NameConflictError, HTTP_CONFLICT),
    (ForbiddenError, HTTP_FORBIDDEN),
    (EntryNotFoundError, HTTP_NOT_FOUND),
    (IllegalMoveError, HTTP_FORBIDDEN),
    (InvalidNameError, HTTP_BAD_REQUEST),
    (InvalidParentError, HTTP_CONFLICT),
    (OrphanedParentError, HTTP_CONFLICT),
    (InvalidStateError, HTTP_CONFLICT),
    (StorageIOError, HTTP_INTERNAL_ERROR),
)


def get_user_from_environ(environ: dict) -> 'User':
    """Get authenticated Django user from WSGI environ.

    Args:
        environ: WSGI environ dictionary.

    Returns:
        Authenticated Django User object.

    Raises:
        KeyError: If user is not in environ (should not happen
                  if domain controller is working correctly).
    """
    return environ[ENVIRON_USER_KEY]


def status_for(error: DriveError) -> int:
    """Pick the HTTP status reported for a drive error.

    Args:
        error: Raised drive error.

    Returns:
        HTTP status code (500 for unmapped errors).
    """
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(error, error_type):
            return status
    return HTTP_INTERNAL_ERROR


@contextmanager
def dav_errors() -> Iterator[None]:
    """Re-raise drive errors as DAVError with the matching status.

    Raises:
        DAVError: For any DriveError raised inside the block.
    """
    try:
        yield
    except DriveError as exc:
        status = status_for(exc)
        logger.warning('Drive operation failed (%d): %s', status, exc)
        raise DAVError(status, str(exc)) from exc
