"""Tests for drive error to HTTP status mapping."""

import uuid

import pytest
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
    CycleError,
    DriveError,
    EntryNotFoundError,
    ForbiddenError,
    InvalidNameError,
    InvalidStateError,
    NameConflictError,
    OrphanedParentError,
    QuotaExceededError,
    SelfContainmentError,
    StorageIOError,
)
from server.apps.webdav.resources.base import dav_errors, status_for


class TestStatusFor:
    """Tests for status_for."""

    @pytest.mark.parametrize(('error', 'status'), [
        (QuotaExceededError(100, 90, 50), HTTP_INSUFFICIENT_STORAGE),
        (NameConflictError(uuid.uuid4(), 'a.txt'), HTTP_CONFLICT),
        (ForbiddenError('nope'), HTTP_FORBIDDEN),
        (EntryNotFoundError('gone'), HTTP_NOT_FOUND),
        (CycleError('loop'), HTTP_FORBIDDEN),
        (SelfContainmentError('self'), HTTP_FORBIDDEN),
        (InvalidNameError('bad'), HTTP_BAD_REQUEST),
        (OrphanedParentError('orphan'), HTTP_CONFLICT),
        (InvalidStateError('state'), HTTP_CONFLICT),
        (StorageIOError('disk'), HTTP_INTERNAL_ERROR),
        (DriveError('other'), HTTP_INTERNAL_ERROR),
    ])
    def test_status(self, error, status):
        """Test every drive error has a status."""
        assert status_for(error) == status


class TestDavErrors:
    """Tests for the dav_errors context manager."""

    def test_translates_drive_errors(self):
        """Test drive errors become DAVError with the cause kept."""
        error = QuotaExceededError(100, 90, 50)

        with pytest.raises(DAVError) as exc_info, dav_errors():
            raise error

        assert exc_info.value.value == HTTP_INSUFFICIENT_STORAGE
        assert exc_info.value.__cause__ is error

    def test_other_errors_pass_through(self):
        """Test programming errors are not masked."""
        with pytest.raises(KeyError), dav_errors():
            raise KeyError('missing')

    def test_no_error(self):
        """Test the block runs normally."""
        with dav_errors():
            outcome = 'done'

        assert outcome == 'done'
