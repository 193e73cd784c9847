"""Business logic for the drive activity log."""

import logging
import uuid
from typing import Any

from django.db.models import QuerySet

from server.apps.drive.models import Activity, ActivityKind, Entry

# User type for Django's dynamic user model
_User = Any

_RECENT_LIMIT = 50

logger = logging.getLogger(__name__)


def record_activity(
    user: _User,
    kind: str,
    entry: Entry | None = None,
    details: str = '',
) -> Activity:
    """Append an activity record.

    Call inside the transaction of the mutation being recorded, so the
    record commits (or rolls back) together with it.

    Args:
        user: Account that performed the mutation.
        kind: One of :class:`~server.apps.drive.models.ActivityKind`.
        entry: Entry the mutation touched, if any.
        details: Free-form description (e.g., old and new path).

    Returns:
        Created Activity.
    """
    activity = Activity.objects.create(
        user=user,
        kind=kind,
        entry_id=entry.pk if entry is not None else None,
        entry_name=entry.name if entry is not None else '',
        details=details,
    )
    logger.debug(
        'Recorded %s for user %s: %s',
        kind,
        user.username,
        activity.entry_name,
    )
    return activity


def recent_activity(user: _User, limit: int = _RECENT_LIMIT) -> QuerySet[Activity]:
    """List the user's latest activity, newest first.

    Args:
        user: Account to list.
        limit: Maximum number of records.

    Returns:
        QuerySet of Activity.
    """
    return Activity.objects.filter(user=user).order_by('-created_at')[:limit]


def was_purged(entry_id: uuid.UUID, user: _User | None = None) -> bool:
    """Check whether an entry was permanently deleted.

    The ``entry_deleted`` record outlives the entry and serves as its
    tombstone.

    Args:
        entry_id: Entry to look up.
        user: Restrict the lookup to this account's records.

    Returns:
        True if a permanent deletion of the entry was recorded.
    """
    records = Activity.objects.filter(
        kind=ActivityKind.ENTRY_DELETED,
        entry_id=entry_id,
    )
    if user is not None:
        records = records.filter(user=user)
    return records.exists()


def discard_activity(entry_id: uuid.UUID) -> int:
    """Drop the records of an entry whose creation was rolled back.

    Args:
        entry_id: Entry that never became visible.

    Returns:
        Number of records removed.
    """
    deleted, _ = Activity.objects.filter(entry_id=entry_id).delete()
    return deleted
