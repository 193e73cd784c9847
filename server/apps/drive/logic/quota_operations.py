"""Business logic for storage quota operations (the quota ledger).

Usage is maintained incrementally: ``reserve`` adds bytes when a file is
created, ``release`` subtracts them when a file is purged. Reads are a
single row lookup; :func:`recalculate_usage` rebuilds the counter from
entry sizes when it has drifted.
"""

import logging
from typing import Any

from django.conf import settings
from django.db import transaction
from django.db.models import F, Sum  # noqa: WPS347

from server.apps.drive.exceptions import QuotaExceededError
from server.apps.drive.models import Entry, UserQuota

# User type for Django's dynamic user model
_User = Any

# Field name constant to avoid string literal over-use
_USED_BYTES_FIELD = 'used_bytes'  # noqa: WPS226

logger = logging.getLogger(__name__)


def get_or_create_quota(user: _User) -> UserQuota:
    """Get or create quota for user (on-demand creation).

    Args:
        user: User to get quota for.

    Returns:
        UserQuota instance for the user.
    """
    quota, created = UserQuota.objects.get_or_create(
        user=user,
        defaults={'quota_bytes': settings.DRIVE_DEFAULT_QUOTA_BYTES},
    )
    if created:
        logger.info(
            'Created quota for user %s: %d bytes',
            user.username,
            quota.quota_bytes,
        )
    return quota


def lock_quota(user: _User) -> UserQuota:
    """Lock the user's quota row for the current transaction.

    Must be called inside ``transaction.atomic()``. The lock is held
    until the outermost transaction ends.

    Args:
        user: User whose row to lock.

    Returns:
        Locked, freshly read UserQuota.
    """
    get_or_create_quota(user)
    return UserQuota.objects.select_for_update().get(user=user)


def reserve(user: _User, size_bytes: int) -> None:
    """Reserve bytes for a new or grown file.

    Check and increment happen on the locked row, so two reservations
    for the same account can never both pass on a stale reading.

    Args:
        user: User to charge.
        size_bytes: Bytes to reserve.

    Raises:
        QuotaExceededError: If the reservation would exceed quota.
    """
    with transaction.atomic():
        quota = lock_quota(user)
        _ensure_space(user, quota, size_bytes)
        UserQuota.objects.filter(user=user).update(
            used_bytes=F(_USED_BYTES_FIELD) + size_bytes,
        )

    logger.debug(
        'Reserved %d bytes for user %s',
        size_bytes,
        user.username,
    )


def release(user: _User, size_bytes: int) -> None:
    """Release bytes of a purged or shrunk file.

    Prevents negative values by clamping to 0.

    Args:
        user: User to credit.
        size_bytes: Bytes to give back.
    """
    with transaction.atomic():
        # Get current quota to check if decrement would go negative
        try:
            quota = UserQuota.objects.select_for_update().get(user=user)
        except UserQuota.DoesNotExist:
            # No quota exists, nothing to decrement
            logger.debug(
                'No quota exists for user %s, skipping release',
                user.username,
            )
            return

        if size_bytes > quota.used_bytes:
            logger.warning(
                'Release of %d bytes exceeds usage %d for user %s',
                size_bytes,
                quota.used_bytes,
                user.username,
            )

        # Calculate new usage, clamping to 0
        new_usage = max(0, quota.used_bytes - size_bytes)
        quota.used_bytes = new_usage
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.debug(
        'Released %d bytes for user %s (new: %d)',
        size_bytes,
        user.username,
        new_usage,
    )


def adjust_usage(user: _User, old_size: int, new_size: int) -> None:
    """Adjust user's storage usage for content updates.

    Args:
        user: User to adjust usage for.
        old_size: Previous file size in bytes.
        new_size: New file size in bytes.

    Raises:
        QuotaExceededError: If growth would exceed quota.
    """
    size_diff = new_size - old_size

    if size_diff > 0:
        reserve(user, size_diff)
    elif size_diff < 0:
        release(user, -size_diff)


def usage(user: _User) -> int:
    """Get bytes currently charged to the user.

    Args:
        user: User to read.

    Returns:
        Used bytes (0 for users without a quota row yet).
    """
    used = UserQuota.objects.filter(user=user).values_list(
        _USED_BYTES_FIELD,
        flat=True,
    ).first()
    return used or 0


def set_quota(user: _User, quota_bytes: int) -> UserQuota:
    """Change a user's storage ceiling.

    Lowering the ceiling below current usage is allowed; further
    uploads are rejected until enough is purged.

    Args:
        user: User to update.
        quota_bytes: New ceiling in bytes.

    Returns:
        Updated UserQuota.

    Raises:
        ValueError: If the ceiling is negative.
    """
    if quota_bytes < 0:
        raise ValueError('Quota cannot be negative')

    with transaction.atomic():
        quota = lock_quota(user)
        old_quota = quota.quota_bytes
        quota.quota_bytes = quota_bytes
        quota.save(update_fields=['quota_bytes'])

    logger.info(
        'Changed quota for user %s: %d -> %d bytes',
        user.username,
        old_quota,
        quota_bytes,
    )
    return quota


def calculate_usage(user: _User) -> int:
    """Sum sizes of the user's files that still hold storage.

    Trashed and inconsistent files count; only a purge frees space.

    Args:
        user: User to sum for.

    Returns:
        Total bytes.
    """
    return Entry.objects.owned_by(user).files().aggregate(
        total=Sum('size_bytes'),
    )['total'] or 0


def recalculate_usage(user: _User) -> int:
    """Recalculate user's storage usage from actual entries.

    This is useful for fixing inconsistencies or after bulk operations.

    Args:
        user: User to recalculate usage for.

    Returns:
        New calculated usage in bytes.
    """
    with transaction.atomic():
        quota = lock_quota(user)
        total = calculate_usage(user)
        old_usage = quota.used_bytes
        quota.used_bytes = total
        quota.save(update_fields=[_USED_BYTES_FIELD])

    logger.info(
        'Recalculated usage for user %s: %d -> %d bytes',
        user.username,
        old_usage,
        total,
    )

    return total


def _ensure_space(user: _User, quota: UserQuota, size_bytes: int) -> None:
    if not quota.has_space_for(size_bytes):
        logger.warning(
            'Quota exceeded for user %s: need %d, have %d available',
            user.username,
            size_bytes,
            quota.available_bytes(),
        )
        raise QuotaExceededError(
            quota_bytes=quota.quota_bytes,
            used_bytes=quota.used_bytes,
            required_bytes=size_bytes,
        )
