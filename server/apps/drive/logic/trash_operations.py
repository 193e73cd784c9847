"""Business logic for trash (soft delete) operations.

Trashing only marks the top entry; everything below a trashed folder is
hidden by ancestor lookup. Trashed files keep their bytes reserved in
the quota ledger until they are purged.
"""

import dataclasses
import logging
import uuid
from collections import defaultdict
from datetime import datetime, timedelta
from typing import Any, Final

from django.conf import settings
from django.utils import timezone

from server.apps.drive.exceptions import (
    EntryNotFoundError,
    InvalidStateError,
    OrphanedParentError,
    StorageIOError,
)
from server.apps.drive.infrastructure.metadata import (
    RESERVED_ROOT_NAMES,
    split_name,
)
from server.apps.drive.infrastructure.storage import get_blob_store
from server.apps.drive.logic import entry_store
from server.apps.drive.logic.activity_operations import (
    record_activity,
    was_purged,
)
from server.apps.drive.logic.locking import owner_lock
from server.apps.drive.logic.path_resolver import (
    has_trashed_ancestor,
    is_effectively_active,
    siblings,
)
from server.apps.drive.logic.quota_operations import release
from server.apps.drive.models import (
    NAME_MAX_LENGTH,
    ActivityKind,
    Entry,
    EntryState,
)

# User type for Django's dynamic user model
_User = Any

ORPHAN_POLICY_FAIL: Final = 'fail'
ORPHAN_POLICY_ROOT: Final = 'root'
_ORPHAN_POLICIES: Final = frozenset((ORPHAN_POLICY_FAIL, ORPHAN_POLICY_ROOT))

_RESTORED_MARKER: Final = 'restored'

logger = logging.getLogger(__name__)


@dataclasses.dataclass
class PurgeReport:
    """Outcome of removing entries for good."""

    entries: int = 0
    freed_bytes: int = 0
    blob_keys: list[str] = dataclasses.field(default_factory=list)

    def add(self, other: 'PurgeReport') -> None:
        """Fold another report into this one.

        Args:
            other: Report to add.
        """
        self.entries += other.entries
        self.freed_bytes += other.freed_bytes
        self.blob_keys.extend(other.blob_keys)


@dataclasses.dataclass
class SweepReport:
    """Outcome of an expiry sweep."""

    candidates: int = 0
    purged: int = 0
    skipped: int = 0
    freed_bytes: int = 0
    storage_failures: int = 0


def trash_entry(entry_id: uuid.UUID) -> Entry:
    """Move an entry to the trash.

    Quota is NOT released - trashed files count toward quota.

    Args:
        entry_id: Entry to trash.

    Returns:
        Updated Entry.

    Raises:
        EntryNotFoundError: If the entry does not exist.
        InvalidStateError: If the entry is already trashed.
    """
    entry = entry_store.mark_trashed(entry_id)
    logger.info(
        'Entry moved to trash: %s (ID: %s)',
        entry.name,
        entry.pk,
    )
    return entry


def restore_entry(
    entry_id: uuid.UUID,
    orphan_policy: str | None = None,
) -> Entry:
    """Restore an entry from the trash.

    If an active sibling took the name meanwhile, the entry comes back
    as 'name (restored).ext', then 'name (restored 2).ext' and so on.

    Args:
        entry_id: Trashed entry.
        orphan_policy: What to do when the original folder is no longer
            active: 'fail' or 'root'. Defaults to
            ``settings.DRIVE_ORPHAN_RESTORE_POLICY``.

    Returns:
        Restored Entry.

    Raises:
        EntryNotFoundError: If the entry does not exist.
        InvalidStateError: If the entry is not trashed.
        OrphanedParentError: If the folder is gone and the policy is 'fail'.
        ValueError: If the policy is unknown.
    """
    policy = orphan_policy or settings.DRIVE_ORPHAN_RESTORE_POLICY
    if policy not in _ORPHAN_POLICIES:
        raise ValueError(f'Unknown orphan restore policy: {policy}')

    entry = entry_store.get_entry(entry_id)
    if not entry.is_trashed:
        raise InvalidStateError(f'Entry {entry_id} is not in the trash')

    to_root = False
    if entry.parent is not None and not is_effectively_active(entry.parent):
        if policy == ORPHAN_POLICY_FAIL:
            raise OrphanedParentError(
                f'Folder of {entry.name} is no longer available',
            )
        to_root = True
        logger.info('Restoring orphaned entry %s to root', entry.pk)

    parent_id = None if to_root else entry.parent_id
    taken = siblings(parent_id, entry.owner)
    if parent_id is None:
        taken |= RESERVED_ROOT_NAMES
    target_name = _restore_name(entry.name, taken)
    if target_name != entry.name:
        logger.info(
            'Restore conflict, renamed to: %s',
            target_name,
        )

    entry = entry_store.mark_restored(
        entry_id,
        new_name=target_name,
        to_root=to_root,
    )
    logger.info(
        'Entry restored: %s (ID: %s)',
        entry.name,
        entry.pk,
    )
    return entry


def purge_entry(entry_id: uuid.UUID, details: str = '') -> PurgeReport:
    """Permanently remove a trashed entry and its subtree.

    Releases quota for every file removed and records the deletion,
    which also marks the id as purged. Blob deletion is left to the
    caller, after the transaction commits.

    Args:
        entry_id: Trashed entry.
        details: Note stored with the deletion record.

    Returns:
        PurgeReport with the storage keys to delete.

    Raises:
        EntryNotFoundError: If the entry never existed.
        InvalidStateError: If the entry is not trashed or was already
            purged.
    """
    try:
        entry = entry_store.get_entry(entry_id)
    except EntryNotFoundError:
        ensure_not_purged(entry_id)
        raise
    removed = entry_store.hard_delete(entry_id)

    files = [node for node in removed if not node.is_directory]
    report = PurgeReport(
        entries=len(removed),
        freed_bytes=sum(node.size_bytes for node in files),
        blob_keys=[node.blob_key for node in files if node.blob_key],
    )
    release(entry.owner, report.freed_bytes)
    record_activity(
        entry.owner,
        ActivityKind.ENTRY_DELETED,
        entry,
        details=details,
    )

    logger.info(
        'Entry permanently deleted: %s (%d entries, %d bytes)',
        entry_id,
        report.entries,
        report.freed_bytes,
    )
    return report


def ensure_not_purged(entry_id: uuid.UUID, owner: _User | None = None) -> None:
    """Refuse a missing entry that was purged earlier.

    Args:
        entry_id: Entry that could not be found.
        owner: Only consider deletions recorded for this account.

    Raises:
        InvalidStateError: If the entry was already purged.
    """
    if was_purged(entry_id, owner):
        raise InvalidStateError(f'Entry {entry_id} was already purged')


def list_trash(owner: _User) -> list[Entry]:
    """List the user's trash.

    Only entries trashed on their own are listed; content of a trashed
    folder shows up through the folder.

    Args:
        owner: User whose trash to list.

    Returns:
        Trashed entries, newest first.
    """
    trashed = Entry.objects.owned_by(owner).trashed().order_by('-trashed_at')
    return [entry for entry in trashed if not has_trashed_ancestor(entry)]


def empty_trash(owner: _User) -> PurgeReport:
    """Permanently delete everything in the user's trash.

    Args:
        owner: User whose trash to empty.

    Returns:
        Combined PurgeReport.
    """
    report = PurgeReport()
    for entry in list_trash(owner):
        report.add(purge_entry(entry.pk))

    logger.info(
        'Trash emptied for user %s: %d entries deleted',
        owner.username,
        report.entries,
    )
    return report


def purge_inconsistent(owner: _User) -> PurgeReport:
    """Remove the user's entries left inconsistent by failed rollbacks.

    Must run under the owner's lock. Releases their reserved quota.

    Args:
        owner: User to clean up.

    Returns:
        PurgeReport with the storage keys that may need deleting.
    """
    report = PurgeReport()
    for entry in Entry.objects.owned_by(owner).filter(
        state=EntryState.INCONSISTENT,
    ):
        entry_store.discard_entry(entry.pk)
        report.add(PurgeReport(
            entries=1,
            freed_bytes=entry.size_bytes,
            blob_keys=[entry.blob_key] if entry.blob_key else [],
        ))
    release(owner, report.freed_bytes)

    if report.entries:
        logger.info(
            'Removed %d inconsistent entries for user %s',
            report.entries,
            owner.username,
        )
    return report


def delete_blobs(blob_keys: list[str]) -> None:
    """Delete purged content from storage.

    Args:
        blob_keys: Keys reported by a purge.

    Raises:
        StorageIOError: If any key could not be deleted; the rest
            were still attempted.
    """
    if blob_keys:
        get_blob_store().delete_many(blob_keys)


def expired_entries(
    retention_days: int,
    now: datetime | None = None,
) -> list[Entry]:
    """Find trashed entries past the retention period.

    Args:
        retention_days: Days an entry may stay in the trash.
        now: Reference time (defaults to the current time).

    Returns:
        Expired entries, oldest first.
    """
    cutoff = (now or timezone.now()) - timedelta(days=retention_days)
    return list(
        Entry.objects.trashed()
        .filter(trashed_at__lt=cutoff)
        .select_related('owner')
        .order_by('trashed_at'),
    )


def sweep_expired(
    retention_days: int | None = None,
    now: datetime | None = None,
    *,
    dry_run: bool = False,
) -> SweepReport:
    """Purge trash entries older than the retention period.

    Each owner is processed under that owner's lock. Entries restored
    or purged since the scan are skipped.

    Args:
        retention_days: Days an entry may stay in the trash
            (defaults to ``settings.DRIVE_TRASH_RETENTION_DAYS``).
        now: Reference time (defaults to the current time).
        dry_run: Only count what would be purged.

    Returns:
        SweepReport.
    """
    if retention_days is None:
        retention_days = settings.DRIVE_TRASH_RETENTION_DAYS
    reference = now or timezone.now()
    cutoff = reference - timedelta(days=retention_days)

    candidates = expired_entries(retention_days, reference)
    report = SweepReport(candidates=len(candidates))
    if dry_run:
        return report

    by_owner: dict[int, list[Entry]] = defaultdict(list)
    for candidate in candidates:
        by_owner[candidate.owner_id].append(candidate)

    for owner_entries in by_owner.values():
        _sweep_owner(owner_entries, cutoff, report)

    logger.info(
        'Trash sweep done: %d purged, %d skipped, %d bytes freed',
        report.purged,
        report.skipped,
        report.freed_bytes,
    )
    return report


def _sweep_owner(
    entries: list[Entry],
    cutoff: datetime,
    report: SweepReport,
) -> None:
    owner = entries[0].owner
    purged = PurgeReport()

    with owner_lock(owner):
        for entry in entries:
            current = Entry.objects.filter(pk=entry.pk).first()
            if not _still_expired(current, cutoff):
                report.skipped += 1
                continue
            purged.add(
                purge_entry(entry.pk, details='Trash retention expired'),
            )
            report.purged += 1

    report.freed_bytes += purged.freed_bytes
    try:
        delete_blobs(purged.blob_keys)
    except StorageIOError:
        logger.exception(
            'Sweep left orphaned objects for user %s',
            owner.username,
        )
        report.storage_failures += 1


def _still_expired(entry: Entry | None, cutoff: datetime) -> bool:
    if entry is None or not entry.is_trashed:
        return False
    return entry.trashed_at is not None and entry.trashed_at < cutoff


def _restore_name(name: str, taken: set[str]) -> str:
    if name not in taken:
        return name

    stem, suffix = split_name(name)
    attempt = 1
    while True:
        marker = _RESTORED_MARKER if attempt == 1 else (
            f'{_RESTORED_MARKER} {attempt}'
        )
        tail = f' ({marker}){suffix}'
        candidate = stem[:NAME_MAX_LENGTH - len(tail)] + tail
        if candidate not in taken:
            return candidate
        attempt += 1

