"""Business logic for drive operations (the public service facade).

Every mutation takes the acting user, checks ownership, and runs its
metadata changes in one :func:`owner_lock` transaction. Storage calls
happen outside that transaction:

- new content (upload, copy) is written after the metadata commits; a
  failed write is compensated by removing the entry again;
- replacement content is written before the metadata switches to it;
- purged content is deleted after the metadata removal commits.
"""

import dataclasses
import logging
import uuid
from typing import IO, Any, BinaryIO

from django.conf import settings
from django.core.files.base import File as DjangoFile
from django.db import DatabaseError
from django.db.models import QuerySet

from server.apps.drive.exceptions import (
    DriveError,
    EntryNotFoundError,
    ForbiddenError,
    InvalidStateError,
    StorageIOError,
)
from server.apps.drive.infrastructure.metadata import (
    calculate_checksum,
    detect_mime_type,
    get_content_size,
    validate_entry_name,
)
from server.apps.drive.infrastructure.storage import (
    get_blob_store,
    make_blob_key,
)
from server.apps.drive.logic import entry_store, trash_operations
from server.apps.drive.logic.activity_operations import (
    discard_activity,
    recent_activity,
    record_activity,
)
from server.apps.drive.logic.locking import owner_lock
from server.apps.drive.logic.path_resolver import (
    entry_path,
    is_effectively_active,
    resolve,
    resolve_directory,
)
from server.apps.drive.logic.quota_operations import (
    adjust_usage,
    get_or_create_quota,
    release,
    reserve,
)
from server.apps.drive.logic.trash_operations import PurgeReport
from server.apps.drive.models import Activity, ActivityKind, Entry

# User type for Django's dynamic user model
_User = Any

_Content = BinaryIO | DjangoFile

_PERCENT = 100

logger = logging.getLogger(__name__)


@dataclasses.dataclass(frozen=True)
class StorageStats:
    """Storage summary for one user."""

    used_bytes: int
    quota_bytes: int
    available_bytes: int
    file_count: int
    folder_count: int
    trashed_count: int
    usage_percent: float


def list_directory(owner: _User, path: str = '/') -> list[Entry]:
    """List a folder's active children.

    Args:
        owner: User browsing the drive.
        path: Folder path, '/' for the root.

    Returns:
        Entries, folders first, then by name.

    Raises:
        EntryNotFoundError: If the path does not resolve.
        InvalidParentError: If the path names a file.
    """
    parent_id = resolve_directory(owner, path)
    logger.debug('Listing directory %s for user %s', path, owner.username)
    return entry_store.list_children(parent_id, owner)


def get_entry_at(owner: _User, path: str) -> Entry | None:
    """Look up the active entry at a path.

    Args:
        owner: User browsing the drive.
        path: Entry path.

    Returns:
        Entry, or None for the root.

    Raises:
        EntryNotFoundError: If the path does not resolve.
    """
    entry_id = resolve(owner, path)
    if entry_id is None:
        return None
    return entry_store.get_entry(entry_id)


def search(owner: _User, query: str) -> list[Entry]:
    """Find the user's visible entries by name.

    Matches are case-insensitive substrings. Entries inside a trashed
    folder are not visible and never match.

    Args:
        owner: User searching the drive.
        query: Text the name must contain.

    Returns:
        Matching entries, folders first, then by name.

    Raises:
        ValueError: If the query is blank.
    """
    query = query.strip()
    if not query:
        raise ValueError('Search query required')

    candidates = Entry.objects.owned_by(owner).active().filter(
        name__icontains=query,
    )
    matches = [entry for entry in candidates if is_effectively_active(entry)]
    logger.debug(
        'Search %r for user %s: %d matches',
        query,
        owner.username,
        len(matches),
    )
    return entry_store.sort_entries(matches)


def create_folder(owner: _User, parent_path: str, name: str) -> Entry:
    """Create a folder.

    Args:
        owner: User creating the folder.
        parent_path: Path of the containing folder.
        name: Folder name.

    Returns:
        Created folder Entry.

    Raises:
        EntryNotFoundError: If the parent path does not resolve.
        InvalidNameError: If the name cannot be stored.
        InvalidParentError: If the parent path names a file.
        NameConflictError: If the name is taken.
    """
    with owner_lock(owner):
        parent_id = resolve_directory(owner, parent_path)
        folder = entry_store.create_entry(
            owner,
            parent_id,
            name,
            is_directory=True,
        )
        record_activity(owner, ActivityKind.FOLDER_CREATED, folder)
    return folder


def upload_file(
    owner: _User,
    parent_path: str,
    name: str,
    content: _Content,
    mime_type: str | None = None,
) -> Entry:
    """Upload a new file.

    Quota is reserved and the entry created in one transaction; the
    bytes are written afterwards. If the write fails the entry and the
    reservation are rolled back and the storage error is raised.

    Args:
        owner: User uploading.
        parent_path: Path of the containing folder.
        name: File name.
        content: File-like object with the bytes.
        mime_type: Content type (guessed from the name if omitted).

    Returns:
        Created file Entry.

    Raises:
        EntryNotFoundError: If the parent path does not resolve.
        InvalidNameError: If the name cannot be stored.
        InvalidParentError: If the parent path names a file.
        NameConflictError: If the name is taken.
        QuotaExceededError: If the file does not fit the quota.
        StorageIOError: If the bytes could not be stored.
    """
    validate_entry_name(name)

    logger.info('Calculating metadata for upload: %s', name)
    size_bytes = get_content_size(content)
    checksum = calculate_checksum(content)
    content_type = mime_type or detect_mime_type(name)

    entry_id = uuid.uuid4()
    blob_key = make_blob_key(owner.pk, entry_id)

    with owner_lock(owner):
        parent_id = resolve_directory(owner, parent_path)
        reserve(owner, size_bytes)
        entry = entry_store.create_entry(
            owner,
            parent_id,
            name,
            size_bytes=size_bytes,
            mime_type=content_type,
            checksum=checksum,
            blob_key=blob_key,
            entry_id=entry_id,
        )
        record_activity(owner, ActivityKind.FILE_CREATED, entry)

    _store_new_content(owner, entry, content)
    return entry


def rename_entry(owner: _User, entry_id: uuid.UUID, new_name: str) -> Entry:
    """Rename a file or folder.

    Args:
        owner: Acting user.
        entry_id: Entry to rename.
        new_name: New name.

    Returns:
        Updated Entry.

    Raises:
        ForbiddenError: If the entry belongs to someone else.
        NameConflictError: If the name is taken.
    """
    with owner_lock(owner):
        entry = _get_owned_entry(owner, entry_id)
        old_name = entry.name
        entry = entry_store.rename_entry(entry_id, new_name)
        if entry.name != old_name:
            record_activity(
                owner,
                ActivityKind.ENTRY_RENAMED,
                entry,
                details=f'{old_name} -> {entry.name}',
            )
    return entry


def move_entry(
    owner: _User,
    entry_id: uuid.UUID,
    destination_path: str,
    new_name: str | None = None,
) -> Entry:
    """Move a file or folder into another folder.

    Args:
        owner: Acting user.
        entry_id: Entry to move.
        destination_path: Path of the destination folder.
        new_name: Name at the destination (keeps the name if omitted).

    Returns:
        Updated Entry.

    Raises:
        ForbiddenError: If the entry belongs to someone else.
        IllegalMoveError: If a folder would end up inside itself.
        NameConflictError: If the destination already has the name.
    """
    with owner_lock(owner):
        entry = _get_owned_entry(owner, entry_id)
        new_parent_id = resolve_directory(owner, destination_path)
        old_path = entry_path(entry)
        entry = entry_store.move_entry(entry_id, new_parent_id, new_name)
        new_path = entry_path(entry)
        if new_path != old_path:
            record_activity(
                owner,
                ActivityKind.ENTRY_MOVED,
                entry,
                details=f'{old_path} -> {new_path}',
            )
    return entry


def copy_file(
    owner: _User,
    entry_id: uuid.UUID,
    destination_path: str,
    new_name: str | None = None,
) -> Entry:
    """Copy a file into a folder.

    The copy is a new entry with its own content object and its own
    quota reservation.

    Args:
        owner: Acting user.
        entry_id: File to copy.
        destination_path: Path of the destination folder.
        new_name: Name of the copy (keeps the name if omitted).

    Returns:
        Created Entry for the copy.

    Raises:
        ForbiddenError: If the file belongs to someone else.
        InvalidStateError: If the entry is a folder or trashed.
        NameConflictError: If the destination already has the name.
        QuotaExceededError: If the copy does not fit the quota.
        StorageIOError: If the bytes could not be copied.
    """
    copy_id = uuid.uuid4()
    blob_key = make_blob_key(owner.pk, copy_id)

    with owner_lock(owner):
        source = _get_owned_entry(owner, entry_id)
        if source.is_directory:
            raise InvalidStateError('Only files can be copied')
        if not is_effectively_active(source):
            raise InvalidStateError(f'Entry {entry_id} is in the trash')

        parent_id = resolve_directory(owner, destination_path)
        reserve(owner, source.size_bytes)
        copy = entry_store.create_entry(
            owner,
            parent_id,
            new_name or source.name,
            size_bytes=source.size_bytes,
            mime_type=source.mime_type,
            checksum=source.checksum_sha256,
            blob_key=blob_key,
            entry_id=copy_id,
        )
        record_activity(
            owner,
            ActivityKind.FILE_COPIED,
            copy,
            details=f'Copied from {entry_path(source)}',
        )

    try:
        source_content = get_blob_store().get(source.blob_key)
    except StorageIOError:
        logger.exception('Failed to read copy source: %s', source.blob_key)
        _rollback_creation(owner, copy)
        raise

    with source_content:
        _store_new_content(owner, copy, source_content)
    return copy


def replace_content(
    owner: _User,
    entry_id: uuid.UUID,
    content: _Content,
) -> Entry:
    """Overwrite a file's content.

    New bytes go to a fresh key first; the entry switches to it in one
    transaction together with the quota adjustment; the old object is
    removed afterwards (best effort).

    Args:
        owner: Acting user.
        entry_id: File to overwrite.
        content: File-like object with the new bytes.

    Returns:
        Updated Entry.

    Raises:
        ForbiddenError: If the file belongs to someone else.
        InvalidStateError: If the entry is a folder or trashed.
        QuotaExceededError: If the growth does not fit the quota.
        StorageIOError: If the bytes could not be stored.
    """
    entry = _get_owned_entry(owner, entry_id)
    if entry.is_directory:
        raise InvalidStateError(f'Folders have no content: {entry_id}')
    if not is_effectively_active(entry):
        raise InvalidStateError(f'Entry {entry_id} is in the trash')

    size_bytes = get_content_size(content)
    checksum = calculate_checksum(content)
    mime_type = detect_mime_type(entry.name)

    store = get_blob_store()
    new_key = store.put(
        make_blob_key(owner.pk, entry.pk, entry.version + 1),
        content,
    )

    try:
        with owner_lock(owner):
            entry = _get_owned_entry(owner, entry_id)
            old_key = entry.blob_key
            adjust_usage(owner, entry.size_bytes, size_bytes)
            entry = entry_store.replace_content(
                entry_id,
                size_bytes=size_bytes,
                mime_type=mime_type,
                checksum=checksum,
                blob_key=new_key,
            )
            record_activity(owner, ActivityKind.FILE_UPDATED, entry)
    except (DriveError, DatabaseError):
        logger.exception(
            'Content update failed, rolling back storage upload: %s',
            new_key,
        )
        _delete_orphan(new_key)
        raise

    if old_key and old_key != new_key:
        _delete_orphan(old_key)
    return entry


def move_to_trash(owner: _User, entry_id: uuid.UUID) -> Entry:
    """Move a file or folder to the trash.

    Args:
        owner: Acting user.
        entry_id: Entry to trash.

    Returns:
        Trashed Entry.

    Raises:
        ForbiddenError: If the entry belongs to someone else.
        InvalidStateError: If the entry is already in the trash.
    """
    with owner_lock(owner):
        path = entry_path(_get_owned_entry(owner, entry_id))
        entry = trash_operations.trash_entry(entry_id)
        record_activity(owner, ActivityKind.ENTRY_TRASHED, entry, details=path)
    return entry


def restore(
    owner: _User,
    entry_id: uuid.UUID,
    orphan_policy: str | None = None,
) -> Entry:
    """Restore an entry from the trash.

    Args:
        owner: Acting user.
        entry_id: Trashed entry.
        orphan_policy: 'fail' or 'root' (defaults to the setting).

    Returns:
        Restored Entry (possibly renamed).

    Raises:
        ForbiddenError: If the entry belongs to someone else.
        InvalidStateError: If the entry is not trashed.
        OrphanedParentError: If its folder is gone and the policy is 'fail'.
    """
    with owner_lock(owner):
        _get_owned_entry(owner, entry_id)
        entry = trash_operations.restore_entry(entry_id, orphan_policy)
        record_activity(
            owner,
            ActivityKind.ENTRY_RESTORED,
            entry,
            details=entry_path(entry),
        )
    return entry


def delete_permanent(owner: _User, entry_id: uuid.UUID) -> PurgeReport:
    """Permanently delete a trashed entry.

    Args:
        owner: Acting user.
        entry_id: Trashed entry.

    Returns:
        PurgeReport of what was removed.

    Raises:
        ForbiddenError: If the entry belongs to someone else.
        InvalidStateError: If the entry is not trashed or was already
            purged.
        StorageIOError: If some content could not be deleted (the
            entries are gone regardless).
    """
    with owner_lock(owner):
        try:
            _get_owned_entry(owner, entry_id)
        except EntryNotFoundError:
            trash_operations.ensure_not_purged(entry_id, owner)
            raise
        report = trash_operations.purge_entry(entry_id)

    trash_operations.delete_blobs(report.blob_keys)
    return report


def empty_trash(owner: _User) -> PurgeReport:
    """Permanently delete everything in the trash.

    Args:
        owner: Acting user.

    Returns:
        Combined PurgeReport.

    Raises:
        StorageIOError: If some content could not be deleted (the
            entries are gone regardless).
    """
    with owner_lock(owner):
        report = trash_operations.empty_trash(owner)
        record_activity(
            owner,
            ActivityKind.TRASH_EMPTIED,
            details=f'{report.entries} entries, {report.freed_bytes} bytes',
        )

    trash_operations.delete_blobs(report.blob_keys)
    return report


def list_trash(owner: _User) -> list[Entry]:
    """List the trash, newest first.

    Args:
        owner: User whose trash to list.

    Returns:
        Top-level trashed entries.
    """
    return trash_operations.list_trash(owner)


def get_entry(owner: _User, entry_id: uuid.UUID) -> Entry:
    """Fetch one of the user's entries.

    Args:
        owner: Acting user.
        entry_id: Entry to fetch.

    Returns:
        Entry.

    Raises:
        EntryNotFoundError: If the entry does not exist.
        ForbiddenError: If the entry belongs to someone else.
    """
    return _get_owned_entry(owner, entry_id)


def get_entry_path(owner: _User, entry_id: uuid.UUID) -> str:
    """Human path of one of the user's entries."""
    return entry_path(_get_owned_entry(owner, entry_id))


def open_content(owner: _User, entry_id: uuid.UUID) -> IO[bytes]:
    """Open a file's content for reading.

    Trashed files can be read too.

    Args:
        owner: Acting user.
        entry_id: File to read.

    Returns:
        Readable binary stream; the caller closes it.

    Raises:
        InvalidStateError: If the entry is a folder.
        StorageIOError: If the storage backend fails.
    """
    entry = _get_owned_entry(owner, entry_id)
    if entry.is_directory:
        raise InvalidStateError(f'Folders have no content: {entry_id}')
    return get_blob_store().get(entry.blob_key)


def storage_stats(owner: _User) -> StorageStats:
    """Summarize the user's storage.

    Args:
        owner: User to summarize.

    Returns:
        StorageStats.
    """
    quota = get_or_create_quota(owner)
    entries = Entry.objects.owned_by(owner)
    usage_percent = 0.0
    if quota.quota_bytes:
        usage_percent = round(quota.used_bytes / quota.quota_bytes * _PERCENT, 2)

    return StorageStats(
        used_bytes=quota.used_bytes,
        quota_bytes=quota.quota_bytes,
        available_bytes=quota.available_bytes(),
        file_count=entries.active().files().count(),
        folder_count=entries.active().filter(is_directory=True).count(),
        trashed_count=len(trash_operations.list_trash(owner)),
        usage_percent=usage_percent,
    )


def list_activity(owner: _User, limit: int = 50) -> QuerySet[Activity]:
    """Latest recorded changes to the user's drive."""
    return recent_activity(owner, limit)


def _get_owned_entry(owner: _User, entry_id: uuid.UUID) -> Entry:
    entry = entry_store.get_entry(entry_id)
    if entry.owner_id != owner.pk:
        logger.warning(
            'User %s denied access to entry %s',
            owner.username,
            entry_id,
        )
        raise ForbiddenError(f'Entry {entry_id} belongs to another user')
    return entry


def _store_new_content(owner: _User, entry: Entry, content: _Content) -> None:
    try:
        saved_key = get_blob_store().put(entry.blob_key, content)
    except StorageIOError:
        logger.exception(
            'Storage write failed, rolling back entry %s',
            entry.pk,
        )
        _rollback_creation(owner, entry)
        raise

    if saved_key != entry.blob_key:
        Entry.objects.filter(pk=entry.pk).update(blob_key=saved_key)
        entry.blob_key = saved_key


def _rollback_creation(owner: _User, entry: Entry) -> None:
    attempts = settings.DRIVE_ROLLBACK_ATTEMPTS
    for attempt in range(1, attempts + 1):
        try:
            with owner_lock(owner):
                entry_store.discard_entry(entry.pk)
                release(owner, entry.size_bytes)
                discard_activity(entry.pk)
        except EntryNotFoundError:
            logger.warning('Entry %s already gone during rollback', entry.pk)
            return
        except DatabaseError:
            logger.exception(
                'Rollback attempt %d/%d failed for entry %s',
                attempt,
                attempts,
                entry.pk,
            )
        else:
            logger.info('Rolled back creation of entry %s', entry.pk)
            return

    try:
        entry_store.mark_inconsistent(entry.pk)
    except DatabaseError:
        logger.exception('Could not flag entry %s as inconsistent', entry.pk)


def _delete_orphan(blob_key: str) -> None:
    try:
        get_blob_store().delete(blob_key)
    except StorageIOError:
        logger.exception('Failed to delete content (orphaned): %s', blob_key)
