"""Persistence of entries and their state transitions.

Functions here enforce per-entry rules (names, parents, tree shape,
state). Callers that change a user's drive hold that user's
:func:`~server.apps.drive.logic.locking.owner_lock`; every function
also runs in its own atomic block so it is safe on its own.
"""

import logging
import uuid
from collections.abc import Iterable
from typing import Any, Final

from django.db import IntegrityError, transaction
from django.utils import timezone

from server.apps.drive.exceptions import (
    CycleError,
    EntryNotFoundError,
    InvalidParentError,
    InvalidStateError,
    NameConflictError,
)
from server.apps.drive.infrastructure.metadata import validate_entry_name
from server.apps.drive.logic.path_resolver import (
    MAX_TREE_DEPTH,
    has_trashed_ancestor,
    is_effectively_active,
    validate_move,
)
from server.apps.drive.models import Entry, EntryState

# User type for Django's dynamic user model
_User = Any

# Fields every mutation touches
_BOOKKEEPING_FIELDS: Final = ('version', 'updated_at')

logger = logging.getLogger(__name__)


def get_entry(entry_id: uuid.UUID) -> Entry:
    """Fetch an entry by id.

    Args:
        entry_id: Entry to fetch.

    Returns:
        Entry instance with its owner loaded.

    Raises:
        EntryNotFoundError: If no such entry exists.
    """
    try:
        return Entry.objects.select_related('owner').get(pk=entry_id)
    except Entry.DoesNotExist as exc:
        raise EntryNotFoundError(f'Entry not found: {entry_id}') from exc


def create_entry(  # noqa: WPS211
    owner: _User,
    parent_id: uuid.UUID | None,
    name: str,
    *,
    is_directory: bool = False,
    size_bytes: int = 0,
    mime_type: str = '',
    checksum: str = '',
    blob_key: str = '',
    entry_id: uuid.UUID | None = None,
) -> Entry:
    """Create an active entry.

    Args:
        owner: Account owning the new entry.
        parent_id: Containing folder, None for the virtual root.
        name: Entry name.
        is_directory: Whether the entry is a folder.
        size_bytes: Content size, ignored for folders.
        mime_type: Advisory content type, ignored for folders.
        checksum: SHA256 hex digest of the content.
        blob_key: Storage key of the content.
        entry_id: Pre-assigned id (lets callers derive the blob key).

    Returns:
        Created Entry.

    Raises:
        InvalidNameError: If the name cannot be stored.
        InvalidParentError: If the parent is unusable.
        NameConflictError: If an active sibling already has the name.
    """
    validate_entry_name(name, at_root=parent_id is None)
    _check_parent(owner, parent_id)
    _ensure_name_free(owner, parent_id, name)

    entry = Entry(
        id=entry_id or uuid.uuid4(),
        owner=owner,
        parent_id=parent_id,
        name=name,
        is_directory=is_directory,
        size_bytes=0 if is_directory else size_bytes,
        mime_type='' if is_directory else mime_type,
        checksum_sha256='' if is_directory else checksum,
        blob_key='' if is_directory else blob_key,
    )
    try:
        with transaction.atomic():
            entry.save(force_insert=True)
    except IntegrityError as exc:
        raise NameConflictError(parent_id, name) from exc

    logger.info(
        'Created %s %s for user %s (ID: %s)',
        'folder' if is_directory else 'file',
        name,
        owner.username,
        entry.pk,
    )
    return entry


def rename_entry(entry_id: uuid.UUID, new_name: str) -> Entry:
    """Rename an entry in place.

    Renaming to the current name changes nothing.

    Args:
        entry_id: Entry to rename.
        new_name: New name.

    Returns:
        Updated Entry.

    Raises:
        EntryNotFoundError: If the entry does not exist.
        InvalidNameError: If the name cannot be stored.
        InvalidStateError: If the entry is trashed.
        NameConflictError: If an active sibling already has the name.
    """
    entry = get_entry(entry_id)
    validate_entry_name(new_name, at_root=entry.parent_id is None)
    _ensure_effectively_active(entry)

    if entry.name == new_name:
        return entry

    _ensure_name_free(entry.owner, entry.parent_id, new_name, entry.pk)
    old_name = entry.name
    entry.name = new_name
    _save_named(entry, ['name'])

    logger.info('Renamed entry %s: %s -> %s', entry.pk, old_name, new_name)
    return entry


def move_entry(
    entry_id: uuid.UUID,
    new_parent_id: uuid.UUID | None,
    new_name: str | None = None,
) -> Entry:
    """Move an entry under another folder, optionally renaming it.

    Args:
        entry_id: Entry to move.
        new_parent_id: Destination folder, None for the virtual root.
        new_name: Name at the destination (defaults to the current name).

    Returns:
        Updated Entry.

    Raises:
        EntryNotFoundError: If the entry does not exist.
        InvalidParentError: If the destination is unusable.
        IllegalMoveError: If the move would break the tree.
        InvalidStateError: If the entry is trashed.
        NameConflictError: If the destination already has the name.
    """
    with transaction.atomic():
        entry = get_entry(entry_id)
        _ensure_effectively_active(entry)

        target_name = new_name if new_name is not None else entry.name
        validate_entry_name(target_name, at_root=new_parent_id is None)
        _check_parent(entry.owner, new_parent_id)
        validate_move(entry.pk, new_parent_id)

        if entry.parent_id == new_parent_id and entry.name == target_name:
            return entry

        _ensure_name_free(entry.owner, new_parent_id, target_name, entry.pk)
        old_parent_id = entry.parent_id
        entry.parent_id = new_parent_id
        entry.name = target_name
        _save_named(entry, ['parent', 'name'])

    logger.info(
        'Moved entry %s: parent %s -> %s as %s',
        entry.pk,
        old_parent_id,
        new_parent_id,
        target_name,
    )
    return entry


def mark_trashed(entry_id: uuid.UUID) -> Entry:
    """Put the trash marker on an entry.

    Descendants of a folder keep their own state; they are hidden
    because an ancestor is trashed.

    Args:
        entry_id: Entry to trash.

    Returns:
        Updated Entry.

    Raises:
        EntryNotFoundError: If the entry does not exist.
        InvalidStateError: If the entry is not active or already hidden
            by a trashed folder.
    """
    entry = get_entry(entry_id)
    if not entry.is_active:
        raise InvalidStateError(f'Entry {entry_id} is {entry.state}')
    if has_trashed_ancestor(entry):
        raise InvalidStateError(f'Entry {entry_id} is inside the trash')

    entry.state = EntryState.TRASHED
    entry.trashed_at = timezone.now()
    _save(entry, ['state', 'trashed_at'])
    return entry


def mark_restored(
    entry_id: uuid.UUID,
    new_name: str | None = None,
    *,
    to_root: bool = False,
) -> Entry:
    """Clear the trash marker of an entry.

    Args:
        entry_id: Trashed entry.
        new_name: Name to restore under (defaults to the current name).
        to_root: Re-parent the entry to the virtual root.

    Returns:
        Updated Entry.

    Raises:
        EntryNotFoundError: If the entry does not exist.
        InvalidStateError: If the entry is not trashed.
        InvalidNameError: If the name is reserved where it lands.
        NameConflictError: If an active sibling already has the name.
    """
    entry = get_entry(entry_id)
    if not entry.is_trashed:
        raise InvalidStateError(f'Entry {entry_id} is {entry.state}')

    if to_root:
        entry.parent_id = None
    if new_name is not None:
        entry.name = new_name
    validate_entry_name(entry.name, at_root=entry.parent_id is None)

    _ensure_name_free(entry.owner, entry.parent_id, entry.name, entry.pk)
    entry.state = EntryState.ACTIVE
    entry.trashed_at = None
    _save_named(entry, ['state', 'trashed_at', 'parent', 'name'])
    return entry


def mark_inconsistent(entry_id: uuid.UUID) -> Entry:
    """Flag an entry whose metadata no longer matches storage.

    Args:
        entry_id: Entry to flag.

    Returns:
        Updated Entry.

    Raises:
        EntryNotFoundError: If the entry does not exist.
    """
    entry = get_entry(entry_id)
    entry.state = EntryState.INCONSISTENT
    _save(entry, ['state'])
    logger.warning(
        'Entry %s of user %s marked inconsistent',
        entry.pk,
        entry.owner.username,
    )
    return entry


def hard_delete(entry_id: uuid.UUID) -> list[Entry]:
    """Remove a trashed entry and everything below it.

    Args:
        entry_id: Trashed entry.

    Returns:
        Removed entries, descendants before ancestors.

    Raises:
        EntryNotFoundError: If the entry does not exist.
        InvalidStateError: If the entry is not trashed.
    """
    with transaction.atomic():
        entry = get_entry(entry_id)
        if not entry.is_trashed:
            raise InvalidStateError(
                f'Only trashed entries can be deleted: {entry_id}',
            )

        removed = subtree(entry)
        Entry.objects.filter(pk__in=[node.pk for node in removed]).delete()

    logger.info(
        'Deleted entry %s with %d descendant(s)',
        entry_id,
        len(removed) - 1,
    )
    return removed


def discard_entry(entry_id: uuid.UUID) -> Entry:
    """Remove a single entry regardless of its state.

    Only used to undo a creation whose content never reached storage.

    Args:
        entry_id: Entry to remove.

    Returns:
        The removed entry (unsaved copy).

    Raises:
        EntryNotFoundError: If the entry does not exist.
    """
    entry = get_entry(entry_id)
    Entry.objects.filter(pk=entry.pk).delete()
    logger.info('Discarded entry %s (%s)', entry_id, entry.name)
    return entry


def list_children(
    parent_id: uuid.UUID | None,
    owner: _User,
    state: str = EntryState.ACTIVE,
) -> list[Entry]:
    """List the children of a folder.

    Ordering: folders first, then name case-insensitively, then the
    exact name so the order is total.

    Args:
        parent_id: Folder id, None for the virtual root.
        owner: Account owning the folder.
        state: Entry state to list.

    Returns:
        Ordered list of entries.
    """
    children = Entry.objects.owned_by(owner).children_of(parent_id).filter(
        state=state,
    )
    return sort_entries(children)


def sort_entries(entries: Iterable[Entry]) -> list[Entry]:
    """Order entries the way folder listings show them."""
    return sorted(
        entries,
        key=lambda entry: (
            not entry.is_directory,
            entry.name.casefold(),
            entry.name,
        ),
    )


def subtree(entry: Entry) -> list[Entry]:
    """Collect an entry and all its descendants, deepest first.

    Args:
        entry: Root of the subtree.

    Returns:
        Entries ordered so every descendant precedes its ancestors.

    Raises:
        CycleError: If the hierarchy is deeper than MAX_TREE_DEPTH or
            loops back on itself.
    """
    levels: list[list[Entry]] = [[entry]]
    seen = {entry.pk}

    while levels[-1]:
        if len(levels) > MAX_TREE_DEPTH:
            raise CycleError(f'Subtree of {entry.pk} is too deep')
        parent_ids = [node.pk for node in levels[-1] if node.is_directory]
        level = list(Entry.objects.filter(parent_id__in=parent_ids))
        for node in level:
            if node.pk in seen:
                raise CycleError(f'Subtree of {entry.pk} loops at {node.pk}')
            seen.add(node.pk)
        levels.append(level)

    return [node for level in reversed(levels) for node in level]


def replace_content(  # noqa: WPS211
    entry_id: uuid.UUID,
    *,
    size_bytes: int,
    mime_type: str,
    checksum: str,
    blob_key: str,
) -> Entry:
    """Point a file entry at new content.

    Args:
        entry_id: File entry.
        size_bytes: New content size.
        mime_type: New content type.
        checksum: New SHA256 hex digest.
        blob_key: Storage key of the new content.

    Returns:
        Updated Entry.

    Raises:
        EntryNotFoundError: If the entry does not exist.
        InvalidStateError: If the entry is a folder or trashed.
    """
    entry = get_entry(entry_id)
    if entry.is_directory:
        raise InvalidStateError(f'Folders have no content: {entry_id}')
    _ensure_effectively_active(entry)

    entry.size_bytes = size_bytes
    entry.mime_type = mime_type
    entry.checksum_sha256 = checksum
    entry.blob_key = blob_key
    _save(entry, ['size_bytes', 'mime_type', 'checksum_sha256', 'blob_key'])
    return entry


def _check_parent(owner: _User, parent_id: uuid.UUID | None) -> None:
    if parent_id is None:
        return

    parent = Entry.objects.filter(pk=parent_id).first()
    if parent is None:
        raise InvalidParentError(f'Parent does not exist: {parent_id}')
    if parent.owner_id != owner.pk:
        raise InvalidParentError(f'Parent belongs to another user: {parent_id}')
    if not parent.is_directory:
        raise InvalidParentError(f'Parent is not a folder: {parent_id}')
    if not is_effectively_active(parent):
        raise InvalidParentError(f'Parent is in the trash: {parent_id}')


def _ensure_name_free(
    owner: _User,
    parent_id: uuid.UUID | None,
    name: str,
    exclude_id: uuid.UUID | None = None,
) -> None:
    # Root-level names are only unique through this check
    clashes = Entry.objects.owned_by(owner).children_of(parent_id).active()
    if exclude_id is not None:
        clashes = clashes.exclude(pk=exclude_id)
    if clashes.filter(name=name).exists():
        raise NameConflictError(parent_id, name)


def _ensure_effectively_active(entry: Entry) -> None:
    if not is_effectively_active(entry):
        raise InvalidStateError(f'Entry {entry.pk} is in the trash')


def _save(entry: Entry, fields: list[str]) -> None:
    entry.version += 1
    entry.save(update_fields=[*fields, *_BOOKKEEPING_FIELDS])


def _save_named(entry: Entry, fields: list[str]) -> None:
    try:
        with transaction.atomic():
            _save(entry, fields)
    except IntegrityError as exc:
        entry.version -= 1
        raise NameConflictError(entry.parent_id, entry.name) from exc
