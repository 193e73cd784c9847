"""Path resolution and tree invariants (read-only).

Human paths look like ``/docs/2024/report.pdf``; ``/`` is the account's
virtual root, represented by ``None`` wherever a parent id is expected.
"""

import logging
import uuid
from typing import Any, Final

from server.apps.drive.exceptions import (
    CycleError,
    EntryNotFoundError,
    InvalidParentError,
    SelfContainmentError,
)
from server.apps.drive.models import Entry, EntryState

# User type for Django's dynamic user model
_User = Any

_PATH_SEPARATOR: Final = '/'

# Upper bound on ancestor walks; deeper chains are treated as corrupt
MAX_TREE_DEPTH: Final = 1024

logger = logging.getLogger(__name__)


def split_path(path: str) -> list[str]:
    """Split a human path into name segments.

    Example: '/docs/2024/' -> ['docs', '2024']

    Args:
        path: Path relative to the virtual root.

    Returns:
        Segments, empty for the root.

    Raises:
        EntryNotFoundError: If the path contains '.' or '..' segments.
    """
    segments = [part for part in path.split(_PATH_SEPARATOR) if part]
    for segment in segments:
        if segment in {'.', '..'}:
            raise EntryNotFoundError(f'Relative segments not allowed: {path}')
    return segments


def join_path(parent_path: str, name: str) -> str:
    """Join a folder path and a name.

    Args:
        parent_path: Folder path (e.g., /documents).
        name: Child name (e.g., file.pdf).

    Returns:
        Joined path (e.g., /documents/file.pdf).
    """
    segments = [*split_path(parent_path), name]
    return _PATH_SEPARATOR + _PATH_SEPARATOR.join(segments)


def resolve(owner: _User, path: str) -> uuid.UUID | None:
    """Resolve a path to an entry id.

    Walks from the virtual root matching active entries by exact name.
    Because every hop requires an active entry, anything below a
    trashed folder is unreachable.

    Args:
        owner: Account whose tree to walk.
        path: Path such as '/docs/2024'.

    Returns:
        Entry id, or None for the virtual root.

    Raises:
        EntryNotFoundError: If a segment is missing or a non-directory
            appears mid-path.
    """
    segments = split_path(path)
    current_id: uuid.UUID | None = None

    for position, segment in enumerate(segments):
        row = (
            Entry.objects.owned_by(owner)
            .children_of(current_id)
            .active()
            .filter(name=segment)
            .values_list('id', 'is_directory')
            .first()
        )
        if row is None:
            raise EntryNotFoundError(f'Path not found: {path}')

        entry_id, is_directory = row
        is_last = position == len(segments) - 1
        if not is_last and not is_directory:
            raise EntryNotFoundError(f'Not a folder in path: {path}')
        current_id = entry_id

    return current_id


def resolve_directory(owner: _User, path: str) -> uuid.UUID | None:
    """Resolve a path that must name a folder (or the root).

    Args:
        owner: Account whose tree to walk.
        path: Folder path.

    Returns:
        Folder id, or None for the virtual root.

    Raises:
        EntryNotFoundError: If the path does not resolve.
        InvalidParentError: If the path names a file.
    """
    entry_id = resolve(owner, path)
    if entry_id is None:
        return None

    is_directory = Entry.objects.filter(pk=entry_id).values_list(
        'is_directory',
        flat=True,
    ).get()
    if not is_directory:
        raise InvalidParentError(f'Not a folder: {path}')
    return entry_id


def ancestor_ids(entry_id: uuid.UUID | None) -> list[uuid.UUID]:
    """List ancestors of an entry, nearest first, excluding itself.

    Args:
        entry_id: Entry to start from (None yields nothing).

    Returns:
        Ancestor ids up to (not including) the virtual root.

    Raises:
        CycleError: If the chain revisits an entry or exceeds
            MAX_TREE_DEPTH.
    """
    chain: list[uuid.UUID] = []
    if entry_id is None:
        return chain

    seen = {entry_id}
    current = Entry.objects.filter(pk=entry_id).values_list(
        'parent_id',
        flat=True,
    ).first()

    while current is not None:
        if current in seen or len(chain) >= MAX_TREE_DEPTH:
            logger.error('Corrupt parent chain above entry %s', entry_id)
            raise CycleError(f'Parent chain of {entry_id} does not terminate')
        seen.add(current)
        chain.append(current)
        current = Entry.objects.filter(pk=current).values_list(
            'parent_id',
            flat=True,
        ).first()

    return chain


def validate_move(
    entry_id: uuid.UUID,
    new_parent_id: uuid.UUID | None,
) -> None:
    """Check that moving an entry under a new parent keeps a tree.

    Args:
        entry_id: Entry being moved.
        new_parent_id: Destination folder, None for the root.

    Raises:
        SelfContainmentError: If the destination is the entry itself.
        CycleError: If the destination lies inside the entry's subtree.
    """
    if new_parent_id is None:
        return

    if new_parent_id == entry_id:
        raise SelfContainmentError(f'Cannot move {entry_id} into itself')

    if entry_id in ancestor_ids(new_parent_id):
        raise CycleError(
            f'Cannot move {entry_id} into its descendant {new_parent_id}',
        )


def siblings(parent_id: uuid.UUID | None, owner: _User) -> set[str]:
    """Names of active entries in a folder.

    Args:
        parent_id: Folder id, None for the root.
        owner: Account owning the folder.

    Returns:
        Set of names.
    """
    return set(
        Entry.objects.owned_by(owner)
        .children_of(parent_id)
        .active()
        .values_list('name', flat=True),
    )


def has_trashed_ancestor(entry: Entry) -> bool:
    """Whether any folder above the entry carries the trash marker.

    Args:
        entry: Entry to check.

    Returns:
        True if some ancestor is not active.
    """
    chain = ancestor_ids(entry.pk)
    if not chain:
        return False
    return Entry.objects.filter(pk__in=chain).exclude(
        state=EntryState.ACTIVE,
    ).exists()


def is_effectively_active(entry: Entry) -> bool:
    """Whether the entry is visible in the normal hierarchy.

    Args:
        entry: Entry to check.

    Returns:
        True if the entry and all its ancestors are active.
    """
    return entry.is_active and not has_trashed_ancestor(entry)


def entry_path(entry: Entry) -> str:
    """Build the human path of an entry.

    Args:
        entry: Entry to locate.

    Returns:
        Path such as '/docs/report.pdf'.
    """
    chain = ancestor_ids(entry.pk)
    names = dict(
        Entry.objects.filter(pk__in=chain).values_list('id', 'name'),
    )
    segments = [names[ancestor] for ancestor in reversed(chain)]
    segments.append(entry.name)
    return _PATH_SEPARATOR + _PATH_SEPARATOR.join(segments)
