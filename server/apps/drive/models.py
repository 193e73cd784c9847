"""Database models for drive app."""

import uuid
from typing import ClassVar, Final, final, override

from django.conf import settings
from django.db import models

# Constants for field max lengths
NAME_MAX_LENGTH: Final = 255
_MIME_TYPE_MAX_LENGTH: Final = 255
_CHECKSUM_MAX_LENGTH: Final = 64  # SHA256 hex length
_STATE_MAX_LENGTH: Final = 16
_BLOB_KEY_MAX_LENGTH: Final = 255
_ACTIVITY_KIND_MAX_LENGTH: Final = 32


class EntryState(models.TextChoices):
    """Lifecycle state of an entry."""

    ACTIVE = 'active', 'Active'
    TRASHED = 'trashed', 'Trashed'
    # Upload whose metadata could not be rolled back, needs an operator
    INCONSISTENT = 'inconsistent', 'Inconsistent'


class EntryQuerySet(models.QuerySet['Entry']):
    """Query helpers shared by the logic layer."""

    def owned_by(self, owner: object) -> 'EntryQuerySet':
        """Entries of one account."""
        return self.filter(owner=owner)

    def children_of(self, parent_id: uuid.UUID | None) -> 'EntryQuerySet':
        """Direct children of a folder, or of the virtual root for None."""
        if parent_id is None:
            return self.filter(parent__isnull=True)
        return self.filter(parent_id=parent_id)

    def active(self) -> 'EntryQuerySet':
        """Entries in the normal hierarchy."""
        return self.filter(state=EntryState.ACTIVE)

    def trashed(self) -> 'EntryQuerySet':
        """Entries carrying the trash marker themselves."""
        return self.filter(state=EntryState.TRASHED)

    def files(self) -> 'EntryQuerySet':
        """Non-directory entries."""
        return self.filter(is_directory=False)


@final
class Entry(models.Model):
    """A file or folder in a user's drive.

    The tree is stored as back-references: every entry points at its
    containing folder through ``parent``; entries with no parent sit
    directly under the account's virtual root, which is never stored.

    Content bytes live in the storage backend under ``blob_key``;
    this table only tracks metadata.
    """

    id = models.UUIDField(
        primary_key=True,
        default=uuid.uuid4,
        editable=False,
    )

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='drive_entries',
        db_index=True,
    )

    parent = models.ForeignKey(
        'self',
        on_delete=models.CASCADE,
        related_name='children',
        null=True,
        blank=True,
        help_text='Containing folder, empty for root-level entries',
    )

    name = models.CharField(
        max_length=NAME_MAX_LENGTH,
    )

    is_directory = models.BooleanField(
        default=False,
    )

    size_bytes = models.BigIntegerField(
        default=0,
        help_text='Content size in bytes, 0 for folders',
    )

    mime_type = models.CharField(
        max_length=_MIME_TYPE_MAX_LENGTH,
        blank=True,
        default='',
    )

    checksum_sha256 = models.CharField(
        max_length=_CHECKSUM_MAX_LENGTH,
        blank=True,
        default='',
        help_text='SHA256 hash for integrity verification',
    )

    blob_key = models.CharField(
        max_length=_BLOB_KEY_MAX_LENGTH,
        blank=True,
        default='',
        help_text='Object key in storage: {owner_id}/{entry_id}',
    )

    state = models.CharField(
        max_length=_STATE_MAX_LENGTH,
        choices=EntryState.choices,
        default=EntryState.ACTIVE,
        db_index=True,
    )

    trashed_at = models.DateTimeField(
        null=True,
        blank=True,
    )

    version = models.PositiveIntegerField(
        default=1,
        help_text='Incremented on every metadata change',
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    objects = EntryQuerySet.as_manager()

    class Meta:
        """Model metadata."""

        verbose_name = 'Entry'  # type: ignore[mutable-override]
        verbose_name_plural = 'Entries'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-is_directory', 'name']

        indexes: ClassVar[list[models.Index]] = [
            # Optimize directory listing queries
            models.Index(
                fields=['owner', 'parent', 'state'],
                name='drive_entry_listing_idx',
            ),
            # Optimize trash expiry sweeps
            models.Index(
                fields=['state', 'trashed_at'],
                name='drive_entry_trash_idx',
            ),
        ]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            # Active siblings never share a name. Root-level entries have
            # a NULL parent, which the database treats as distinct, so the
            # logic layer checks those under the owner lock.
            models.UniqueConstraint(
                fields=['owner', 'parent', 'name'],
                condition=models.Q(state='active'),
                name='drive_entry_active_sibling_unique',
            ),
            models.CheckConstraint(
                condition=models.Q(size_bytes__gte=0),
                name='drive_entry_size_non_negative',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(is_directory=False) | models.Q(size_bytes=0)
                ),
                name='drive_entry_directory_empty_size',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        kind = 'dir' if self.is_directory else 'file'
        return f'{self.owner_id}:{self.name} ({kind}, {self.state})'

    @property
    def is_active(self) -> bool:
        """Whether the entry itself carries no trash marker."""
        return self.state == EntryState.ACTIVE

    @property
    def is_trashed(self) -> bool:
        """Whether the entry itself is in the trash."""
        return self.state == EntryState.TRASHED


# Default quota: 10 GB in bytes
_DEFAULT_QUOTA_BYTES: Final = 10 * 1024 * 1024 * 1024


@final
class UserQuota(models.Model):
    """Storage quota for a user.

    Tracks user's storage limit and current usage. Usage covers every
    file that has not been purged, trashed files included, so emptying
    the trash is what frees space.

    The row is also the per-account lock: structural changes to a
    user's drive run while holding it with ``select_for_update``.
    """

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='drive_quota',
        primary_key=True,
    )

    quota_bytes = models.BigIntegerField(
        default=_DEFAULT_QUOTA_BYTES,
        help_text='Storage quota limit in bytes',
    )

    used_bytes = models.BigIntegerField(
        default=0,
        help_text='Currently used storage in bytes',
    )

    class Meta:
        """Model metadata."""

        verbose_name = 'User Quota'  # type: ignore[mutable-override]
        verbose_name_plural = 'User Quotas'  # type: ignore[mutable-override]

        constraints: ClassVar[list[models.BaseConstraint]] = [
            models.CheckConstraint(
                condition=models.Q(quota_bytes__gte=0),
                name='drive_quota_bytes_non_negative',
            ),
            models.CheckConstraint(
                condition=models.Q(used_bytes__gte=0),
                name='drive_used_bytes_non_negative',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user}: {self.used_bytes}/{self.quota_bytes}'

    def has_space_for(self, size_bytes: int) -> bool:
        """Check if there's enough space for the given size.

        Args:
            size_bytes: Size to check in bytes.

        Returns:
            True if there's enough space, False otherwise.
        """
        return self.used_bytes + size_bytes <= self.quota_bytes

    def available_bytes(self) -> int:
        """Get available storage space.

        Returns:
            Available bytes (never negative).
        """
        available = self.quota_bytes - self.used_bytes
        return max(0, available)


class ActivityKind(models.TextChoices):
    """What a recorded drive mutation did."""

    FOLDER_CREATED = 'folder_created', 'Folder created'
    FILE_CREATED = 'file_created', 'File created'
    FILE_UPDATED = 'file_updated', 'File updated'
    FILE_COPIED = 'file_copied', 'File copied'
    ENTRY_RENAMED = 'entry_renamed', 'Renamed'
    ENTRY_MOVED = 'entry_moved', 'Moved'
    ENTRY_TRASHED = 'entry_trashed', 'Moved to trash'
    ENTRY_RESTORED = 'entry_restored', 'Restored'
    ENTRY_DELETED = 'entry_deleted', 'Deleted permanently'
    TRASH_EMPTIED = 'trash_emptied', 'Trash emptied'


@final
class Activity(models.Model):
    """Audit record of a committed drive mutation.

    ``entry_id`` is a plain value rather than a foreign key so the
    history outlives purged entries.
    """

    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name='drive_activities',
        db_index=True,
    )

    kind = models.CharField(
        max_length=_ACTIVITY_KIND_MAX_LENGTH,
        choices=ActivityKind.choices,
    )

    entry_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
    )

    entry_name = models.CharField(
        max_length=NAME_MAX_LENGTH,
        blank=True,
        default='',
    )

    details = models.TextField(
        blank=True,
        default='',
    )

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        """Model metadata."""

        verbose_name = 'Activity'  # type: ignore[mutable-override]
        verbose_name_plural = 'Activities'  # type: ignore[mutable-override]
        ordering: ClassVar[list[str]] = ['-created_at']

        indexes: ClassVar[list[models.Index]] = [
            models.Index(
                fields=['user', '-created_at'],
                name='drive_activity_recent_idx',
            ),
        ]

    @override
    def __str__(self) -> str:
        """String representation."""
        return f'{self.user}: {self.kind} {self.entry_name}'
