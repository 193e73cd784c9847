"""Django admin configuration for drive app."""

from django.contrib import admin, messages
from django.db.models import QuerySet
from django.http import HttpRequest
from django.utils.html import format_html

from server.apps.drive.logic.path_resolver import entry_path
from server.apps.drive.logic.quota_operations import recalculate_usage
from server.apps.drive.models import Activity, Entry, UserQuota

_KIB = 1024
_FULL_PERCENT = 100
_WARNING_PERCENT = 90


def _format_bytes(size_bytes: int) -> str:
    """Format bytes in human-readable format.

    Args:
        size_bytes: Size in bytes.

    Returns:
        Formatted size string (e.g., '1.5 MB', '234 KB').
    """
    if size_bytes < _KIB:
        return f'{size_bytes} B'
    if size_bytes < _KIB ** 2:
        return f'{size_bytes / _KIB:.1f} KB'
    if size_bytes < _KIB ** 3:
        return f'{size_bytes / _KIB ** 2:.1f} MB'
    return f'{size_bytes / _KIB ** 3:.1f} GB'


def _usage_percent(quota: UserQuota) -> float:
    if quota.quota_bytes == 0:
        return 0.0
    return (quota.used_bytes / quota.quota_bytes) * _FULL_PERCENT


@admin.register(Entry)
class EntryAdmin(admin.ModelAdmin[Entry]):
    """Admin interface for Entry model.

    Entries are read-only here: changes must go through the drive
    logic so quota and tree invariants hold.
    """

    list_display = [
        'name',
        'owner',
        'path_display',
        'is_directory',
        'size_display',
        'state',
        'updated_at',
    ]

    list_filter = [
        'state',
        'is_directory',
        'mime_type',
    ]

    search_fields = [
        'name',
        'owner__username',
        'checksum_sha256',
        'blob_key',
    ]

    readonly_fields = [
        'id',
        'owner',
        'parent',
        'name',
        'is_directory',
        'size_bytes',
        'mime_type',
        'checksum_sha256',
        'blob_key',
        'state',
        'trashed_at',
        'version',
        'created_at',
        'updated_at',
    ]

    fieldsets = (
        ('Entry', {
            'fields': ('id', 'owner', 'parent', 'name', 'is_directory'),
        }),
        ('Content', {
            'fields': (
                'size_bytes',
                'mime_type',
                'checksum_sha256',
                'blob_key',
            ),
        }),
        ('Lifecycle', {
            'fields': ('state', 'trashed_at', 'version'),
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
        }),
    )

    def path_display(self, obj: Entry) -> str:
        """Display the entry's path in its owner's drive.

        Args:
            obj: Entry instance.

        Returns:
            Path such as '/docs/report.pdf'.
        """
        return entry_path(obj)
    path_display.short_description = 'Path'  # type: ignore[attr-defined]

    def size_display(self, obj: Entry) -> str:
        """Display entry size in human-readable format."""
        if obj.is_directory:
            return '-'
        return _format_bytes(obj.size_bytes)
    size_display.short_description = 'Size'  # type: ignore[attr-defined]

    def has_add_permission(self, request: HttpRequest) -> bool:
        """Entries are created through uploads only."""
        return False

    def has_delete_permission(
        self,
        request: HttpRequest,
        obj: Entry | None = None,
    ) -> bool:
        """Deletion bypasses quota accounting, so it is disabled."""
        return False

    def get_queryset(self, request: HttpRequest) -> QuerySet[Entry]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('owner')


@admin.register(UserQuota)
class UserQuotaAdmin(admin.ModelAdmin[UserQuota]):
    """Admin interface for UserQuota model."""

    list_display = [
        'user',
        'quota_display',
        'used_display',
        'percentage_display',
        'status_display',
    ]

    search_fields = [
        'user__username',
        'user__email',
    ]

    readonly_fields = [
        'user',
        'used_bytes',
    ]

    fieldsets = (
        ('User', {
            'fields': ('user',),
        }),
        ('Quota Settings', {
            'fields': ('quota_bytes',),
        }),
        ('Current Usage', {
            'fields': ('used_bytes',),
        }),
    )

    actions = ['recalculate_selected']

    def quota_display(self, obj: UserQuota) -> str:
        """Display quota in human-readable format.

        Args:
            obj: UserQuota instance.

        Returns:
            Formatted quota string.
        """
        return _format_bytes(obj.quota_bytes)
    quota_display.short_description = 'Quota'  # type: ignore[attr-defined]

    def used_display(self, obj: UserQuota) -> str:
        """Display used bytes in human-readable format.

        Args:
            obj: UserQuota instance.

        Returns:
            Formatted used bytes string.
        """
        return _format_bytes(obj.used_bytes)
    used_display.short_description = 'Used'  # type: ignore[attr-defined]

    def percentage_display(self, obj: UserQuota) -> str:
        """Display percentage of quota used."""
        return f'{_usage_percent(obj):.1f}%'
    percentage_display.short_description = '%'  # type: ignore[attr-defined]

    def status_display(self, obj: UserQuota) -> str:
        """Display status indicator based on usage.

        Args:
            obj: UserQuota instance.

        Returns:
            HTML formatted status indicator.
        """
        percentage = _usage_percent(obj)

        if percentage >= _FULL_PERCENT:
            color = '#dc3545'  # Red - full or over
            status = 'Full'
        elif percentage >= _WARNING_PERCENT:
            color = '#ffc107'  # Yellow - warning
            status = 'Warning'
        else:
            color = '#28a745'  # Green - ok
            status = 'OK'

        return format_html(
            '<span style="color: {color}; font-weight: bold;">'
            '{status}</span>',
            color=color,
            status=status,
        )
    status_display.short_description = 'Status'  # type: ignore[attr-defined]

    @admin.action(description='Recalculate usage from entries')
    def recalculate_selected(
        self,
        request: HttpRequest,
        queryset: QuerySet[UserQuota],
    ) -> None:
        """Rebuild used_bytes of the selected quotas.

        Args:
            request: HTTP request.
            queryset: Selected quotas.
        """
        for quota in queryset.select_related('user'):
            recalculate_usage(quota.user)
        self.message_user(
            request,
            f'Recalculated usage for {queryset.count()} user(s)',
            messages.SUCCESS,
        )

    def get_queryset(self, request: HttpRequest) -> QuerySet[UserQuota]:
        """Optimize queryset with select_related.

        Args:
            request: HTTP request.

        Returns:
            Optimized QuerySet.
        """
        return super().get_queryset(request).select_related('user')


@admin.register(Activity)
class ActivityAdmin(admin.ModelAdmin[Activity]):
    """Read-only view of the drive activity log."""

    list_display = [
        'created_at',
        'user',
        'kind',
        'entry_name',
        'details',
    ]

    list_filter = [
        'kind',
        'created_at',
    ]

    search_fields = [
        'user__username',
        'entry_name',
        'details',
    ]

    readonly_fields = [
        'user',
        'kind',
        'entry_id',
        'entry_name',
        'details',
        'created_at',
    ]

    def has_add_permission(self, request: HttpRequest) -> bool:
        """Activity is only recorded by the drive logic."""
        return False

    def get_queryset(self, request: HttpRequest) -> QuerySet[Activity]:
        """Optimize queryset with select_related."""
        return super().get_queryset(request).select_related('user')
