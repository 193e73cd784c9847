"""Management command to clean up expired entries from trash."""

import logging
from typing import Any

from django.conf import settings
from django.core.management.base import BaseCommand, CommandError

from server.apps.drive.logic.trash_operations import (
    expired_entries,
    sweep_expired,
)

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Permanently delete entries kept in trash past the retention period."""

    help = 'Clean up expired entries from trash'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Show what would be deleted without deleting',
        )
        parser.add_argument(
            '--retention-days',
            type=int,
            default=None,
            help=(
                'Days to keep trashed entries '
                '(default: DRIVE_TRASH_RETENTION_DAYS)'
            ),
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the cleanup command.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If the retention is negative or some content
                could not be removed from storage.
        """
        retention_days = options['retention_days']
        if retention_days is None:
            retention_days = settings.DRIVE_TRASH_RETENTION_DAYS
        if retention_days < 0:
            raise CommandError('--retention-days cannot be negative')

        self.stdout.write(
            f'Looking for entries trashed more than {retention_days} days ago',
        )

        if options['dry_run']:
            self._report_candidates(retention_days)
            return

        report = sweep_expired(retention_days)
        logger.info('Trash cleanup finished: %s', report)
        self.stdout.write(
            self.style.SUCCESS(
                f'Purged {report.purged} entries from trash, '
                f'{report.skipped} skipped, {report.freed_bytes} bytes freed',
            ),
        )

        if report.storage_failures:
            raise CommandError(
                f'Storage cleanup failed for {report.storage_failures} '
                'user(s), see logs for orphaned objects',
            )

    def _report_candidates(self, retention_days: int) -> None:
        candidates = expired_entries(retention_days)
        for entry in candidates:
            self.stdout.write(
                f'Would delete: {entry.name} '
                f'(user: {entry.owner.username}, '
                f'trashed: {entry.trashed_at})',
            )
        self.stdout.write(
            self.style.SUCCESS(
                f'Would purge {len(candidates)} entries from trash',
            ),
        )
