"""Management command to reconcile drive metadata with quota usage."""

import logging
from typing import Any

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from server.apps.drive.exceptions import StorageIOError
from server.apps.drive.logic.locking import owner_lock
from server.apps.drive.logic.quota_operations import (
    calculate_usage,
    recalculate_usage,
    usage,
)
from server.apps.drive.logic.trash_operations import (
    delete_blobs,
    purge_inconsistent,
)
from server.apps.drive.models import Entry, EntryState

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    """Report inconsistent entries and quota drift, optionally fixing them."""

    help = 'Check inconsistent entries and quota counters'

    def add_arguments(self, parser: Any) -> None:
        """Add command line arguments.

        Args:
            parser: Argument parser.
        """
        parser.add_argument(
            '--fix',
            action='store_true',
            help='Remove inconsistent entries and recalculate usage',
        )
        parser.add_argument(
            '--user',
            dest='username',
            default=None,
            help='Only check this user',
        )

    def handle(self, *args: Any, **options: Any) -> None:
        """Execute the reconcile command.

        Args:
            args: Positional arguments (unused).
            options: Command options.

        Raises:
            CommandError: If the user does not exist or storage cleanup
                failed.
        """
        users = get_user_model().objects.order_by('pk')
        if options['username']:
            users = users.filter(username=options['username'])
            if not users.exists():
                raise CommandError(f'User not found: {options["username"]}')

        problems = 0
        storage_failures = 0
        for user in users:
            user_problems = self._check_user(user)
            problems += user_problems
            if options['fix'] and user_problems:
                storage_failures += self._fix_user(user)

        if not problems:
            self.stdout.write(self.style.SUCCESS('Drive is consistent'))
        elif options['fix']:
            self.stdout.write(
                self.style.SUCCESS(f'Fixed {problems} problem(s)'),
            )
        else:
            self.stdout.write(
                self.style.WARNING(
                    f'Found {problems} problem(s), run with --fix to repair',
                ),
            )

        if storage_failures:
            raise CommandError(
                f'Storage cleanup failed for {storage_failures} user(s)',
            )

    def _check_user(self, user: Any) -> int:
        problems = 0
        inconsistent = Entry.objects.owned_by(user).filter(
            state=EntryState.INCONSISTENT,
        )
        for entry in inconsistent:
            self.stdout.write(
                f'Inconsistent: {entry.name} '
                f'(user: {user.username}, ID: {entry.pk})',
            )
            problems += 1

        recorded = usage(user)
        expected = calculate_usage(user)
        if recorded != expected:
            self.stdout.write(
                f'Usage drift for {user.username}: '
                f'recorded {recorded}, entries sum to {expected}',
            )
            problems += 1
        return problems

    def _fix_user(self, user: Any) -> int:
        with owner_lock(user):
            report = purge_inconsistent(user)
        recalculate_usage(user)

        try:
            delete_blobs(report.blob_keys)
        except StorageIOError as exc:
            # Objects of failed uploads usually never existed
            logger.warning('Cleanup for user %s: %s', user.username, exc)
            self.stderr.write(f'Storage cleanup for {user.username}: {exc}')
            return 1
        return 0
