"""Tests for cleanup_trash management command."""

from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from server.apps.drive.exceptions import StorageIOError
from server.apps.drive.infrastructure.storage import BlobStore
from server.apps.drive.logic.file_operations import move_to_trash
from server.apps.drive.logic.quota_operations import usage
from server.apps.drive.models import Entry


def _trash_days_ago(user, entry, days):
    move_to_trash(user, entry.pk)
    Entry.objects.filter(pk=entry.pk).update(
        trashed_at=timezone.now() - timedelta(days=days),
    )


@pytest.mark.django_db
class TestCleanupTrashCommand:
    """Tests for cleanup_trash management command."""

    def test_cleanup_deletes_old_entries(self, user, make_file, bucket_keys):
        """Test cleanup purges entries older than 30 days."""
        entry = make_file('old_file.txt', 100)
        _trash_days_ago(user, entry, 31)

        out = StringIO()
        call_command('cleanup_trash', stdout=out)

        assert not Entry.objects.filter(pk=entry.pk).exists()
        assert usage(user) == 0
        assert bucket_keys() == set()
        assert 'Purged 1 entries' in out.getvalue()
        assert '100 bytes freed' in out.getvalue()

    def test_cleanup_preserves_recent_entries(self, user, make_file):
        """Test cleanup keeps entries trashed less than 30 days ago."""
        entry = make_file('recent_file.txt')
        _trash_days_ago(user, entry, 29)

        out = StringIO()
        call_command('cleanup_trash', stdout=out)

        assert Entry.objects.filter(pk=entry.pk).exists()
        assert 'Purged 0 entries' in out.getvalue()

    def test_cleanup_ignores_active_entries(self, user, make_file):
        """Test cleanup never touches the live tree."""
        entry = make_file('active.txt')

        call_command('cleanup_trash', stdout=StringIO())

        assert Entry.objects.filter(pk=entry.pk).exists()

    def test_dry_run(self, user, make_file):
        """Test dry run lists candidates without deleting."""
        entry = make_file('dry.txt')
        _trash_days_ago(user, entry, 31)

        out = StringIO()
        call_command('cleanup_trash', '--dry-run', stdout=out)

        output = out.getvalue()
        assert 'Would delete: dry.txt (user: testuser' in output
        assert 'Would purge 1 entries' in output
        assert Entry.objects.filter(pk=entry.pk).exists()

    def test_custom_retention(self, user, make_file):
        """Test --retention-days overrides the setting."""
        entry = make_file('week_old.txt')
        _trash_days_ago(user, entry, 8)

        call_command('cleanup_trash', '--retention-days=7', stdout=StringIO())

        assert not Entry.objects.filter(pk=entry.pk).exists()

    def test_retention_from_settings(self, user, make_file, settings):
        """Test the configured retention is the default."""
        settings.DRIVE_TRASH_RETENTION_DAYS = 1
        entry = make_file('two_days.txt')
        _trash_days_ago(user, entry, 2)

        call_command('cleanup_trash', stdout=StringIO())

        assert not Entry.objects.filter(pk=entry.pk).exists()

    def test_negative_retention(self):
        """Test negative retention is refused."""
        with pytest.raises(CommandError, match='negative'):
            call_command('cleanup_trash', '--retention-days=-1')

    def test_multiple_users(self, user, other_user, make_file):
        """Test every account is swept."""
        mine = make_file('mine.txt', 10)
        theirs = make_file('theirs.txt', 20, owner=other_user)
        _trash_days_ago(user, mine, 40)
        _trash_days_ago(other_user, theirs, 40)

        out = StringIO()
        call_command('cleanup_trash', stdout=out)

        assert not Entry.objects.exists()
        assert usage(user) == 0
        assert usage(other_user) == 0
        assert 'Purged 2 entries' in out.getvalue()

    def test_storage_failure_fails_command(self, user, make_file, monkeypatch):
        """Test orphaned objects make the command fail after purging."""
        entry = make_file('old.txt')
        _trash_days_ago(user, entry, 31)

        def _failing_delete(self, key):
            raise StorageIOError(f'Failed to delete {key}')

        monkeypatch.setattr(BlobStore, 'delete', _failing_delete)

        with pytest.raises(CommandError, match='Storage cleanup failed'):
            call_command('cleanup_trash', stdout=StringIO())

        assert not Entry.objects.exists()
