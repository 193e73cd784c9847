"""Tests for the drive service facade."""

import uuid

import pytest
from django.core.files.base import ContentFile
from django.db import DatabaseError

from server.apps.drive.exceptions import (
    CycleError,
    EntryNotFoundError,
    ForbiddenError,
    InvalidNameError,
    InvalidParentError,
    InvalidStateError,
    NameConflictError,
    QuotaExceededError,
    StorageIOError,
)
from server.apps.drive.infrastructure.storage import BlobStore
from server.apps.drive.logic import entry_store, file_operations
from server.apps.drive.logic.quota_operations import set_quota, usage
from server.apps.drive.models import Activity, ActivityKind, Entry, EntryState


def _names(entries):
    return [entry.name for entry in entries]


def _failing_put(self, key, content):
    raise StorageIOError(f'Failed to store {key}: backend down')


@pytest.mark.django_db
class TestDriveLifecycle:
    """End-to-end flows across folders, trash and quota."""

    def test_folder_file_trash_restore_purge(self, user, mock_s3, bucket_keys):
        """Test the full lifecycle of a file and its quota charge."""
        set_quota(user, 1000)
        file_operations.create_folder(user, '/', 'docs')
        entry = file_operations.upload_file(
            user,
            '/docs',
            'a.txt',
            ContentFile(b'x' * 500),
        )
        assert usage(user) == 500

        file_operations.rename_entry(user, entry.pk, 'b.txt')
        listing = file_operations.list_directory(user, '/docs')
        assert _names(listing) == ['b.txt']
        assert listing[0].size_bytes == 500

        file_operations.move_to_trash(user, entry.pk)
        assert file_operations.list_directory(user, '/docs') == []
        assert _names(file_operations.list_trash(user)) == ['b.txt']
        assert usage(user) == 500

        file_operations.restore(user, entry.pk)
        assert _names(file_operations.list_directory(user, '/docs')) == ['b.txt']

        file_operations.move_to_trash(user, entry.pk)
        report = file_operations.delete_permanent(user, entry.pk)

        assert report.freed_bytes == 500
        assert usage(user) == 0
        assert bucket_keys() == set()

    def test_upload_over_quota(self, user, mock_s3, bucket_keys):
        """Test a rejected upload leaves no entry and no charge."""
        set_quota(user, 1000)
        file_operations.upload_file(user, '/', 'big.bin', ContentFile(b'x' * 900))

        with pytest.raises(QuotaExceededError):
            file_operations.upload_file(
                user,
                '/',
                'more.bin',
                ContentFile(b'x' * 600),
            )

        assert usage(user) == 900
        assert _names(file_operations.list_directory(user)) == ['big.bin']
        assert len(bucket_keys()) == 1

    def test_usage_matches_entry_sizes(self, user, make_file, docs_folder):
        """Test the ledger equals the sum of unpurged file sizes."""
        first = make_file('a.txt', 100)
        make_file('b.txt', 50, parent_path='/docs')
        copy = file_operations.copy_file(user, first.pk, '/docs')
        file_operations.replace_content(user, first.pk, ContentFile(b'y' * 30))
        file_operations.move_to_trash(user, docs_folder.pk)

        expected = sum(
            Entry.objects.owned_by(user).files().values_list(
                'size_bytes',
                flat=True,
            ),
        )

        assert copy.size_bytes == 100
        assert usage(user) == expected == 180


@pytest.mark.django_db
class TestUploadFile:
    """Tests for upload_file."""

    def test_upload_stores_bytes(self, user, mock_s3, sample_file_content):
        """Test metadata and content of an upload."""
        entry = file_operations.upload_file(
            user,
            '/',
            'test.txt',
            sample_file_content,
        )

        assert entry.size_bytes == len(b'test file content')
        assert entry.mime_type == 'text/plain'
        assert len(entry.checksum_sha256) == 64
        assert entry.blob_key == f'{user.pk}/{entry.pk}'
        with file_operations.open_content(user, entry.pk) as stream:
            assert stream.read() == b'test file content'

    def test_explicit_mime_type(self, user, mock_s3):
        """Test a given content type wins over the guess."""
        entry = file_operations.upload_file(
            user,
            '/',
            'data',
            ContentFile(b'{}'),
            mime_type='application/json',
        )

        assert entry.mime_type == 'application/json'

    def test_empty_file(self, user, mock_s3):
        """Test zero-byte uploads."""
        entry = file_operations.upload_file(user, '/', 'empty', ContentFile(b''))

        assert entry.size_bytes == 0
        assert usage(user) == 0

    def test_name_conflict(self, user, make_file):
        """Test uploading over an existing name fails."""
        make_file('a.txt', 10)

        with pytest.raises(NameConflictError):
            make_file('a.txt', 20)

        assert usage(user) == 10

    def test_parent_must_exist(self, user, mock_s3):
        """Test unknown folders."""
        with pytest.raises(EntryNotFoundError):
            file_operations.upload_file(user, '/nope', 'a.txt', ContentFile(b'x'))

    def test_parent_must_be_folder(self, user, make_file):
        """Test files cannot hold uploads."""
        make_file('a.txt')

        with pytest.raises(InvalidParentError):
            make_file('b.txt', parent_path='/a.txt')

    def test_records_activity(self, user, make_file):
        """Test uploads are recorded."""
        entry = make_file('a.txt')

        activity = file_operations.list_activity(user).first()

        assert activity.kind == ActivityKind.FILE_CREATED
        assert activity.entry_id == entry.pk

    def test_storage_failure_rolls_back(self, user, mock_s3, monkeypatch):
        """Test a failed write removes the entry and its reservation."""
        monkeypatch.setattr(BlobStore, 'put', _failing_put)

        with pytest.raises(StorageIOError):
            file_operations.upload_file(user, '/', 'a.txt', ContentFile(b'abc'))

        assert not Entry.objects.exists()
        assert not Activity.objects.exists()
        assert usage(user) == 0

    def test_failed_rollback_marks_inconsistent(
        self,
        user,
        mock_s3,
        monkeypatch,
        settings,
    ):
        """Test an entry that cannot be rolled back is flagged."""
        settings.DRIVE_ROLLBACK_ATTEMPTS = 2
        calls = []

        def _broken_discard(entry_id):
            calls.append(entry_id)
            raise DatabaseError('database unavailable')

        monkeypatch.setattr(BlobStore, 'put', _failing_put)
        monkeypatch.setattr(entry_store, 'discard_entry', _broken_discard)

        with pytest.raises(StorageIOError):
            file_operations.upload_file(user, '/', 'a.txt', ContentFile(b'abc'))

        entry = Entry.objects.get()
        assert len(calls) == 2
        assert entry.state == EntryState.INCONSISTENT
        assert file_operations.list_directory(user) == []
        assert usage(user) == 3


@pytest.mark.django_db
class TestRenameMove:
    """Tests for rename_entry and move_entry."""

    def test_rename_records_activity(self, user, docs_folder):
        """Test renames are logged with old and new names."""
        file_operations.rename_entry(user, docs_folder.pk, 'papers')

        activity = Activity.objects.filter(kind=ActivityKind.ENTRY_RENAMED).get()
        assert activity.details == 'docs -> papers'

    def test_rename_to_same_name(self, user, docs_folder):
        """Test a no-op rename records nothing."""
        file_operations.rename_entry(user, docs_folder.pk, 'docs')

        assert not Activity.objects.filter(
            kind=ActivityKind.ENTRY_RENAMED,
        ).exists()

    def test_rename_forbidden(self, other_user, docs_folder):
        """Test only the owner may rename."""
        with pytest.raises(ForbiddenError):
            file_operations.rename_entry(other_user, docs_folder.pk, 'mine')

    def test_move_file(self, user, make_file, docs_folder):
        """Test moving a file into a folder."""
        entry = make_file('a.txt')

        moved = file_operations.move_entry(user, entry.pk, '/docs')

        assert moved.parent_id == docs_folder.pk
        assert file_operations.get_entry_path(user, entry.pk) == '/docs/a.txt'

    def test_move_folder_keeps_subtree(self, user, make_file, docs_folder):
        """Test moving a folder carries its children along."""
        file_operations.create_folder(user, '/', 'archive')
        make_file('a.txt', parent_path='/docs')

        file_operations.move_entry(user, docs_folder.pk, '/archive')

        listing = file_operations.list_directory(user, '/archive/docs')
        assert _names(listing) == ['a.txt']

    def test_move_into_own_subtree(self, user, docs_folder):
        """Test folders cannot move below themselves."""
        file_operations.create_folder(user, '/docs', 'inner')

        with pytest.raises(CycleError):
            file_operations.move_entry(user, docs_folder.pk, '/docs/inner')

    def test_trash_folder_name_reserved(self, user, docs_folder):
        """Test the root cannot hold an entry named like the trash folder."""
        with pytest.raises(InvalidNameError):
            file_operations.create_folder(user, '/', '.Trash')
        with pytest.raises(InvalidNameError):
            file_operations.rename_entry(user, docs_folder.pk, '.Trash')

        nested = file_operations.create_folder(user, '/docs', '.Trash')

        assert nested.parent_id == docs_folder.pk

    def test_move_with_new_name(self, user, make_file):
        """Test rename during a move."""
        entry = make_file('a.txt')
        file_operations.create_folder(user, '/', 'docs')

        moved = file_operations.move_entry(user, entry.pk, '/docs', 'b.txt')

        assert moved.name == 'b.txt'

    def test_move_forbidden(self, other_user, make_file):
        """Test only the owner may move."""
        entry = make_file('a.txt')

        with pytest.raises(ForbiddenError):
            file_operations.move_entry(other_user, entry.pk, '/')


@pytest.mark.django_db
class TestCopyAndReplace:
    """Tests for copy_file and replace_content."""

    def test_copy(self, user, make_file, docs_folder, bucket_keys):
        """Test the copy has its own bytes and quota charge."""
        source = make_file('a.txt', 10)

        copy = file_operations.copy_file(user, source.pk, '/docs', 'c.txt')

        assert copy.pk != source.pk
        assert copy.checksum_sha256 == source.checksum_sha256
        assert usage(user) == 20
        assert bucket_keys() == {source.blob_key, copy.blob_key}
        with file_operations.open_content(user, copy.pk) as stream:
            assert stream.read() == b'x' * 10

    def test_copy_folder_rejected(self, user, docs_folder):
        """Test folders are not copied."""
        with pytest.raises(InvalidStateError):
            file_operations.copy_file(user, docs_folder.pk, '/', 'other')

    def test_copy_over_quota(self, user, make_file):
        """Test copies are charged like uploads."""
        source = make_file('a.txt', 60)
        set_quota(user, 100)

        with pytest.raises(QuotaExceededError):
            file_operations.copy_file(user, source.pk, '/', 'b.txt')

        assert Entry.objects.count() == 1

    def test_copy_storage_failure(self, user, make_file, monkeypatch):
        """Test a failed copy is rolled back."""
        source = make_file('a.txt', 10)
        monkeypatch.setattr(BlobStore, 'put', _failing_put)

        with pytest.raises(StorageIOError):
            file_operations.copy_file(user, source.pk, '/', 'b.txt')

        assert list(Entry.objects.all()) == [source]
        assert usage(user) == 10

    def test_replace_content(self, user, make_file, bucket_keys):
        """Test new bytes switch in and old bytes are removed."""
        entry = make_file('a.txt', 10)
        old_key = entry.blob_key

        updated = file_operations.replace_content(
            user,
            entry.pk,
            ContentFile(b'new content'),
        )

        assert updated.size_bytes == len(b'new content')
        assert updated.blob_key == f'{old_key}.v2'
        assert bucket_keys() == {updated.blob_key}
        assert usage(user) == len(b'new content')

    def test_replace_over_quota_keeps_old_content(
        self,
        user,
        make_file,
        bucket_keys,
    ):
        """Test a rejected update removes the new object only."""
        entry = make_file('a.txt', 10)
        set_quota(user, 15)

        with pytest.raises(QuotaExceededError):
            file_operations.replace_content(
                user,
                entry.pk,
                ContentFile(b'z' * 20),
            )

        entry.refresh_from_db()
        assert entry.size_bytes == 10
        assert bucket_keys() == {entry.blob_key}
        assert usage(user) == 10

    def test_replace_trashed(self, user, make_file):
        """Test trashed files cannot be overwritten."""
        entry = make_file('a.txt')
        file_operations.move_to_trash(user, entry.pk)

        with pytest.raises(InvalidStateError):
            file_operations.replace_content(user, entry.pk, ContentFile(b'x'))


@pytest.mark.django_db
class TestTrash:
    """Tests for trash handling through the facade."""

    def test_trash_folder_hides_subtree(self, user, make_file, docs_folder):
        """Test children of a trashed folder disappear with it."""
        make_file('a.txt', parent_path='/docs')

        file_operations.move_to_trash(user, docs_folder.pk)

        assert file_operations.list_directory(user) == []
        assert _names(file_operations.list_trash(user)) == ['docs']
        with pytest.raises(EntryNotFoundError):
            file_operations.list_directory(user, '/docs')

    def test_restore_folder_brings_subtree_back(
        self,
        user,
        make_file,
        docs_folder,
    ):
        """Test restoring a folder restores its content."""
        make_file('a.txt', parent_path='/docs')
        file_operations.move_to_trash(user, docs_folder.pk)

        file_operations.restore(user, docs_folder.pk)

        assert _names(file_operations.list_directory(user, '/docs')) == ['a.txt']

    def test_restore_renames_on_conflict(self, user, make_file):
        """Test a restored entry yields to a newer sibling."""
        old = make_file('a.txt')
        file_operations.move_to_trash(user, old.pk)
        make_file('a.txt')

        restored = file_operations.restore(user, old.pk)

        assert restored.name == 'a (restored).txt'

    def test_delete_permanent_requires_trash(self, user, make_file):
        """Test active entries cannot be purged directly."""
        entry = make_file('a.txt')

        with pytest.raises(InvalidStateError):
            file_operations.delete_permanent(user, entry.pk)

    def test_delete_permanent_twice(self, user, make_file):
        """Test a second purge is refused and frees nothing more."""
        entry = make_file('a.txt', 50)
        make_file('b.txt', 30)
        file_operations.move_to_trash(user, entry.pk)
        file_operations.delete_permanent(user, entry.pk)

        with pytest.raises(InvalidStateError):
            file_operations.delete_permanent(user, entry.pk)

        assert usage(user) == 30

    def test_delete_permanent_purged_by_other_user(
        self,
        user,
        other_user,
        make_file,
    ):
        """Test another account sees a purged id as missing."""
        entry = make_file('a.txt')
        file_operations.move_to_trash(user, entry.pk)
        file_operations.delete_permanent(user, entry.pk)

        with pytest.raises(EntryNotFoundError):
            file_operations.delete_permanent(other_user, entry.pk)

    def test_delete_permanent_unknown_id(self, user):
        """Test an id that never existed is not found."""
        with pytest.raises(EntryNotFoundError):
            file_operations.delete_permanent(user, uuid.uuid4())

    def test_delete_permanent_folder(
        self,
        user,
        make_file,
        docs_folder,
        bucket_keys,
    ):
        """Test purging a folder frees every file below it."""
        make_file('a.txt', 10, parent_path='/docs')
        make_file('b.txt', 20, parent_path='/docs')
        file_operations.move_to_trash(user, docs_folder.pk)

        report = file_operations.delete_permanent(user, docs_folder.pk)

        assert report.entries == 3
        assert report.freed_bytes == 30
        assert usage(user) == 0
        assert bucket_keys() == set()

    def test_delete_permanent_storage_failure(
        self,
        user,
        make_file,
        monkeypatch,
    ):
        """Test metadata is gone even when bytes cannot be deleted."""
        entry = make_file('a.txt', 10)
        file_operations.move_to_trash(user, entry.pk)

        def _failing_delete(self, key):
            raise StorageIOError(f'Failed to delete {key}')

        monkeypatch.setattr(BlobStore, 'delete', _failing_delete)

        with pytest.raises(StorageIOError):
            file_operations.delete_permanent(user, entry.pk)

        assert not Entry.objects.exists()
        assert usage(user) == 0

    def test_empty_trash(self, user, make_file, bucket_keys):
        """Test emptying purges only trashed entries."""
        keep = make_file('keep.txt', 5)
        for name in ('a.txt', 'b.txt'):
            file_operations.move_to_trash(user, make_file(name, 10).pk)

        report = file_operations.empty_trash(user)

        assert report.entries == 2
        assert usage(user) == 5
        assert bucket_keys() == {keep.blob_key}
        assert Activity.objects.filter(kind=ActivityKind.TRASH_EMPTIED).exists()
        assert Activity.objects.filter(
            kind=ActivityKind.ENTRY_DELETED,
        ).count() == 2

    def test_trash_forbidden(self, other_user, make_file):
        """Test only the owner may trash."""
        entry = make_file('a.txt')

        with pytest.raises(ForbiddenError):
            file_operations.move_to_trash(other_user, entry.pk)

    def test_trashed_file_still_readable(self, user, make_file):
        """Test trashed content can be opened."""
        entry = make_file('a.txt', 3)
        file_operations.move_to_trash(user, entry.pk)

        with file_operations.open_content(user, entry.pk) as stream:
            assert stream.read() == b'xxx'


@pytest.mark.django_db
class TestReads:
    """Tests for read-only facade operations."""

    def test_list_root_ordering(self, user, make_file):
        """Test folders come first, then names case-insensitively."""
        make_file('b.txt')
        make_file('A.txt')
        file_operations.create_folder(user, '/', 'zeta')

        names = _names(file_operations.list_directory(user))

        assert names == ['zeta', 'A.txt', 'b.txt']

    def test_listing_is_per_owner(self, user, other_user, make_file):
        """Test accounts never see each other's entries."""
        make_file('mine.txt')
        make_file('theirs.txt', owner=other_user)

        assert _names(file_operations.list_directory(user)) == ['mine.txt']

    def test_get_entry_at(self, user, docs_folder):
        """Test path lookup."""
        assert file_operations.get_entry_at(user, '/') is None
        assert file_operations.get_entry_at(user, '/docs') == docs_folder

    def test_get_entry_forbidden(self, other_user, docs_folder):
        """Test foreign ids are refused."""
        with pytest.raises(ForbiddenError):
            file_operations.get_entry(other_user, docs_folder.pk)

    def test_get_entry_missing(self, user):
        """Test unknown ids."""
        with pytest.raises(EntryNotFoundError):
            file_operations.get_entry(user, uuid.uuid4())

    def test_open_folder_content(self, user, docs_folder):
        """Test folders cannot be opened."""
        with pytest.raises(InvalidStateError):
            file_operations.open_content(user, docs_folder.pk)

    def test_storage_stats(self, user, make_file, docs_folder):
        """Test the storage summary."""
        set_quota(user, 1000)
        make_file('a.txt', 100)
        trashed = make_file('b.txt', 150)
        file_operations.move_to_trash(user, trashed.pk)

        stats = file_operations.storage_stats(user)

        assert stats.used_bytes == 250
        assert stats.available_bytes == 750
        assert stats.file_count == 1
        assert stats.folder_count == 1
        assert stats.trashed_count == 1
        assert stats.usage_percent == pytest.approx(25.0)


@pytest.mark.django_db
class TestSearch:
    """Tests for name search."""

    def test_matches_case_insensitively(self, user, make_file, docs_folder):
        """Test substring matches anywhere in the tree, folders first."""
        make_file('Report.pdf')
        make_file('annual report.txt', parent_path='/docs')
        make_file('notes.txt')
        file_operations.create_folder(user, '/docs', 'reports')

        names = _names(file_operations.search(user, 'REPORT'))

        assert names == ['reports', 'annual report.txt', 'Report.pdf']

    def test_hides_trashed_entries(self, user, make_file, docs_folder):
        """Test trashed entries and content of trashed folders never match."""
        trashed = make_file('plan-a.txt')
        make_file('plan-b.txt', parent_path='/docs')
        make_file('plan-c.txt')
        file_operations.move_to_trash(user, trashed.pk)
        file_operations.move_to_trash(user, docs_folder.pk)

        assert _names(file_operations.search(user, 'plan')) == ['plan-c.txt']

    def test_per_owner(self, user, other_user, make_file):
        """Test another account's entries never match."""
        make_file('shared.txt')
        make_file('shared.txt', owner=other_user)

        results = file_operations.search(other_user, 'shared')

        assert [entry.owner for entry in results] == [other_user]

    @pytest.mark.parametrize('query', ['', '   '])
    def test_blank_query(self, user, query):
        """Test blank queries are rejected."""
        with pytest.raises(ValueError, match='query'):
            file_operations.search(user, query)
