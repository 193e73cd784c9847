"""Tests for WebDAV path mapper."""

import uuid

import pytest

from server.apps.drive.models import Entry
from server.apps.webdav.path_mapper import TRASH_FOLDER_NAME, PathMapper

_ENTRY_ID = uuid.UUID('a1b2c3d4e5f60718293a4b5c6d7e8f90')


@pytest.fixture
def mapper():
    """PathMapper under test."""
    return PathMapper()


class TestPathMapperToDrivePath:
    """Tests for to_drive_path method."""

    @pytest.mark.parametrize(('webdav_path', 'drive_path'), [
        ('/', '/'),
        ('', '/'),
        ('/file.txt', '/file.txt'),
        ('/documents/reports/file.pdf', '/documents/reports/file.pdf'),
        ('///file.txt', '/file.txt'),
        ('/documents/', '/documents'),
    ])
    def test_to_drive_path(self, mapper, webdav_path, drive_path):
        """Test leading and trailing slashes are normalized."""
        assert mapper.to_drive_path(webdav_path) == drive_path


class TestPathMapperHelpers:
    """Tests for path helper methods."""

    @pytest.mark.parametrize(('webdav_path', 'parent'), [
        ('/file.txt', '/'),
        ('/documents/reports/file.pdf', '/documents/reports'),
        ('/', '/'),
    ])
    def test_get_parent_path(self, mapper, webdav_path, parent):
        """Test parent of root-level and nested paths."""
        assert mapper.get_parent_path(webdav_path) == parent

    @pytest.mark.parametrize(('webdav_path', 'name'), [
        ('/documents/file.pdf', 'file.pdf'),
        ('/documents/reports/', 'reports'),
        ('/', ''),
    ])
    def test_get_name(self, mapper, webdav_path, name):
        """Test last segment extraction."""
        assert mapper.get_name(webdav_path) == name

    def test_join_paths(self, mapper):
        """Test joining under root and under a folder."""
        assert mapper.join_paths('/', 'file.txt') == '/file.txt'
        assert mapper.join_paths('/documents/', 'file.txt') == (
            '/documents/file.txt'
        )

    def test_is_root(self, mapper):
        """Test root detection."""
        assert mapper.is_root('/') is True
        assert mapper.is_root('') is True
        assert mapper.is_root('/documents') is False


class TestPathMapperValidation:
    """Tests for path validation."""

    def test_validate_normal_path(self, mapper):
        """Test normal paths are accepted."""
        assert mapper.validate_path('/documents/file.pdf') is True
        assert mapper.validate_path('/.hidden/file..txt') is True

    @pytest.mark.parametrize('webdav_path', [
        '/../etc/passwd',
        '/documents/../../secret',
        '/./file.txt',
    ])
    def test_validate_rejects_relative_segments(self, mapper, webdav_path):
        """Test dot segments are rejected."""
        assert mapper.validate_path(webdav_path) is False

    def test_validate_rejects_null_bytes(self, mapper):
        """Test null bytes are rejected."""
        assert mapper.validate_path('/file\x00.txt') is False


class TestPathMapperTrash:
    """Tests for trash path handling."""

    @pytest.mark.parametrize(('webdav_path', 'expected'), [
        ('/.Trash', True),
        ('/.Trash/', True),
        ('/.Trash/report__a1b2c3d4e5f6.pdf', True),
        ('/.Trashcan', False),
        ('/docs/.Trash', False),
    ])
    def test_is_trash_path(self, mapper, webdav_path, expected):
        """Test the trash mount and its members are recognized."""
        assert mapper.is_trash_path(webdav_path) is expected

    def test_is_trash_root(self, mapper):
        """Test only the mount itself is the trash root."""
        assert mapper.is_trash_root('/.Trash/') is True
        assert mapper.is_trash_root('/.Trash/member') is False

    def test_get_trash_item_name(self, mapper):
        """Test member name extraction."""
        assert mapper.get_trash_item_name('/.Trash/a__1.txt') == 'a__1.txt'
        assert mapper.get_trash_item_name('/docs/a.txt') == ''

    def test_trash_member_name_file(self, mapper):
        """Test the id prefix goes before the extension."""
        entry = Entry(id=_ENTRY_ID, name='report.pdf')

        assert mapper.trash_member_name(entry) == 'report__a1b2c3d4e5f6.pdf'

    def test_trash_member_name_folder(self, mapper):
        """Test folders keep their full name as stem."""
        entry = Entry(id=_ENTRY_ID, name='photos.2024', is_directory=True)

        assert mapper.trash_member_name(entry) == 'photos.2024__a1b2c3d4e5f6'

    def test_trash_member_path(self, mapper):
        """Test members live directly under the trash mount."""
        entry = Entry(id=_ENTRY_ID, name='notes')

        assert mapper.trash_member_path(entry) == (
            f'/{TRASH_FOLDER_NAME}/notes__a1b2c3d4e5f6'
        )
