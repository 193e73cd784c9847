"""Shared fixtures for WebDAV app tests."""

import boto3
import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws

from server.apps.drive.logic.file_operations import upload_file
from server.apps.webdav.dav_provider import DjangoDAVProvider
from server.apps.webdav.domain_controller import ENVIRON_USER_KEY
from server.apps.webdav.path_mapper import PathMapper

User = get_user_model()


@pytest.fixture
def user(db):
    """Create test user.

    Returns:
        User instance for testing.
    """
    return User.objects.create_user(
        username='testuser',
        password='testpass123',
        email='test@example.com',
    )


@pytest.fixture
def other_user(db):
    """Create second test user for isolation tests.

    Returns:
        Second user instance.
    """
    return User.objects.create_user(
        username='otheruser',
        password='testpass123',
        email='other@example.com',
    )


@pytest.fixture
def mock_s3():
    """Mock S3 service with the drive bucket.

    Yields:
        boto3 S3 resource with the bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(
            Bucket=settings.STORAGES['default']['OPTIONS']['bucket_name'],
        )
        yield conn


@pytest.fixture
def path_mapper():
    """Create PathMapper.

    Returns:
        PathMapper instance.
    """
    return PathMapper()


@pytest.fixture
def dav_provider():
    """Create DAV provider instance.

    Returns:
        DjangoDAVProvider instance.
    """
    return DjangoDAVProvider()


def _environ(user, dav_provider):
    return {
        ENVIRON_USER_KEY: user,
        'REQUEST_METHOD': 'GET',
        'PATH_INFO': '/',
        'SERVER_NAME': 'localhost',
        'SERVER_PORT': '8080',
        'wsgi.input': None,
        'wsgidav.provider': dav_provider,
    }


@pytest.fixture
def webdav_environ(user, dav_provider):
    """Create WSGI environ with authenticated user.

    Args:
        user: Test user fixture.
        dav_provider: DAV provider fixture.

    Returns:
        WSGI environ dictionary with user.
    """
    return _environ(user, dav_provider)


@pytest.fixture
def other_environ(other_user, dav_provider):
    """WSGI environ authenticated as the second user."""
    return _environ(other_user, dav_provider)


@pytest.fixture
def make_file(user, mock_s3):
    """Factory uploading a file with the given content.

    Returns:
        Callable (name, content=b'test file content', parent_path='/').
    """

    def _make(name, content=b'test file content', parent_path='/'):
        return upload_file(user, parent_path, name, ContentFile(content))

    return _make
