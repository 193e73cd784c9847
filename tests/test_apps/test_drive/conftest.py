"""Shared fixtures for drive app tests."""

import boto3
import pytest
from django.conf import settings
from django.contrib.auth import get_user_model
from django.core.files.base import ContentFile
from moto import mock_aws

from server.apps.drive.logic.file_operations import create_folder, upload_file

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
def bucket_name():
    """Name of the bucket configured for the default storage."""
    return settings.STORAGES['default']['OPTIONS']['bucket_name']


@pytest.fixture
def mock_s3(bucket_name):
    """Mock S3 service with the drive bucket.

    Yields:
        boto3 S3 resource with the bucket created.
    """
    with mock_aws():
        conn = boto3.resource('s3', region_name='us-east-1')
        conn.create_bucket(Bucket=bucket_name)
        yield conn


@pytest.fixture
def bucket_keys(mock_s3, bucket_name):
    """Callable listing the object keys currently in the bucket."""

    def _keys() -> set[str]:
        bucket = mock_s3.Bucket(bucket_name)
        return {obj.key for obj in bucket.objects.all()}

    return _keys


@pytest.fixture
def sample_file_content():
    """Sample file content for testing.

    Returns:
        ContentFile with test data.
    """
    return ContentFile(b'test file content', name='test.txt')


@pytest.fixture
def docs_folder(user, mock_s3):
    """Folder /docs owned by the test user."""
    return create_folder(user, '/', 'docs')


@pytest.fixture
def make_file(user, mock_s3):
    """Factory uploading a file with the given size.

    Returns:
        Callable (name, size, parent_path='/', owner=user) -> Entry.
    """

    def _make(name, size=10, parent_path='/', owner=None):
        return upload_file(
            owner or user,
            parent_path,
            name,
            ContentFile(b'x' * size, name=name),
        )

    return _make
