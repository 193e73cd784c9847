"""Storage backends for drive content.

The drive keeps only metadata in the database. File bytes go to an
S3-compatible bucket through django-storages; :class:`BlobStore` is the
narrow put/get/delete interface the logic layer talks to.
"""

import logging
import uuid
from typing import IO, TYPE_CHECKING, Any, BinaryIO, final, override

from django.core.files.base import File as DjangoFile
from django.core.files.storage import default_storage
from storages.backends.s3 import S3Storage

from server.apps.drive.exceptions import StorageIOError

if TYPE_CHECKING:
    from django.core.files.storage import Storage

logger = logging.getLogger(__name__)


@final
class FileStorage(S3Storage):
    """Custom S3 storage backend for drive content.

    Extends django-storages S3Storage with enhanced error logging.
    """

    @override
    def save(  # noqa: WPS211
        self,
        name: str,
        content: Any,
        max_length: int | None = None,
    ) -> str:
        """Save file to S3 with error handling and logging.

        Args:
            name: Storage path for the file.
            content: File content (file-like object).
            max_length: Optional maximum length for the filename.

        Returns:
            Actual storage path used (may differ from name if conflicts).

        Raises:
            Exception: If S3 upload fails.
        """
        try:
            logger.info('Uploading file to storage: %s', name)
            saved_name = super().save(name, content, max_length)
            logger.info('Successfully uploaded file: %s', saved_name)
        except Exception:
            logger.exception('Failed to upload file to storage: %s', name)
            raise
        else:
            return saved_name

    @override
    def delete(self, name: str) -> None:
        """Delete file from S3 with error handling and logging.

        Args:
            name: Storage path of file to delete.

        Raises:
            Exception: If S3 delete fails.
        """
        try:
            logger.info('Deleting file from storage: %s', name)
            super().delete(name)
            logger.info('Successfully deleted file: %s', name)
        except Exception:
            logger.exception('Failed to delete file from storage: %s', name)
            raise


def make_blob_key(owner_id: int, entry_id: uuid.UUID, version: int = 1) -> str:
    """Build the storage key for an entry's content.

    Example: (7, 'a1b2...', 1) -> '7/a1b2...'; later versions get a
    '.v{version}' suffix so replaced content never overwrites a live
    object.

    Args:
        owner_id: Owner's user ID.
        entry_id: Entry ID.
        version: Entry version the content belongs to.

    Returns:
        Storage key.
    """
    key = f'{owner_id}/{entry_id}'
    if version > 1:
        return f'{key}.v{version}'
    return key


class BlobStore:
    """Put/get/delete access to entry content.

    Every backend failure is re-raised as :class:`StorageIOError`
    so the logic layer can run its compensation.
    """

    def __init__(self, storage: 'Storage') -> None:
        """Initialize the blob store.

        Args:
            storage: Django storage backend holding the bytes.
        """
        self._storage = storage

    def put(self, key: str, content: BinaryIO | DjangoFile) -> str:
        """Store content under a key.

        Args:
            key: Storage key (see :func:`make_blob_key`).
            content: File-like object to upload.

        Returns:
            Key actually used by the backend.

        Raises:
            StorageIOError: If the upload fails.
        """
        content.seek(0)
        try:
            saved_key = self._storage.save(key, content)
        except Exception as exc:
            raise StorageIOError(f'Failed to store {key}: {exc}') from exc

        if saved_key != key:
            logger.warning(
                'Storage renamed object key: %s -> %s',
                key,
                saved_key,
            )
        return saved_key

    def get(self, key: str) -> IO[bytes]:
        """Open stored content for reading.

        Args:
            key: Storage key.

        Returns:
            Readable binary file object.

        Raises:
            StorageIOError: If the object cannot be opened.
        """
        try:
            return self._storage.open(key, 'rb')
        except Exception as exc:
            raise StorageIOError(f'Failed to read {key}: {exc}') from exc

    def delete(self, key: str) -> None:
        """Delete stored content.

        Args:
            key: Storage key.

        Raises:
            StorageIOError: If the delete fails.
        """
        try:
            self._storage.delete(key)
        except Exception as exc:
            raise StorageIOError(f'Failed to delete {key}: {exc}') from exc

    def delete_many(self, keys: list[str]) -> None:
        """Delete several objects, attempting every key.

        Args:
            keys: Storage keys to delete.

        Raises:
            StorageIOError: If at least one delete failed, after all
                keys were attempted.
        """
        failed: list[str] = []
        for key in keys:
            try:
                self.delete(key)
            except StorageIOError:
                logger.exception('Failed to delete object (orphaned): %s', key)
                failed.append(key)

        if failed:
            raise StorageIOError(
                f'Failed to delete {len(failed)} object(s): {", ".join(failed)}',
            )


def get_blob_store() -> BlobStore:
    """Get a blob store over the configured default storage.

    Returns:
        BlobStore wrapping ``default_storage``.
    """
    return BlobStore(default_storage)
