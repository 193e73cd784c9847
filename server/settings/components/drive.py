"""Drive (file tree, trash and quota) settings."""

from server.settings.components import config

# Trashed entries older than this are purged by `cleanup_trash`
DRIVE_TRASH_RETENTION_DAYS = config(
    'DRIVE_TRASH_RETENTION_DAYS',
    cast=int,
    default=30,
)

# What restore does when the entry's parent is trashed or gone:
# 'fail' raises OrphanedParentError, 'root' re-parents to the drive root
DRIVE_ORPHAN_RESTORE_POLICY = config(
    'DRIVE_ORPHAN_RESTORE_POLICY',
    default='fail',
)

# Ceiling given to accounts on first use: 10 GB
DRIVE_DEFAULT_QUOTA_BYTES = config(
    'DRIVE_DEFAULT_QUOTA_BYTES',
    cast=int,
    default=10 * 1024 * 1024 * 1024,
)

# Attempts at undoing the metadata of an upload whose bytes failed to store
DRIVE_ROLLBACK_ATTEMPTS = config(
    'DRIVE_ROLLBACK_ATTEMPTS',
    cast=int,
    default=3,
)
