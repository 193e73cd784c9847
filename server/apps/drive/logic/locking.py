"""Per-account serialization of structural changes.

One logical lock per account: the user's quota row, locked with
``SELECT ... FOR UPDATE``. Mutations of different accounts never wait
on each other; mutations of the same account run one at a time and see
the state the previous one committed.
"""

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from django.db import transaction

from server.apps.drive.logic.quota_operations import lock_quota
from server.apps.drive.models import UserQuota

logger = logging.getLogger(__name__)


@contextmanager
def owner_lock(owner: Any) -> Iterator[UserQuota]:
    """Run a block as one transaction holding the owner's lock.

    Everything inside commits together or not at all. No storage or
    network call should happen inside the block.

    Args:
        owner: Account whose drive is being changed.

    Yields:
        The locked UserQuota row.
    """
    with transaction.atomic():
        quota = lock_quota(owner)
        logger.debug('Acquired drive lock for user %s', owner.username)
        yield quota
