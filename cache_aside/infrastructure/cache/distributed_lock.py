"""
Distributed Lock Coordinator

Short-lived mutual exclusion on a lock key, held in the shared store so that
it works across processes:

    acquire: SET lock_key <token> NX EX <ttl>
    release: compare-and-delete script (delete only while the key still holds
             <token>)

The token proves ownership. If a holder outlives its TTL and another caller
takes the lock over, the original holder's release is a no-op instead of
deleting somebody else's lock.
"""

import uuid
from collections.abc import Callable

from cache_aside.core.config.constants import Stage
from cache_aside.core.exceptions import CacheStoreError
from cache_aside.core.interfaces.store import StoreClient
from cache_aside.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)


def new_lock_token() -> str:
    """Random lock token."""
    return uuid.uuid4().hex


class LockCoordinator:
    """
    Acquires and releases store-backed locks.

    Usage:
        token = await locks.try_acquire("cache:report:Q1:lock", ttl=30)
        if token:
            try:
                ...
            finally:
                await locks.release("cache:report:Q1:lock", token)
    """

    def __init__(self, store: StoreClient, token_factory: Callable[[], str] = new_lock_token):
        self._store = store
        self._token_factory = token_factory

    async def try_acquire(self, lock_key: str, ttl: int) -> str | None:
        """
        Try once to take the lock.

        Returns:
            The lock token on success, None if another holder owns the lock

        Raises:
            CacheStoreError: If the store cannot be reached
        """
        token = self._token_factory()
        acquired = await self._store.set_if_absent(lock_key, token, ttl)

        if acquired:
            log_stage(logger, Stage.LOCK_ACQUIRE, "Lock acquired", level="debug", lock_key=lock_key, ttl=ttl)
            return token

        log_stage(logger, Stage.LOCK_ACQUIRE, "Lock held by another caller", level="debug", lock_key=lock_key)
        return None

    async def release(self, lock_key: str, token: str) -> bool:
        """
        Release the lock if this token still owns it.

        Never raises for store failures: the lock TTL bounds how long a lock
        that could not be released keeps blocking other callers.

        Returns:
            True if the lock was deleted
        """
        try:
            released = await self._store.compare_and_delete(lock_key, token)
        except CacheStoreError as e:
            log_stage(
                logger,
                Stage.LOCK_RELEASE,
                "Error releasing lock",
                level="error",
                lock_key=lock_key,
                error=str(e),
            )
            return False

        if released:
            log_stage(logger, Stage.LOCK_RELEASE, "Lock released", level="debug", lock_key=lock_key)
        else:
            log_stage(
                logger,
                Stage.LOCK_RELEASE,
                "Lock already expired or taken over by another caller",
                level="warning",
                lock_key=lock_key,
            )
        return released
