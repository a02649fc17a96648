"""
Unit Tests for LockCoordinator

Tests token-based acquire and owner-only release against the in-memory store.
"""

import pytest

from cache_aside.core.exceptions import CacheStoreError
from cache_aside.infrastructure.cache.distributed_lock import LockCoordinator, new_lock_token

LOCK_KEY = "test:report:lock"


@pytest.mark.unit
class TestLockAcquire:
    """Test lock acquisition."""

    @pytest.mark.asyncio
    async def test_acquire_returns_token_and_sets_ttl(self, store):
        """Test that a free lock is taken with the requested TTL."""
        locks = LockCoordinator(store, token_factory=lambda: "token-1")

        token = await locks.try_acquire(LOCK_KEY, ttl=30)

        assert token == "token-1"
        assert store.peek(LOCK_KEY) == b"token-1"
        assert store.ttl_of(LOCK_KEY) == 30

    @pytest.mark.asyncio
    async def test_second_acquire_fails_while_held(self, store):
        """Test mutual exclusion."""
        locks = LockCoordinator(store)

        first = await locks.try_acquire(LOCK_KEY, ttl=30)
        second = await locks.try_acquire(LOCK_KEY, ttl=30)

        assert first is not None
        assert second is None

    @pytest.mark.asyncio
    async def test_acquire_succeeds_after_ttl_expiry(self, store, clock):
        """Test that an abandoned lock frees itself."""
        locks = LockCoordinator(store)
        await locks.try_acquire(LOCK_KEY, ttl=30)

        clock.advance(31)

        assert await locks.try_acquire(LOCK_KEY, ttl=30) is not None

    @pytest.mark.asyncio
    async def test_acquire_propagates_store_errors(self, store):
        """Test that the orchestrator gets to decide on store failures."""
        store.available = False
        locks = LockCoordinator(store)

        with pytest.raises(CacheStoreError):
            await locks.try_acquire(LOCK_KEY, ttl=30)

    def test_tokens_are_unique(self):
        assert new_lock_token() != new_lock_token()


@pytest.mark.unit
class TestLockRelease:
    """Test owner-only release."""

    @pytest.mark.asyncio
    async def test_release_with_owning_token(self, store):
        locks = LockCoordinator(store)
        token = await locks.try_acquire(LOCK_KEY, ttl=30)

        assert await locks.release(LOCK_KEY, token) is True
        assert not store.contains(LOCK_KEY)

    @pytest.mark.asyncio
    async def test_release_does_not_touch_foreign_lock(self, store):
        """Test that a stale holder cannot delete its successor's lock."""
        locks = LockCoordinator(store)
        store.seed(LOCK_KEY, "successor-token", ttl=30)

        assert await locks.release(LOCK_KEY, "stale-token") is False
        assert store.peek(LOCK_KEY) == b"successor-token"

    @pytest.mark.asyncio
    async def test_release_swallows_store_errors(self, store):
        """Test that release never raises for store failures."""
        locks = LockCoordinator(store)
        token = await locks.try_acquire(LOCK_KEY, ttl=30)
        store.available = False

        assert await locks.release(LOCK_KEY, token) is False
