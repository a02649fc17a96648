"""
Pytest Configuration and Shared Test Fixtures

This module provides pytest configuration and reusable fixtures for all tests.
All fixtures defined here are automatically available to all test files.
"""

import os
import sys
from unittest.mock import AsyncMock, MagicMock

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from tests.test_fixtures import CountingProducer, FakeClock, InMemoryStore, RecordingSleep  # noqa: E402


# ============================================================================
# Configuration Fixtures
# ============================================================================


@pytest.fixture
def test_settings():
    """
    Settings tuned for tests.

    Short poll interval and a small wait budget so fallback paths finish fast.
    """
    from cache_aside.core.config.settings import Settings

    return Settings(
        CACHE_KEY_PREFIX="test:",
        CACHE_DEFAULT_TTL=300,
        CACHE_DURATIONS={"Report": 3600, "Lookup": 60},
        CACHE_LOCK_TTL=30,
        CACHE_LOCK_POLL_INTERVAL=0.01,
        CACHE_LOCK_MAX_WAIT_ATTEMPTS=5,
    )


@pytest.fixture
def mock_settings():
    """
    Mock settings for the Redis client layer.

    Returns a MagicMock with the Redis section populated.
    """
    from cache_aside.core.config.settings import Settings

    settings = MagicMock(spec=Settings)

    settings.redis.REDIS_HOST = "localhost"
    settings.redis.REDIS_PORT = 6379
    settings.redis.REDIS_DB = 0
    settings.redis.REDIS_PASSWORD = None
    settings.redis.REDIS_MAX_CONNECTIONS = 100
    settings.redis.REDIS_SOCKET_TIMEOUT = 5
    settings.redis.REDIS_SOCKET_CONNECT_TIMEOUT = 5
    settings.redis.REDIS_HEALTH_CHECK_INTERVAL = 30

    return settings


# ============================================================================
# Environment-Based Integration Toggles
# ============================================================================


@pytest.fixture(scope="session")
def use_real_redis():
    """Check if real Redis should be used for integration tests."""
    return os.getenv("USE_REAL_REDIS", "0").lower() in ("1", "true", "yes")


# ============================================================================
# In-Memory Store Fixtures
# ============================================================================


@pytest.fixture
def clock():
    """Manually advanced clock for TTL checks."""
    return FakeClock()


@pytest.fixture
def store(clock):
    """In-memory StoreClient driven by the fake clock."""
    return InMemoryStore(clock=clock)


@pytest.fixture
def sleeper(clock):
    """Wait-loop sleep that records delays and advances the fake clock."""
    return RecordingSleep(clock)


@pytest.fixture
def producer():
    """Async producer returning a dict."""
    return CountingProducer(value={"id": 1, "name": "widget"})


@pytest.fixture
def cache_service(store, test_settings, sleeper):
    """CacheService over the in-memory store with instant waits."""
    from cache_aside.infrastructure.cache.cache_service import CacheService

    return CacheService(store=store, settings=test_settings, sleep=sleeper)


@pytest.fixture
def mock_store():
    """
    Mock StoreClient for isolated testing.

    Behaves as an empty store: every read misses and every write succeeds.
    """
    from cache_aside.core.interfaces.store import StoreClient

    client = AsyncMock(spec=StoreClient)
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=None)
    client.set_if_absent = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.compare_and_delete = AsyncMock(return_value=True)
    client.list_keys = AsyncMock(return_value=[])

    return client


# ============================================================================
# Redis Mocks
# ============================================================================


@pytest.fixture
def mock_redis():
    """
    Mock redis.asyncio.Redis client.

    register_script returns an awaitable script object; scan_iter yields the
    keys in mock_redis.scan_keys.
    """
    client = MagicMock()
    client.ping = AsyncMock(return_value=True)
    client.get = AsyncMock(return_value=None)
    client.set = AsyncMock(return_value=True)
    client.delete = AsyncMock(return_value=1)
    client.aclose = AsyncMock()

    client.script = AsyncMock(return_value=1)
    client.register_script = MagicMock(return_value=client.script)

    client.scan_keys = []

    async def scan_iter(match=None, count=None):
        for key in client.scan_keys:
            yield key

    client.scan_iter = MagicMock(side_effect=scan_iter)

    return client


# ============================================================================
# Global State Reset
# ============================================================================


@pytest.fixture(autouse=True)
def reset_singletons():
    """Reset module-level singletons between tests."""
    yield

    import cache_aside.core.config.settings as settings_module
    import cache_aside.infrastructure.cache.cache_service as cache_service_module
    import cache_aside.infrastructure.cache.redis_client as redis_client_module

    settings_module._settings = None
    cache_service_module._cache_service = None
    redis_client_module._redis_client = None
