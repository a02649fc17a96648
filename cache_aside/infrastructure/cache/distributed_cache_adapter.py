"""
Distributed Cache Adapter

Byte-payload cache interface for session-style consumers that manage their
own encoding. Entries live in the same key space as the cache service's
entries, so the configured prefix applies.

Expiry rules for set():
- absolute_expiration_relative_to_now, if given
- otherwise sliding_expiration
- otherwise 20 minutes

Sliding expiration is approximated: refresh() re-writes the entry with a
fresh 20 minute expiry.
"""

import math
from dataclasses import dataclass
from datetime import timedelta

from cache_aside.core.config.constants import ADAPTER_DEFAULT_EXPIRY_SECONDS, Stage
from cache_aside.core.exceptions import CacheAsideError
from cache_aside.core.logging.logger import get_logger, log_stage
from cache_aside.infrastructure.cache.cache_service import CacheService

logger = get_logger(__name__)


@dataclass(frozen=True)
class CacheEntryOptions:
    """Expiry options for a single entry."""

    absolute_expiration_relative_to_now: timedelta | None = None
    sliding_expiration: timedelta | None = None

    def expiry_seconds(self) -> int:
        expiry = self.absolute_expiration_relative_to_now
        if expiry is None:
            expiry = self.sliding_expiration
        if expiry is None:
            return ADAPTER_DEFAULT_EXPIRY_SECONDS
        # Redis expiries are whole seconds; round partial seconds up
        return max(1, math.ceil(expiry.total_seconds()))


class DistributedCacheAdapter:
    """
    get/set/refresh/remove over raw payloads.

    Usage:
        adapter = DistributedCacheAdapter(cache_service)
        await adapter.set("session:abc", payload, CacheEntryOptions(sliding_expiration=timedelta(minutes=5)))
        payload = await adapter.get("session:abc")
    """

    def __init__(self, cache: CacheService):
        self._cache = cache

    async def get(self, key: str) -> bytes | None:
        """Payload for key, or None when absent or unreadable."""
        try:
            return await self._cache.get_raw(key)
        except CacheAsideError as e:
            log_stage(logger, Stage.RAW_ACCESS, "Error getting cache key", level="error", cache_key=key, error=str(e))
            return None

    async def set(self, key: str, value: bytes, options: CacheEntryOptions | None = None) -> None:
        """
        Store a payload.

        Raises:
            CacheAsideError: If the write fails (logged first)
        """
        options = options or CacheEntryOptions()
        ttl = options.expiry_seconds()
        try:
            await self._cache.set_raw(key, value, ttl=ttl)
        except CacheAsideError as e:
            log_stage(logger, Stage.RAW_ACCESS, "Error setting cache key", level="error", cache_key=key, error=str(e))
            raise

    async def refresh(self, key: str) -> None:
        """Re-write the current payload with a fresh default expiry."""
        try:
            value = await self._cache.get_raw(key)
            if value is not None:
                await self._cache.set_raw(key, value, ttl=ADAPTER_DEFAULT_EXPIRY_SECONDS)
        except CacheAsideError as e:
            log_stage(
                logger, Stage.RAW_ACCESS, "Error refreshing cache key", level="error", cache_key=key, error=str(e)
            )

    async def remove(self, key: str) -> None:
        try:
            await self._cache.remove(key)
        except CacheAsideError as e:
            log_stage(logger, Stage.INVALIDATION, "Error removing cache key", level="error", cache_key=key, error=str(e))
