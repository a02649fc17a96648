#!/usr/bin/env python3
"""
Distributed Cache-Aside Service with Stampede Protection

Architecture:
    CacheService (Public API)
        ├── KeySpace (store key / lock key derivation)
        ├── JsonSerializer (orjson encode, typed decode)
        ├── DurationResolver (operation name -> TTL)
        ├── LockCoordinator (SET NX + compare-and-delete)
        ├── RetryScheduler (bounded wait loop)
        └── CacheObserver (outcome counters)

get_or_add protocol:
    1. Read the entry. Hit -> return. Malformed -> delete, treat as miss.
    2. Miss -> try to take the key's lock.
       - Got it: read again (someone may have just written it), otherwise
         run the producer, write the result, release the lock.
       - Lost: poll the entry until it appears or the wait budget runs out,
         then run the producer directly without caching.
    3. Store down at any read -> run the producer directly without caching.

All coordination lives in the store, so the guarantee holds across
processes. No in-process locks are used.
"""

import asyncio
import inspect
from collections import Counter
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, TypeVar, Union

from cache_aside.core.config.constants import SCAN_BATCH_SIZE, CacheOutcome, LookupStatus, Stage
from cache_aside.core.config.settings import Settings, get_settings
from cache_aside.core.exceptions import CacheSerializationError, CacheStoreError, MalformedEntryError
from cache_aside.core.interfaces.store import StoreClient
from cache_aside.core.logging.logger import get_logger, log_stage
from cache_aside.infrastructure.cache.distributed_lock import LockCoordinator, new_lock_token
from cache_aside.infrastructure.cache.duration_resolver import DurationResolver
from cache_aside.infrastructure.cache.key_space import CacheKeys, KeySpace
from cache_aside.infrastructure.cache.redis_client import get_redis_client
from cache_aside.infrastructure.cache.retry_scheduler import RetryScheduler, SleepFunc
from cache_aside.infrastructure.cache.serializer import JsonSerializer

logger = get_logger(__name__)

T = TypeVar("T")

Producer = Callable[[], Union[Awaitable[T], T]]


@dataclass(frozen=True)
class Lookup:
    """Tagged result of a single store read."""

    status: LookupStatus
    value: Any = None


_MISS = Lookup(LookupStatus.MISS)
_MALFORMED = Lookup(LookupStatus.MALFORMED)
_UNAVAILABLE = Lookup(LookupStatus.UNAVAILABLE)


# =============================================================================
# OBSERVABILITY
# =============================================================================


class CacheObserver:
    """
    Counts how calls were satisfied.

    Counters:
    - hit / hit_after_lock / hit_after_wait / produced / fallback (get_or_add)
    - miss (plain get)
    - malformed entries removed
    - store errors absorbed
    """

    def __init__(self):
        self._counts: Counter[str] = Counter()

    def record_outcome(self, outcome: CacheOutcome) -> None:
        self._counts[outcome.value] += 1

    def record_miss(self) -> None:
        self._counts["miss"] += 1

    def record_malformed(self) -> None:
        self._counts["malformed"] += 1

    def record_store_error(self) -> None:
        self._counts["store_error"] += 1

    def get_stats(self) -> dict[str, Any]:
        hits = sum(
            self._counts[outcome.value]
            for outcome in (CacheOutcome.HIT, CacheOutcome.HIT_AFTER_LOCK, CacheOutcome.HIT_AFTER_WAIT)
        )
        lookups = hits + self._counts["miss"] + self._counts[CacheOutcome.PRODUCED.value] + self._counts[
            CacheOutcome.FALLBACK.value
        ]

        stats = {outcome.value: self._counts[outcome.value] for outcome in CacheOutcome}
        stats.update(
            {
                "miss": self._counts["miss"],
                "malformed": self._counts["malformed"],
                "store_error": self._counts["store_error"],
                "total_requests": lookups,
                "hit_rate": round(hits / lookups, 3) if lookups else 0.0,
            }
        )
        return stats


# =============================================================================
# PUBLIC API
# =============================================================================


class CacheService:
    """
    Distributed cache-aside service backed by a shared store.

    Usage:
        cache = CacheService()
        await cache.initialize()

        report = await cache.get_or_add(
            "report:Q1",
            lambda: build_report("Q1"),
            operation_name="Report",
            value_type=Report,
        )

        await cache.remove("report:Q1")
        await cache.remove_by_pattern("report:*")
    """

    def __init__(
        self,
        store: StoreClient | None = None,
        settings: Settings | None = None,
        serializer: JsonSerializer | None = None,
        sleep: SleepFunc = asyncio.sleep,
        token_factory: Callable[[], str] = new_lock_token,
    ):
        """
        Initialize the cache service.

        STAGE-0.0: Cache service initialization

        Args:
            store: Store client (default: the global Redis client)
            settings: Settings (default: global settings)
            serializer: Value serializer (default: JsonSerializer)
            sleep: Sleep used by the wait loop
            token_factory: Lock token generator
        """
        settings = settings or get_settings()
        cache_settings = settings.cache

        self._store = store if store is not None else get_redis_client()
        self._keys = KeySpace(cache_settings.CACHE_KEY_PREFIX)
        self._durations = DurationResolver(cache_settings.CACHE_DEFAULT_TTL, cache_settings.CACHE_DURATIONS)
        self._serializer = serializer or JsonSerializer()
        self._locks = LockCoordinator(self._store, token_factory)
        self._waiter = RetryScheduler(
            poll_interval=cache_settings.CACHE_LOCK_POLL_INTERVAL,
            max_attempts=cache_settings.CACHE_LOCK_MAX_WAIT_ATTEMPTS,
            backoff=cache_settings.CACHE_LOCK_BACKOFF,
            max_interval=cache_settings.CACHE_LOCK_MAX_POLL_INTERVAL,
            sleep=sleep,
        )
        self._lock_ttl = cache_settings.CACHE_LOCK_TTL
        self._observer = CacheObserver()
        self._initialized = False

        logger.info(
            "Cache service initialized",
            stage=Stage.INITIALIZATION.value,
            key_prefix=cache_settings.CACHE_KEY_PREFIX,
            default_ttl=cache_settings.CACHE_DEFAULT_TTL,
            lock_ttl=self._lock_ttl,
            max_wait_attempts=cache_settings.CACHE_LOCK_MAX_WAIT_ATTEMPTS,
        )

    async def initialize(self) -> None:
        """
        Connect the store if it needs connecting.

        Raises:
            CacheConnectionError: If the store cannot be reached
        """
        if self._initialized:
            return

        connect = getattr(self._store, "connect", None)
        if connect is not None:
            await connect()
        self._initialized = True

        logger.info("Cache service store connected", stage=Stage.INITIALIZATION.value)

    async def shutdown(self) -> None:
        """Disconnect the store."""
        disconnect = getattr(self._store, "disconnect", None)
        if self._initialized and disconnect is not None:
            await disconnect()
        self._initialized = False

        logger.info("Cache service shutdown", stage=Stage.SHUTDOWN.value)

    # -------------------------------------------------------------------------
    # Cache-aside
    # -------------------------------------------------------------------------

    async def get_or_add(
        self,
        cache_key: str,
        produce: Producer[T],
        operation_name: str = "",
        value_type: Any = None,
    ) -> T:
        """
        Return the cached value for cache_key, producing and caching it on a miss.

        At most one caller across all processes runs produce() for a key at a
        time; the others wait for its result. Store failures are absorbed
        (produce() is called directly), so callers only ever see a value or
        produce()'s own exception.

        Args:
            cache_key: Logical cache key (non-empty)
            produce: Async or sync callable computing the value on a miss
            operation_name: Selects the entry TTL from the configured durations
            value_type: Optional type cached payloads are validated into

        Returns:
            Cached or freshly produced value

        Raises:
            InvalidCacheKeyError: If cache_key is empty
            Exception: Whatever produce() raises, unchanged
        """
        keys = self._keys.derive_keys(cache_key)

        lookup = await self._lookup(keys.store_key, value_type, Stage.INITIAL_READ)
        if lookup.status is LookupStatus.HIT:
            log_stage(logger, Stage.INITIAL_READ, "Cache hit", cache_key=keys.store_key)
            self._observer.record_outcome(CacheOutcome.HIT)
            return lookup.value
        if lookup.status is LookupStatus.UNAVAILABLE:
            return await self._produce_directly(keys.store_key, produce, reason="store_unavailable")

        try:
            token = await self._locks.try_acquire(keys.lock_key, self._lock_ttl)
        except CacheStoreError as e:
            self._observer.record_store_error()
            log_stage(
                logger,
                Stage.LOCK_ACQUIRE,
                "Store error acquiring lock",
                level="error",
                cache_key=keys.store_key,
                error=str(e),
            )
            return await self._produce_directly(keys.store_key, produce, reason="store_unavailable")

        if token is None:
            return await self._wait_for_holder(keys, produce, value_type)

        try:
            return await self._produce_under_lock(keys, produce, operation_name, value_type)
        finally:
            # Shielded so a cancellation arriving now cannot strand the lock
            await asyncio.shield(self._locks.release(keys.lock_key, token))

    async def _produce_under_lock(
        self,
        keys: CacheKeys,
        produce: Producer[T],
        operation_name: str,
        value_type: Any,
    ) -> T:
        lookup = await self._lookup(keys.store_key, value_type, Stage.DOUBLE_CHECK_READ)
        if lookup.status is LookupStatus.HIT:
            log_stage(logger, Stage.DOUBLE_CHECK_READ, "Cache hit after lock acquisition", cache_key=keys.store_key)
            self._observer.record_outcome(CacheOutcome.HIT_AFTER_LOCK)
            return lookup.value
        if lookup.status is LookupStatus.UNAVAILABLE:
            return await self._produce_directly(keys.store_key, produce, reason="store_unavailable")

        log_stage(logger, Stage.PRODUCE, "Cache miss. Fetching from source", cache_key=keys.store_key)
        value = await self._invoke(produce)

        if value is None:
            log_stage(logger, Stage.PRODUCE, "Producer returned no value, nothing cached", cache_key=keys.store_key)
        else:
            await self._write_produced(keys.store_key, value, operation_name)

        self._observer.record_outcome(CacheOutcome.PRODUCED)
        return value

    async def _wait_for_holder(self, keys: CacheKeys, produce: Producer[T], value_type: Any) -> T:
        log_stage(
            logger,
            Stage.WAIT_FOR_HOLDER,
            "Waiting for another caller to populate cache",
            cache_key=keys.store_key,
        )

        async def probe() -> Lookup | None:
            lookup = await self._lookup(keys.store_key, value_type, Stage.WAIT_FOR_HOLDER)
            if lookup.status in (LookupStatus.MISS, LookupStatus.MALFORMED):
                return None
            return lookup

        lookup = await self._waiter.poll(probe)

        if lookup is None:
            log_stage(
                logger,
                Stage.WAIT_FOR_HOLDER,
                "Max retries reached waiting for cache population. Fetching directly",
                level="warning",
                cache_key=keys.store_key,
                max_attempts=self._waiter.max_attempts,
            )
            return await self._produce_directly(keys.store_key, produce, reason="wait_budget_exhausted")
        if lookup.status is LookupStatus.UNAVAILABLE:
            return await self._produce_directly(keys.store_key, produce, reason="store_unavailable")

        log_stage(logger, Stage.WAIT_FOR_HOLDER, "Cache hit after waiting", cache_key=keys.store_key)
        self._observer.record_outcome(CacheOutcome.HIT_AFTER_WAIT)
        return lookup.value

    async def _produce_directly(self, store_key: str, produce: Producer[T], reason: str) -> T:
        """Run the producer without the lock and without caching the result."""
        log_stage(
            logger,
            Stage.DIRECT_FALLBACK,
            "Fetching from source without caching",
            level="warning",
            cache_key=store_key,
            reason=reason,
        )
        self._observer.record_outcome(CacheOutcome.FALLBACK)
        return await self._invoke(produce)

    async def _write_produced(self, store_key: str, value: Any, operation_name: str) -> None:
        """Cache a produced value; failures are logged, never raised."""
        ttl = self._durations.resolve(operation_name)
        try:
            await self._store.set(store_key, self._serializer.encode(value), ttl)
        except CacheSerializationError as e:
            log_stage(
                logger,
                Stage.CACHE_WRITE,
                "Produced value could not be serialized, not cached",
                level="warning",
                cache_key=store_key,
                error=str(e),
            )
            return
        except CacheStoreError as e:
            self._observer.record_store_error()
            log_stage(
                logger,
                Stage.CACHE_WRITE,
                "Store error caching produced value",
                level="warning",
                cache_key=store_key,
                error=str(e),
            )
            return

        log_stage(logger, Stage.CACHE_WRITE, "Cached result", cache_key=store_key, ttl=ttl)

    @staticmethod
    async def _invoke(produce: Producer[T]) -> T:
        result = produce()
        if inspect.isawaitable(result):
            result = await result
        return result

    # -------------------------------------------------------------------------
    # Store reads
    # -------------------------------------------------------------------------

    async def _lookup(self, store_key: str, value_type: Any, stage: Stage) -> Lookup:
        """Read and decode one entry; never raises for store or payload faults."""
        try:
            payload = await self._store.get(store_key)
        except CacheStoreError as e:
            self._observer.record_store_error()
            log_stage(
                logger,
                stage,
                "Store error reading cache entry",
                level="error",
                cache_key=store_key,
                error=str(e),
            )
            return _UNAVAILABLE

        if payload is None:
            return _MISS

        try:
            value = self._serializer.decode(payload, value_type)
        except MalformedEntryError as e:
            self._observer.record_malformed()
            log_stage(
                logger,
                Stage.SELF_HEAL,
                "Malformed cache entry. Removing it",
                level="error",
                cache_key=store_key,
                error=str(e),
            )
            await self._discard(store_key)
            return _MALFORMED

        return Lookup(LookupStatus.HIT, value)

    async def _discard(self, store_key: str) -> None:
        try:
            await self._store.delete(store_key)
        except CacheStoreError as e:
            self._observer.record_store_error()
            log_stage(
                logger,
                Stage.SELF_HEAL,
                "Store error removing malformed entry",
                level="error",
                cache_key=store_key,
                error=str(e),
            )

    # -------------------------------------------------------------------------
    # Plain operations
    # -------------------------------------------------------------------------

    async def get(self, cache_key: str, value_type: Any = None) -> Any | None:
        """
        Get a cached value without producing on a miss.

        Malformed entries are removed; store failures are logged. Both read
        as None.

        Raises:
            InvalidCacheKeyError: If cache_key is empty
        """
        store_key = self._keys.store_key(cache_key)
        lookup = await self._lookup(store_key, value_type, Stage.INITIAL_READ)

        if lookup.status is LookupStatus.HIT:
            log_stage(logger, Stage.INITIAL_READ, "Cache hit", cache_key=store_key)
            self._observer.record_outcome(CacheOutcome.HIT)
            return lookup.value

        log_stage(logger, Stage.INITIAL_READ, "Cache miss", cache_key=store_key)
        self._observer.record_miss()
        return None

    async def set(
        self,
        cache_key: str,
        value: Any,
        operation_name: str = "",
        ttl: int | None = None,
    ) -> bool:
        """
        Write a value, replacing any existing entry.

        None is never written. The TTL is ttl if given, otherwise the duration
        configured for operation_name.

        Returns:
            True if the entry was written

        Raises:
            InvalidCacheKeyError: If cache_key is empty
            ValueError: If ttl is not positive
            CacheSerializationError: If value cannot be encoded
        """
        store_key = self._keys.store_key(cache_key)
        if value is None:
            log_stage(logger, Stage.CACHE_WRITE, "Refusing to cache None", level="debug", cache_key=store_key)
            return False

        payload = self._serializer.encode(value)
        ttl = self._entry_ttl(ttl, operation_name)

        try:
            await self._store.set(store_key, payload, ttl)
        except CacheStoreError as e:
            self._observer.record_store_error()
            log_stage(
                logger,
                Stage.CACHE_WRITE,
                "Store error writing cache entry",
                level="error",
                cache_key=store_key,
                error=str(e),
            )
            return False

        log_stage(logger, Stage.CACHE_WRITE, "Cached value", cache_key=store_key, ttl=ttl)
        return True

    async def remove(self, cache_key: str) -> bool:
        """
        Remove one entry.

        Returns:
            True if an entry was deleted

        Raises:
            InvalidCacheKeyError: If cache_key is empty
        """
        store_key = self._keys.store_key(cache_key)
        try:
            deleted = await self._store.delete(store_key)
        except CacheStoreError as e:
            self._observer.record_store_error()
            log_stage(
                logger,
                Stage.INVALIDATION,
                "Store error removing cache entry",
                level="error",
                cache_key=store_key,
                error=str(e),
            )
            return False

        log_stage(logger, Stage.INVALIDATION, "Cache entry removed", cache_key=store_key)
        return deleted > 0

    async def remove_by_pattern(self, pattern: str) -> int:
        """
        Remove every entry whose logical key matches a glob pattern.

        Scans the whole database, so keep it off hot paths. Every matching key
        is deleted, including lock keys of producers still running.

        Returns:
            Number of entries deleted

        Raises:
            InvalidCacheKeyError: If pattern is empty
        """
        full_pattern = self._keys.full_pattern(pattern)
        deleted = 0

        try:
            keys = await self._store.list_keys(full_pattern)
            for start in range(0, len(keys), SCAN_BATCH_SIZE):
                deleted += await self._store.delete(*keys[start : start + SCAN_BATCH_SIZE])
        except CacheStoreError as e:
            self._observer.record_store_error()
            log_stage(
                logger,
                Stage.INVALIDATION,
                "Store error removing keys by pattern",
                level="error",
                pattern=full_pattern,
                deleted=deleted,
                error=str(e),
            )
            return deleted

        log_stage(logger, Stage.INVALIDATION, "Cache entries removed for pattern", pattern=full_pattern, deleted=deleted)
        return deleted

    # -------------------------------------------------------------------------
    # Raw payloads
    # -------------------------------------------------------------------------

    async def get_raw(self, cache_key: str) -> bytes | None:
        """
        Get a pre-encoded payload without deserializing it.

        Store failures are logged and read as None.
        """
        store_key = self._keys.store_key(cache_key)
        try:
            return await self._store.get(store_key)
        except CacheStoreError as e:
            self._observer.record_store_error()
            log_stage(
                logger,
                Stage.RAW_ACCESS,
                "Store error reading raw entry",
                level="error",
                cache_key=store_key,
                error=str(e),
            )
            return None

    async def set_raw(
        self,
        cache_key: str,
        payload: bytes,
        ttl: int | None = None,
        operation_name: str = "",
    ) -> None:
        """
        Store a pre-encoded payload as-is.

        Raises:
            InvalidCacheKeyError: If cache_key is empty
            ValueError: If ttl is not positive
            CacheStoreError: If the write fails
        """
        store_key = self._keys.store_key(cache_key)
        ttl = self._entry_ttl(ttl, operation_name)
        await self._store.set(store_key, payload, ttl)
        log_stage(logger, Stage.RAW_ACCESS, "Raw entry stored", level="debug", cache_key=store_key, ttl=ttl)

    def _entry_ttl(self, ttl: int | None, operation_name: str) -> int:
        if ttl is None:
            return self._durations.resolve(operation_name)
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        return ttl

    # -------------------------------------------------------------------------
    # Monitoring
    # -------------------------------------------------------------------------

    def _store_connected(self) -> bool:
        is_connected = getattr(self._store, "is_connected", None)
        if is_connected is None:
            return self._initialized
        return bool(is_connected())

    def stats(self) -> dict[str, Any]:
        """Outcome counters and hit rate."""
        return {
            **self._observer.get_stats(),
            "store_connected": self._store_connected(),
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        }

    async def health_check(self) -> dict[str, Any]:
        """Health of the cache service and its store."""
        health: dict[str, Any] = {"status": "healthy", "store": None}

        check = getattr(self._store, "health_check", None)
        if check is None:
            health["store"] = {"status": "unknown"}
            return health

        try:
            store_health = await check()
        except CacheStoreError as e:
            health["status"] = "degraded"
            health["store"] = {"status": "error", "error": str(e)}
            return health

        health["store"] = store_health
        if store_health.get("status") != "healthy":
            health["status"] = "degraded"
        return health


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_cache_service: CacheService | None = None


def get_cache_service() -> CacheService:
    """
    Get the global cache service instance (singleton).

    Returns:
        CacheService: Global cache service instance
    """
    global _cache_service

    if _cache_service is None:
        _cache_service = CacheService()

    return _cache_service


async def init_cache() -> CacheService:
    """
    Initialize and connect the global cache service.

    Returns:
        CacheService: Initialized cache service
    """
    service = get_cache_service()
    await service.initialize()
    return service


async def close_cache() -> None:
    """Shutdown the global cache service."""
    global _cache_service

    if _cache_service:
        await _cache_service.shutdown()
        _cache_service = None
