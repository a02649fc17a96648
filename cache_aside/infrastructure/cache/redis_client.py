"""
Redis Store Client with Connection Pooling

Architecture:
    RedisClient (Public API, implements StoreClient)
        ├── ConnectionManager (Connection lifecycle)
        ├── OperationExecutor (Command execution with error translation)
        └── HealthMonitor (Health checks and pool metrics)

The client works in bytes (decode_responses=False) so that raw payloads
written through set_raw come back unchanged.
"""

import time
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from cache_aside.core.config.constants import COMPARE_AND_DELETE_SCRIPT, SCAN_BATCH_SIZE, Stage
from cache_aside.core.config.settings import Settings, get_settings
from cache_aside.core.exceptions import CacheConnectionError, CacheKeyError, CacheStoreError
from cache_aside.core.logging.logger import get_logger

logger = get_logger(__name__)


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Pool Configuration (from settings):
    - Max connections
    - Socket and connect timeouts
    - Health check interval
    - Database selector
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis with connection pooling.

        STAGE-REDIS.2: Connection establishment

        Raises:
            CacheConnectionError: If connection fails
        """
        if self._is_connected and self._client:
            return self._client

        redis_settings = self._settings.redis

        try:
            self._pool = ConnectionPool(
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                db=redis_settings.REDIS_DB,
                password=redis_settings.REDIS_PASSWORD,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
                health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
            )

            self._client = redis.Redis(connection_pool=self._pool)

            # Verify the connection before handing the client out
            await self._client.ping()

            self._is_connected = True

            logger.info(
                "Redis connected successfully",
                stage=Stage.REDIS.value,
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                db=redis_settings.REDIS_DB,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
            )

            return self._client

        except (ConnectionError, TimeoutError) as e:
            logger.error("Failed to connect to Redis", stage=Stage.REDIS.value, error=str(e))
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={
                    "host": redis_settings.REDIS_HOST,
                    "port": redis_settings.REDIS_PORT,
                },
            ) from e

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-REDIS.3: Connection cleanup
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        self._client = None
        self._pool = None
        self._is_connected = False

        logger.info("Redis disconnected", stage=Stage.REDIS.value)

    def get_client(self) -> redis.Redis | None:
        """Get the Redis client instance."""
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        """Get the connection pool instance."""
        return self._pool

    def is_connected(self) -> bool:
        """Check if connected to Redis."""
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# Executes Redis commands and translates redis-py errors
# =============================================================================


def _store_error(command: str, exc: RedisError, **details: Any) -> CacheStoreError:
    """Map a redis-py error onto the library hierarchy."""
    error_cls = CacheConnectionError if isinstance(exc, (ConnectionError, TimeoutError)) else CacheKeyError
    return error_cls.from_exception(exc, message=f"Redis {command} failed: {exc}", **details)


class OperationExecutor:
    """
    Executes the store operations the cache-aside engine needs.

    Error Handling Strategy:
    - Catch RedisError exceptions
    - Log error with the command stage and key
    - Raise CacheConnectionError (connectivity) or CacheKeyError (anything else)
    """

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client
        self._compare_and_delete = redis_client.register_script(COMPARE_AND_DELETE_SCRIPT)

    async def get(self, key: str) -> bytes | None:
        """
        Get value from Redis.

        STAGE-REDIS.GET: Redis GET operation
        """
        try:
            return await self._redis.get(key)
        except RedisError as e:
            logger.error("Redis GET failed", stage="REDIS.GET", key=key, error=str(e))
            raise _store_error("GET", e, key=key) from e

    async def set(self, key: str, value: bytes | str, ttl: int | None = None) -> None:
        """
        Set value in Redis, with an optional TTL in seconds.

        STAGE-REDIS.SET: Redis SET operation
        """
        try:
            await self._redis.set(key, value, ex=ttl)
        except RedisError as e:
            logger.error("Redis SET failed", stage="REDIS.SET", key=key, error=str(e))
            raise _store_error("SET", e, key=key) from e

    async def set_if_absent(self, key: str, value: bytes | str, ttl: int) -> bool:
        """
        SET NX EX: write only if the key is absent.

        STAGE-REDIS.SETNX: Conditional set used for lock acquisition
        """
        try:
            result = await self._redis.set(key, value, ex=ttl, nx=True)
            return bool(result)
        except RedisError as e:
            logger.error("Redis SET NX failed", stage="REDIS.SETNX", key=key, error=str(e))
            raise _store_error("SET NX", e, key=key) from e

    async def delete(self, *keys: str) -> int:
        """
        Delete keys from Redis.

        STAGE-REDIS.DEL: Redis DELETE operation
        """
        if not keys:
            return 0
        try:
            return await self._redis.delete(*keys)
        except RedisError as e:
            logger.error("Redis DELETE failed", stage="REDIS.DEL", keys=keys, error=str(e))
            raise _store_error("DELETE", e, keys=list(keys)) from e

    async def compare_and_delete(self, key: str, expected: bytes | str) -> bool:
        """
        Delete key only while it holds expected, in one Lua script call.

        STAGE-REDIS.CAD: Atomic compare-and-delete
        """
        try:
            result = await self._compare_and_delete(keys=[key], args=[expected])
            return int(result) == 1
        except RedisError as e:
            logger.error("Redis compare-and-delete failed", stage="REDIS.CAD", key=key, error=str(e))
            raise _store_error("EVALSHA", e, key=key) from e

    async def list_keys(self, pattern: str) -> list[str]:
        """
        List keys matching pattern with SCAN (non-blocking for the server).

        STAGE-REDIS.SCAN: Key listing for bulk invalidation
        """
        try:
            keys = []
            async for key in self._redis.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
                keys.append(key.decode("utf-8") if isinstance(key, bytes) else key)
            return keys
        except RedisError as e:
            logger.error("Redis SCAN failed", stage="REDIS.SCAN", pattern=pattern, error=str(e))
            raise _store_error("SCAN", e, pattern=pattern) from e


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Monitors Redis health and connection pool metrics.

    Metrics Tracked:
    - Connection status
    - Ping latency
    - Pool size and utilization (warning above 80%)
    """

    def __init__(self, connection_manager: ConnectionManager, settings: Settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        Perform health check on Redis connection.

        STAGE-REDIS.HEALTH: Redis health check
        """
        health: dict[str, Any] = {
            "status": "healthy",
            "connected": self._conn_mgr.is_connected(),
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "db": self._settings.redis.REDIS_DB,
            "pool_size": 0,
            "pool_utilization_pct": 0,
            "pool_warning": False,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if not client:
            health["status"] = "unhealthy"
            health["error"] = "Client not initialized"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)
        except RedisError as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)
            return health

        pool = self._conn_mgr.get_pool()
        if pool and hasattr(pool, "_available_connections"):
            health["pool_size"] = pool.max_connections
            available = len(pool._available_connections)
            in_use = len(getattr(pool, "_in_use_connections", ()))
            utilization = 100.0 * in_use / pool.max_connections if pool.max_connections else 0.0
            health["pool_available"] = available
            health["pool_utilization_pct"] = round(utilization, 1)

            if utilization > 80:
                health["pool_warning"] = True
                logger.warning(
                    "Redis pool utilization high",
                    stage=Stage.REDIS.value,
                    pool_utilization=utilization,
                    max_connections=pool.max_connections,
                )

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async Redis store client implementing the StoreClient protocol.

    Usage:
        client = RedisClient()
        await client.connect()

        await client.set("cache:key", b"value", ttl=300)
        value = await client.get("cache:key")

        await client.disconnect()
    """

    def __init__(self, settings: Settings | None = None):
        """
        Initialize Redis client.

        STAGE-REDIS.1: Client initialization
        """
        self._settings = settings or get_settings()

        self._conn_mgr = ConnectionManager(self._settings)
        self._executor: OperationExecutor | None = None
        self._health_monitor = HealthMonitor(self._conn_mgr, self._settings)

        logger.info(
            "Redis client initialized",
            stage=Stage.REDIS.value,
            host=self._settings.redis.REDIS_HOST,
            port=self._settings.redis.REDIS_PORT,
        )

    async def connect(self) -> None:
        """
        Establish connection to Redis.

        Raises:
            CacheConnectionError: If connection fails
        """
        client = await self._conn_mgr.connect()
        self._executor = OperationExecutor(client)

    async def disconnect(self) -> None:
        """Close Redis connection and pool."""
        await self._conn_mgr.disconnect()
        self._executor = None

    def is_connected(self) -> bool:
        """Check if connected to Redis."""
        return self._conn_mgr.is_connected()

    def _require_executor(self) -> OperationExecutor:
        if self._executor is None:
            raise CacheConnectionError(
                "Redis client is not connected",
                details={"host": self._settings.redis.REDIS_HOST},
            ).with_context(suggestion="call connect() before issuing commands")
        return self._executor

    # -------------------------------------------------------------------------
    # StoreClient protocol, delegated to the OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> bytes | None:
        """Get value from Redis."""
        return await self._require_executor().get(key)

    async def set(self, key: str, value: bytes | str, ttl: int | None = None) -> None:
        """Set value in Redis."""
        await self._require_executor().set(key, value, ttl)

    async def set_if_absent(self, key: str, value: bytes | str, ttl: int) -> bool:
        """Set value only if the key is absent."""
        return await self._require_executor().set_if_absent(key, value, ttl)

    async def delete(self, *keys: str) -> int:
        """Delete keys from Redis."""
        return await self._require_executor().delete(*keys)

    async def compare_and_delete(self, key: str, expected: bytes | str) -> bool:
        """Atomically delete key if it holds expected."""
        return await self._require_executor().compare_and_delete(key, expected)

    async def list_keys(self, pattern: str) -> list[str]:
        """List keys matching pattern."""
        return await self._require_executor().list_keys(pattern)

    async def health_check(self) -> dict[str, Any]:
        """Perform health check on Redis connection."""
        return await self._health_monitor.health_check()


# =============================================================================
# GLOBAL INSTANCE (SINGLETON PATTERN)
# =============================================================================

_redis_client: RedisClient | None = None


def get_redis_client() -> RedisClient:
    """
    Get the global Redis client instance (singleton).

    Returns:
        RedisClient: Global Redis client instance
    """
    global _redis_client

    if _redis_client is None:
        _redis_client = RedisClient()

    return _redis_client


async def init_redis() -> RedisClient:
    """
    Initialize and connect the global Redis client.

    Returns:
        RedisClient: Connected Redis client
    """
    client = get_redis_client()
    await client.connect()
    return client


async def close_redis() -> None:
    """Close the global Redis client."""
    global _redis_client

    if _redis_client:
        await _redis_client.disconnect()
        _redis_client = None
