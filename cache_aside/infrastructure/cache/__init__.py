"""
Cache Module

Distributed cache-aside with stampede protection over Redis.
"""

from .cache_service import (
    CacheObserver,
    CacheService,
    close_cache,
    get_cache_service,
    init_cache,
)
from .distributed_cache_adapter import CacheEntryOptions, DistributedCacheAdapter
from .distributed_lock import LockCoordinator
from .duration_resolver import DurationResolver
from .key_space import CacheKeys, KeySpace, generate_hashed_cache_key
from .redis_client import RedisClient, close_redis, get_redis_client, init_redis
from .retry_scheduler import RetryScheduler
from .serializer import JsonSerializer

__all__ = [
    "CacheService",
    "CacheObserver",
    "get_cache_service",
    "init_cache",
    "close_cache",
    "CacheEntryOptions",
    "DistributedCacheAdapter",
    "LockCoordinator",
    "DurationResolver",
    "CacheKeys",
    "KeySpace",
    "generate_hashed_cache_key",
    "RedisClient",
    "get_redis_client",
    "init_redis",
    "close_redis",
    "RetryScheduler",
    "JsonSerializer",
]
