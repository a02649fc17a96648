"""
cache_aside

Distributed cache-aside engine with stampede protection.

Usage:
------
```python
from cache_aside import init_cache

cache = await init_cache()
report = await cache.get_or_add("report:Q1", lambda: build_report("Q1"), operation_name="Report")
```
"""

from cache_aside.infrastructure.cache import (
    CacheEntryOptions,
    CacheService,
    DistributedCacheAdapter,
    close_cache,
    generate_hashed_cache_key,
    get_cache_service,
    init_cache,
)

__version__ = "1.0.0"

__all__ = [
    "CacheService",
    "get_cache_service",
    "init_cache",
    "close_cache",
    "CacheEntryOptions",
    "DistributedCacheAdapter",
    "generate_hashed_cache_key",
]
