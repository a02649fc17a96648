"""
Exception Module

Structured exception hierarchy for the cache-aside engine.

Module Structure:
-----------------
- **base.py**: CacheAsideError base class
- **cache.py**: Store, key, and payload exceptions

Callers of ``get_or_add`` never see store errors: they are recovered inside
the orchestrator. They do see InvalidCacheKeyError and their own producer's
exceptions.

Usage:
------
```python
from cache_aside.core.exceptions import CacheStoreError, InvalidCacheKeyError
```
"""

from cache_aside.core.exceptions.base import CacheAsideError
from cache_aside.core.exceptions.cache import (
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    CacheSerializationError,
    CacheStoreError,
    InvalidCacheKeyError,
    MalformedEntryError,
)

__all__ = [
    # Base
    "CacheAsideError",
    # Cache
    "CacheError",
    "CacheStoreError",
    "CacheConnectionError",
    "CacheKeyError",
    "InvalidCacheKeyError",
    "MalformedEntryError",
    "CacheSerializationError",
]
