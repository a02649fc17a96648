"""
Core Interfaces Module

Protocols for the collaborators the cache-aside engine depends on.

Components:
-----------
- **store.py**: StoreClient protocol for the shared key-value store

Usage:
------
```python
from cache_aside.core.interfaces import StoreClient

async def warm(store: StoreClient, key: str) -> bytes | None:
    return await store.get(key)
```
"""

from cache_aside.core.interfaces.store import StoreClient

__all__ = ["StoreClient"]
