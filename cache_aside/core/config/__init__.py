"""
Configuration Module

Centralized, type-safe configuration for the cache-aside engine.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Stage identifiers, outcome enums, key suffixes and scripts

Usage:
------
```python
from cache_aside.core.config import get_settings

settings = get_settings()
prefix = settings.cache.CACHE_KEY_PREFIX
lock_ttl = settings.cache.CACHE_LOCK_TTL
```

Environment Variables:
---------------------
```bash
REDIS_HOST=localhost
REDIS_PORT=6379
REDIS_DB=0

CACHE_KEY_PREFIX=orders:
CACHE_DEFAULT_TTL=300
CACHE_DURATIONS={"Report": 3600}
CACHE_LOCK_TTL=30
CACHE_LOCK_POLL_INTERVAL=0.05
CACHE_LOCK_MAX_WAIT_ATTEMPTS=100

LOG_LEVEL=INFO
LOG_FORMAT=json
```
"""

from cache_aside.core.config.settings import (
    CacheSettings,
    LoggingSettings,
    RedisSettings,
    Settings,
    get_settings,
    reload_settings,
)

__all__ = [
    "Settings",
    "RedisSettings",
    "CacheSettings",
    "LoggingSettings",
    "get_settings",
    "reload_settings",
]
