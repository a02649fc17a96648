"""
Cache-Related Exceptions

All exceptions raised by the store client, the serializer and the key space.
"""

from cache_aside.core.exceptions.base import CacheAsideError


class CacheError(CacheAsideError):
    """Base exception for cache-related errors."""
    pass


class CacheStoreError(CacheError):
    """
    Raised when communication with the store fails.

    The orchestrator treats every subclass as "store unavailable" and falls
    back to calling the producer directly.
    """
    pass


class CacheConnectionError(CacheStoreError):
    """
    Raised when unable to reach the store (Redis).

    Common causes:
    - Redis server is down
    - Network connectivity issues or timeouts
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheStoreError):
    """
    Raised when a store command fails for a reason other than connectivity.

    Common causes:
    - Wrong value type stored under the key
    - Script errors
    - Memory limit exceeded
    """
    pass


class InvalidCacheKeyError(CacheError, ValueError):
    """Raised for an empty or missing cache key, before any store call."""
    pass


class MalformedEntryError(CacheError):
    """
    Raised when a stored payload cannot be decoded.

    Recovered by deleting the entry and treating the read as a miss.
    """
    pass


class CacheSerializationError(CacheError):
    """Raised when a value cannot be encoded for storage."""
    pass
