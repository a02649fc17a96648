"""
Store Client Protocol

This module defines the contract the cache-aside engine needs from the shared
key-value store. Everything the engine coordinates on (entries and locks)
lives behind this interface.

Architectural Decision: Protocol-based abstraction
- The engine never talks to redis directly
- Tests substitute an in-memory implementation
- compare_and_delete is a single call so implementations must make it atomic
"""

from typing import Protocol, runtime_checkable


@runtime_checkable
class StoreClient(Protocol):
    """
    Protocol for the remote key-value store.

    Implementations:
    - RedisClient: production Redis-backed store

    Every method raises a CacheStoreError subclass when the store cannot be
    reached or the command fails.
    """

    async def get(self, key: str) -> bytes | None:
        """
        Get the payload stored under key.

        Returns:
            Payload bytes, or None when the key is absent
        """
        ...

    async def set(self, key: str, value: bytes | str, ttl: int | None = None) -> None:
        """
        Store value under key, replacing any previous value.

        Args:
            key: Store key
            value: Payload
            ttl: Time-to-live in seconds (None = no expiry)
        """
        ...

    async def set_if_absent(self, key: str, value: bytes | str, ttl: int) -> bool:
        """
        Store value only if key does not exist yet.

        Returns:
            True if the value was written
        """
        ...

    async def delete(self, *keys: str) -> int:
        """
        Delete keys.

        Returns:
            Number of keys deleted
        """
        ...

    async def compare_and_delete(self, key: str, expected: bytes | str) -> bool:
        """
        Atomically delete key only while it still holds expected.

        Returns:
            True if the key was deleted
        """
        ...

    async def list_keys(self, pattern: str) -> list[str]:
        """
        List keys matching a glob-style pattern.

        Only used by bulk invalidation; not on the hot path.
        """
        ...
