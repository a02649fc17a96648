"""
Key Space

Derives the store key and lock key for a logical cache key:

    store_key = prefix + cache_key
    lock_key  = store_key + ":lock"

Also hosts the hashed key helper for callers whose natural keys are long or
contain characters they'd rather not put in Redis key names.
"""

import hashlib
from collections.abc import Iterable
from typing import NamedTuple

from cache_aside.core.config.constants import LOCK_KEY_SUFFIX
from cache_aside.core.exceptions import InvalidCacheKeyError


class CacheKeys(NamedTuple):
    """Store key and its companion lock key."""

    store_key: str
    lock_key: str


class KeySpace:
    """
    Maps logical cache keys onto the store's key namespace.

    Pure and stateless apart from the configured prefix.
    """

    def __init__(self, prefix: str = ""):
        self._prefix = prefix

    @property
    def prefix(self) -> str:
        return self._prefix

    def store_key(self, cache_key: str) -> str:
        """
        Prefix a logical key.

        Raises:
            InvalidCacheKeyError: If cache_key is empty or None
        """
        if not cache_key:
            raise InvalidCacheKeyError(
                "Cache key must be a non-empty string",
                details={"cache_key": cache_key},
            )
        return f"{self._prefix}{cache_key}"

    def derive_keys(self, cache_key: str) -> CacheKeys:
        """
        Derive (store_key, lock_key) for a logical key.

        Raises:
            InvalidCacheKeyError: If cache_key is empty or None
        """
        store_key = self.store_key(cache_key)
        return CacheKeys(store_key=store_key, lock_key=f"{store_key}{LOCK_KEY_SUFFIX}")

    def full_pattern(self, pattern: str) -> str:
        """
        Prefix a glob pattern (e.g. "user:42:*") for bulk invalidation.

        Raises:
            InvalidCacheKeyError: If pattern is empty or None
        """
        if not pattern:
            raise InvalidCacheKeyError(
                "Key pattern must be a non-empty string",
                details={"pattern": pattern},
            )
        return f"{self._prefix}{pattern}"


def generate_hashed_cache_key(inputs: str | Iterable[str]) -> str:
    """
    Hash an input string, or a comma-joined collection of strings, into a key.

    Uses SHA-256 and returns the lower-case hex digest, so the same inputs
    always produce the same key.

    Args:
        inputs: A string or a collection of strings

    Returns:
        64-character hex digest

    Raises:
        InvalidCacheKeyError: If the input is blank or the collection is empty
    """
    if isinstance(inputs, str) or inputs is None:
        text = inputs
    else:
        parts = list(inputs)
        if not parts:
            raise InvalidCacheKeyError("Input collection cannot be empty")
        text = ",".join(parts)

    if text is None or not text.strip():
        raise InvalidCacheKeyError("Input cannot be null or empty")

    return hashlib.sha256(text.encode("utf-8")).hexdigest()
