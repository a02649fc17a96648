"""
Store Test Factory

In-memory StoreClient for exercising the cache-aside engine without Redis,
plus small helpers for driving clocks, sleeps and producers from tests.
"""

import asyncio
import fnmatch
import time
from collections.abc import Callable
from typing import Any

from cache_aside.core.exceptions import CacheConnectionError


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, start: float = 0.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryStore:
    """
    Dict-backed StoreClient.

    Conditional set and compare-and-delete run without an await point between
    the check and the write, so they are atomic under asyncio.

    Failure injection:
    - available = False: every command raises CacheConnectionError
    - fail_commands = {"set", ...}: only the named commands fail
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic, latency: float = 0.0):
        self._clock = clock
        self._latency = latency
        self._data: dict[str, tuple[bytes, float | None]] = {}
        self.available = True
        self.fail_commands: set[str] = set()
        self.calls: list[tuple[str, Any]] = []

    # -------------------------------------------------------------------------
    # StoreClient protocol
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> bytes | None:
        await self._enter("get", key)
        return self._live(key)

    async def set(self, key: str, value: bytes | str, ttl: int | None = None) -> None:
        await self._enter("set", key)
        self._write(key, value, ttl)

    async def set_if_absent(self, key: str, value: bytes | str, ttl: int) -> bool:
        await self._enter("set_if_absent", key)
        if self._live(key) is not None:
            return False
        self._write(key, value, ttl)
        return True

    async def delete(self, *keys: str) -> int:
        await self._enter("delete", keys)
        deleted = 0
        for key in keys:
            if self._live(key) is not None:
                del self._data[key]
                deleted += 1
        return deleted

    async def compare_and_delete(self, key: str, expected: bytes | str) -> bool:
        await self._enter("compare_and_delete", key)
        if self._live(key) == _to_bytes(expected):
            del self._data[key]
            return True
        return False

    async def list_keys(self, pattern: str) -> list[str]:
        await self._enter("list_keys", pattern)
        return [key for key in list(self._data) if fnmatch.fnmatchcase(key, pattern) and self._live(key) is not None]

    # -------------------------------------------------------------------------
    # Test helpers
    # -------------------------------------------------------------------------

    def seed(self, key: str, value: bytes | str, ttl: float | None = None) -> None:
        """Write directly, bypassing failure injection and call recording."""
        self._write(key, value, ttl)

    def peek(self, key: str) -> bytes | None:
        return self._live(key)

    def contains(self, key: str) -> bool:
        return self._live(key) is not None

    def ttl_of(self, key: str) -> float | None:
        """Remaining TTL in seconds, or None if the key has no expiry."""
        item = self._data.get(key)
        if item is None or item[1] is None:
            return None
        return item[1] - self._clock()

    def keys(self) -> list[str]:
        return sorted(key for key in list(self._data) if self._live(key) is not None)

    def count(self, command: str) -> int:
        return sum(1 for name, _ in self.calls if name == command)

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    async def _enter(self, command: str, target: Any) -> None:
        await asyncio.sleep(self._latency)
        self.calls.append((command, target))
        if not self.available or command in self.fail_commands:
            raise CacheConnectionError(f"Store unavailable during {command}", details={"target": str(target)})

    def _write(self, key: str, value: bytes | str, ttl: float | None) -> None:
        expires_at = self._clock() + ttl if ttl else None
        self._data[key] = (_to_bytes(value), expires_at)

    def _live(self, key: str) -> bytes | None:
        item = self._data.get(key)
        if item is None:
            return None
        value, expires_at = item
        if expires_at is not None and self._clock() >= expires_at:
            del self._data[key]
            return None
        return value


def _to_bytes(value: bytes | str) -> bytes:
    return value.encode("utf-8") if isinstance(value, str) else bytes(value)


class RecordingSleep:
    """
    Sleep replacement for the wait loop.

    Records each delay, advances an optional FakeClock, and runs a hook after
    the nth sleep (1-based) so tests can change the store mid-wait.
    """

    def __init__(self, clock: FakeClock | None = None):
        self.delays: list[float] = []
        self._clock = clock
        self._hooks: dict[int, Callable[[], None]] = {}

    def after(self, n: int, hook: Callable[[], None]) -> None:
        self._hooks[n] = hook

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self._clock is not None:
            self._clock.advance(delay)
        hook = self._hooks.get(len(self.delays))
        if hook is not None:
            hook()
        await asyncio.sleep(0)


class CountingProducer:
    """Async producer that counts invocations."""

    def __init__(self, value: Any = "produced", delay: float = 0.0, error: Exception | None = None):
        self.value = value
        self.delay = delay
        self.error = error
        self.calls = 0

    async def __call__(self) -> Any:
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.value
