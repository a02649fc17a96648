"""
Retry Scheduler

Bounded wait loop used by callers that lost the race for a lock: sleep,
probe the store, repeat until the probe finds something or the attempt
budget runs out.

Built on tenacity:
- stop_after_attempt: the attempt budget
- wait_fixed / wait_exponential: fixed poll interval or capped backoff
- retry_if_result: keep polling while the probe returns None

The sleep function is injectable so tests can drive contention without real
delays. Exceptions raised by the probe are not retried; they propagate to the
caller unchanged (including asyncio.CancelledError).
"""

import asyncio
from collections.abc import Awaitable, Callable
from typing import Literal, TypeVar

from tenacity import AsyncRetrying, RetryCallState, retry_if_result, stop_after_attempt, wait_exponential, wait_fixed

from cache_aside.core.config.constants import Stage
from cache_aside.core.logging.logger import get_logger, log_stage

logger = get_logger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


def _still_waiting(result: object) -> bool:
    return result is None


class RetryScheduler:
    """
    Polls a probe with bounded attempts.

    Usage:
        scheduler = RetryScheduler(poll_interval=0.05, max_attempts=100)
        value = await scheduler.poll(read_entry)   # None when the budget is spent
    """

    def __init__(
        self,
        poll_interval: float,
        max_attempts: int,
        backoff: Literal["fixed", "exponential"] = "fixed",
        max_interval: float | None = None,
        sleep: SleepFunc = asyncio.sleep,
    ):
        self._poll_interval = poll_interval
        self._max_attempts = max_attempts
        self._backoff = backoff
        self._max_interval = max(max_interval or poll_interval, poll_interval)
        self._sleep = sleep

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    def _wait_strategy(self):
        if self._backoff == "exponential":
            return wait_exponential(
                multiplier=self._poll_interval, min=self._poll_interval, max=self._max_interval
            )
        return wait_fixed(self._poll_interval)

    def _log_attempt(self, retry_state: RetryCallState) -> None:
        log_stage(
            logger,
            Stage.WAIT_FOR_HOLDER,
            "Entry not populated yet",
            level="debug",
            attempt=retry_state.attempt_number,
            max_attempts=self._max_attempts,
            next_delay=round(retry_state.next_action.sleep, 3) if retry_state.next_action else None,
        )

    async def poll(self, probe: Callable[[], Awaitable[T | None]]) -> T | None:
        """
        Sleep one poll interval, then probe until it returns a value.

        Every probe is preceded by a sleep, so the holder of the lock gets a
        head start before the first re-read.

        Returns:
            The first non-None probe result, or None once max_attempts probes
            have come back empty
        """
        await self._sleep(self._poll_interval)

        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=self._wait_strategy(),
            retry=retry_if_result(_still_waiting),
            sleep=self._sleep,
            before_sleep=self._log_attempt,
            retry_error_callback=lambda retry_state: None,
        )
        return await retrying(probe)
