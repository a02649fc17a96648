"""
Unit Tests for RetryScheduler

Tests the bounded wait loop with a recording sleep instead of real delays.
"""

import pytest

from cache_aside.infrastructure.cache.retry_scheduler import RetryScheduler
from tests.test_fixtures import RecordingSleep


class ScriptedProbe:
    """Returns the scripted results in order, then None forever."""

    def __init__(self, *results):
        self._results = list(results)
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        return self._results.pop(0) if self._results else None


@pytest.mark.unit
class TestRetryScheduler:
    """Test polling behaviour."""

    @pytest.mark.asyncio
    async def test_returns_first_value(self):
        """Test that polling stops at the first non-None result."""
        sleep = RecordingSleep()
        probe = ScriptedProbe(None, None, "found")
        scheduler = RetryScheduler(poll_interval=0.05, max_attempts=10, sleep=sleep)

        result = await scheduler.poll(probe)

        assert result == "found"
        assert probe.calls == 3
        assert sleep.delays == [0.05, 0.05, 0.05]

    @pytest.mark.asyncio
    async def test_sleeps_before_first_probe(self):
        """Test that the holder gets a head start."""
        sleep = RecordingSleep()
        scheduler = RetryScheduler(poll_interval=0.05, max_attempts=10, sleep=sleep)

        result = await scheduler.poll(ScriptedProbe("immediate"))

        assert result == "immediate"
        assert sleep.delays == [0.05]

    @pytest.mark.asyncio
    async def test_returns_none_when_budget_exhausted(self):
        """Test that exactly max_attempts probes run before giving up."""
        sleep = RecordingSleep()
        probe = ScriptedProbe()
        scheduler = RetryScheduler(poll_interval=0.05, max_attempts=4, sleep=sleep)

        result = await scheduler.poll(probe)

        assert result is None
        assert probe.calls == 4
        assert len(sleep.delays) == 4

    @pytest.mark.asyncio
    async def test_exponential_backoff_is_capped(self):
        """Test growing delays bounded by max_interval."""
        sleep = RecordingSleep()
        scheduler = RetryScheduler(
            poll_interval=0.1, max_attempts=5, backoff="exponential", max_interval=0.4, sleep=sleep
        )

        await scheduler.poll(ScriptedProbe())

        assert sleep.delays == pytest.approx([0.1, 0.1, 0.2, 0.4, 0.4])

    @pytest.mark.asyncio
    async def test_probe_errors_propagate(self):
        """Test that probe exceptions are not retried."""

        async def failing_probe():
            raise RuntimeError("boom")

        scheduler = RetryScheduler(poll_interval=0.01, max_attempts=5, sleep=RecordingSleep())

        with pytest.raises(RuntimeError, match="boom"):
            await scheduler.poll(failing_probe)

    def test_max_attempts_exposed(self):
        assert RetryScheduler(poll_interval=0.01, max_attempts=7).max_attempts == 7
