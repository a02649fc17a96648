"""
Integration Tests for Stampede Protection

Runs many concurrent callers (and several service instances standing in for
separate processes) against one shared in-memory store with real asyncio
scheduling and short real delays.
"""

import asyncio

import pytest

from cache_aside.core.config.settings import Settings
from cache_aside.infrastructure.cache.cache_service import CacheService
from tests.test_fixtures import CountingProducer, InMemoryStore


@pytest.fixture
def shared_store():
    """Store shared by every service instance; real monotonic clock."""
    return InMemoryStore()


@pytest.fixture
def integration_settings():
    """Generous wait budget (2s) so waiters outlast the slow producers."""
    return Settings(
        CACHE_KEY_PREFIX="it:",
        CACHE_DEFAULT_TTL=300,
        CACHE_LOCK_TTL=5,
        CACHE_LOCK_POLL_INTERVAL=0.01,
        CACHE_LOCK_MAX_WAIT_ATTEMPTS=200,
    )


@pytest.fixture
def make_service(shared_store, integration_settings):
    def factory(**overrides):
        settings = integration_settings.model_copy(update=overrides) if overrides else integration_settings
        return CacheService(store=shared_store, settings=settings)

    return factory


@pytest.mark.integration
class TestSingleProducer:
    """At most one producer runs per key across concurrent callers."""

    @pytest.mark.asyncio
    async def test_concurrent_callers_share_one_production(self, make_service, shared_store):
        service = make_service()
        producer = CountingProducer(value={"report": "Q1"}, delay=0.05)

        results = await asyncio.gather(*(service.get_or_add("report:Q1", producer) for _ in range(10)))

        assert producer.calls == 1
        assert all(result == {"report": "Q1"} for result in results)
        assert shared_store.contains("it:report:Q1")
        assert not shared_store.contains("it:report:Q1:lock")

    @pytest.mark.asyncio
    async def test_separate_instances_coordinate_through_store(self, make_service):
        """Services sharing only the store behave like separate processes."""
        services = [make_service() for _ in range(4)]
        producer = CountingProducer(value="shared", delay=0.05)

        results = await asyncio.gather(
            *(service.get_or_add("report:Q2", producer) for service in services for _ in range(3))
        )

        assert producer.calls == 1
        assert set(results) == {"shared"}

    @pytest.mark.asyncio
    async def test_distinct_keys_do_not_block_each_other(self, make_service):
        service = make_service()
        producers = {key: CountingProducer(value=key, delay=0.05) for key in ("a", "b", "c")}

        results = await asyncio.gather(
            *(service.get_or_add(key, producers[key]) for key in producers for _ in range(5))
        )

        assert all(producer.calls == 1 for producer in producers.values())
        assert sorted(set(results)) == ["a", "b", "c"]

    @pytest.mark.asyncio
    async def test_warm_cache_serves_without_producer(self, make_service):
        service = make_service()
        producer = CountingProducer(value=42)
        await service.get_or_add("answer", producer)

        results = await asyncio.gather(*(service.get_or_add("answer", producer) for _ in range(20)))

        assert results == [42] * 20
        assert producer.calls == 1


@pytest.mark.integration
class TestFailureScenarios:
    """Outages, crashed holders and failing producers."""

    @pytest.mark.asyncio
    async def test_store_outage_every_caller_falls_back(self, make_service, shared_store):
        shared_store.available = False
        service = make_service()
        producer = CountingProducer(value="direct")

        results = await asyncio.gather(*(service.get_or_add("report:Q3", producer) for _ in range(5)))

        assert results == ["direct"] * 5
        assert producer.calls == 5
        assert service.stats()["fallback"] == 5

    @pytest.mark.asyncio
    async def test_lock_of_crashed_holder_expires(self, make_service, shared_store):
        """A lock left behind by a dead process blocks only until its TTL."""
        shared_store.seed("it:report:Q4:lock", "dead-holder", ttl=0.05)
        await asyncio.sleep(0.1)
        producer = CountingProducer(value="rebuilt")

        result = await make_service().get_or_add("report:Q4", producer)

        assert result == "rebuilt"
        assert producer.calls == 1
        assert shared_store.contains("it:report:Q4")

    @pytest.mark.asyncio
    async def test_waiters_fall_back_when_holder_never_writes(self, make_service, shared_store):
        """Exhausted wait budget means the waiter computes its own value."""
        shared_store.seed("it:report:Q5:lock", "stuck-holder", ttl=30)
        service = make_service(CACHE_LOCK_MAX_WAIT_ATTEMPTS=3)
        producer = CountingProducer(value="own")

        results = await asyncio.gather(*(service.get_or_add("report:Q5", producer) for _ in range(3)))

        assert results == ["own"] * 3
        assert producer.calls == 3
        assert not shared_store.contains("it:report:Q5")

    @pytest.mark.asyncio
    async def test_failed_holder_lets_next_caller_produce(self, make_service, shared_store):
        service = make_service()
        failing = CountingProducer(error=RuntimeError("upstream 503"))

        with pytest.raises(RuntimeError):
            await service.get_or_add("report:Q6", failing)

        recovered = CountingProducer(value="ok")
        assert await service.get_or_add("report:Q6", recovered) == "ok"
        assert recovered.calls == 1

    @pytest.mark.asyncio
    async def test_invalidation_forces_reproduction(self, make_service):
        service = make_service()
        producer = CountingProducer(value="v1")
        await service.get_or_add("user:1:profile", producer)
        await service.get_or_add("user:1:orders", producer)

        assert await service.remove_by_pattern("user:1:*") == 2
        await service.get_or_add("user:1:profile", producer)

        assert producer.calls == 3


@pytest.mark.integration
class TestRealRedis:
    """Smoke test against a live Redis, enabled with USE_REAL_REDIS=1."""

    @pytest.mark.asyncio
    async def test_get_or_add_against_redis(self, use_real_redis, integration_settings):
        if not use_real_redis:
            pytest.skip("USE_REAL_REDIS not set")

        from cache_aside.infrastructure.cache.redis_client import RedisClient

        client = RedisClient(integration_settings)
        service = CacheService(store=client, settings=integration_settings)
        await service.initialize()
        try:
            producer = CountingProducer(value={"n": 1}, delay=0.05)
            results = await asyncio.gather(*(service.get_or_add("smoke", producer) for _ in range(5)))

            assert results == [{"n": 1}] * 5
            assert producer.calls == 1
        finally:
            await service.remove("smoke")
            await service.shutdown()
