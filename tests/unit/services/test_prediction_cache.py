"""Tests for the prediction cache."""

import asyncio

import pytest

from ensemble_engine.services.cache import PredictionCache


class FakeClock:
    """Manually advanced clock."""

    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return PredictionCache(ttl_seconds=60, max_size=3, clock=clock)


class TestPredictionCache:
    """Tests for TTL and LRU behaviour."""

    def test_get_set(self, cache):
        value = object()
        cache.set("ES_1", value)

        assert cache.get("ES_1") is value
        assert "ES_1" in cache

    def test_expired_entries_are_absent(self, cache, clock):
        cache.set("ES_1", "prediction")

        clock.advance(61)

        assert cache.get("ES_1") is None
        assert len(cache) == 0

    def test_lru_eviction(self, cache):
        for key in ["a", "b", "c"]:
            cache.set(key, key)
        cache.get("a")

        cache.set("d", "d")

        assert cache.get("b") is None
        assert cache.get("a") == "a"
        assert len(cache) == 3

    def test_invalid_configuration(self):
        with pytest.raises(ValueError):
            PredictionCache(ttl_seconds=0)
        with pytest.raises(ValueError):
            PredictionCache(max_size=0)

    def test_clear(self, cache):
        cache.set("a", 1)
        cache.clear()

        assert len(cache) == 0


class TestGetOrCompute:
    """Tests for single-flight computation."""

    @pytest.mark.asyncio
    async def test_computes_once(self, cache):
        calls = []

        async def compute():
            calls.append(1)
            return object()

        first = await cache.get_or_compute("k", compute)
        second = await cache.get_or_compute("k", compute)

        assert first is second
        assert len(calls) == 1
        assert cache.get_stats()["hits"] == 1

    @pytest.mark.asyncio
    async def test_concurrent_requests_share_computation(self, cache):
        calls = []
        published = []

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.01)
            return object()

        results = await asyncio.gather(*(
            cache.get_or_compute("k", compute, on_result=published.append) for _ in range(5)
        ))

        assert len(calls) == 1
        assert all(result is results[0] for result in results)
        assert published == [results[0]]
        assert cache.get_stats()["collapsed"] == 4

    @pytest.mark.asyncio
    async def test_errors_shared_and_not_cached(self, cache):
        calls = []

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.01)
            raise RuntimeError("model offline")

        results = await asyncio.gather(
            cache.get_or_compute("k", compute),
            cache.get_or_compute("k", compute),
            return_exceptions=True,
        )

        assert len(calls) == 1
        assert all(isinstance(r, RuntimeError) for r in results)
        assert len(cache) == 0
        assert not cache.is_inflight("k")

    @pytest.mark.asyncio
    async def test_cancelled_caller_does_not_cancel_waiters(self, cache):
        started = asyncio.Event()
        calls = []

        async def slow_compute():
            started.set()
            await asyncio.sleep(10)
            return "abandoned"

        async def compute():
            calls.append(1)
            await asyncio.sleep(0.01)
            return "recomputed"

        owner = asyncio.create_task(cache.get_or_compute("k", slow_compute))
        await started.wait()
        waiters = [asyncio.create_task(cache.get_or_compute("k", compute)) for _ in range(3)]
        await asyncio.sleep(0)
        assert cache.is_inflight("k")

        owner.cancel()
        results = await asyncio.gather(*waiters)

        assert results == ["recomputed"] * 3
        assert len(calls) == 1
        with pytest.raises(asyncio.CancelledError):
            await owner
        assert cache.get("k") == "recomputed"
        assert not cache.is_inflight("k")

    @pytest.mark.asyncio
    async def test_cancelled_waiter_leaves_computation_running(self, cache):
        async def compute():
            await asyncio.sleep(0.01)
            return "value"

        owner = asyncio.create_task(cache.get_or_compute("k", compute))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(cache.get_or_compute("k", compute))
        await asyncio.sleep(0)

        waiter.cancel()

        assert await owner == "value"
        with pytest.raises(asyncio.CancelledError):
            await waiter

    @pytest.mark.asyncio
    async def test_different_keys_run_in_parallel(self, cache):
        running = []
        peak = []

        async def compute():
            running.append(1)
            peak.append(len(running))
            await asyncio.sleep(0.01)
            running.pop()
            return object()

        await asyncio.gather(
            cache.get_or_compute("a", compute),
            cache.get_or_compute("b", compute),
        )

        assert max(peak) == 2

    @pytest.mark.asyncio
    async def test_recomputes_after_expiry(self, cache, clock):
        calls = []

        async def compute():
            calls.append(1)
            return len(calls)

        assert await cache.get_or_compute("k", compute) == 1
        clock.advance(120)
        assert await cache.get_or_compute("k", compute) == 2
