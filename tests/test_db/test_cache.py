"""Tests for the result cache — TTL stores and single-flight computation."""

import asyncio
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from src.analytics.exceptions import CacheError
from src.db.cache import MemoryCacheStore, RedisCacheStore, ResultCache, make_cache_key


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def test_make_cache_key() -> None:
    assert make_cache_key("eligibility", "0xABC", "chains=1,10") == "eligibility:0xabc:chains=1,10"
    assert make_cache_key("trending", "registry") == "trending:registry:default"


class TestMemoryCacheStore:
    @pytest.mark.asyncio
    async def test_lazy_expiry(self) -> None:
        clock = FakeClock()
        store = MemoryCacheStore(clock)
        await store.set("k", {"v": 1}, ttl_ms=1000)

        clock.now += 0.999
        assert await store.get("k") == {"v": 1}
        assert len(store) == 1

        clock.now += 0.001
        assert await store.get("k") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_non_positive_ttl_not_stored(self) -> None:
        store = MemoryCacheStore()
        await store.set("k", 1, ttl_ms=0)
        assert await store.get("k") is None

    @pytest.mark.asyncio
    async def test_set_replaces(self) -> None:
        store = MemoryCacheStore()
        await store.set("k", {"a": 1}, ttl_ms=1000)
        await store.set("k", {"b": 2}, ttl_ms=1000)
        assert await store.get("k") == {"b": 2}


class TestRedisCacheStore:
    @pytest.mark.asyncio
    async def test_json_round_trip_with_px(self) -> None:
        redis = AsyncMock()
        store = RedisCacheStore(redis, prefix="t")
        await store.set("k", {"score": 10}, ttl_ms=5000)
        redis.set.assert_awaited_once_with("t:k", '{"score": 10}', px=5000)

        redis.get.return_value = '{"score": 10}'
        assert await store.get("k") == {"score": 10}
        redis.get.assert_awaited_with("t:k")

    @pytest.mark.asyncio
    async def test_connection_errors_become_cache_errors(self) -> None:
        redis = AsyncMock()
        redis.get.side_effect = RedisConnectionError("down")
        redis.set.side_effect = RedisConnectionError("down")
        store = RedisCacheStore(redis)
        with pytest.raises(CacheError):
            await store.get("k")
        with pytest.raises(CacheError):
            await store.set("k", 1, ttl_ms=10)

    @pytest.mark.asyncio
    async def test_corrupt_entry(self) -> None:
        redis = AsyncMock()
        redis.get.return_value = "{not json"
        with pytest.raises(CacheError):
            await RedisCacheStore(redis).get("k")


class TestResultCache:
    @pytest.mark.asyncio
    async def test_concurrent_requests_compute_once(self) -> None:
        cache = ResultCache(MemoryCacheStore())
        calls = 0
        release = asyncio.Event()

        async def compute() -> dict:
            nonlocal calls
            calls += 1
            await release.wait()
            return {"value": 42}

        waiters = [asyncio.create_task(cache.get_or_compute("k", 1000, compute)) for _ in range(20)]
        await asyncio.sleep(0)
        assert cache.inflight == 1
        release.set()
        results = await asyncio.gather(*waiters)

        assert calls == 1
        assert all(value == {"value": 42} for value, _cached in results)
        assert cache.stats.computes == 1
        assert cache.stats.misses == 1
        assert cache.stats.joined == 19
        assert cache.inflight == 0

    @pytest.mark.asyncio
    async def test_second_call_hits_store(self) -> None:
        cache = ResultCache(MemoryCacheStore())
        compute = AsyncMock(return_value={"v": 1})

        assert await cache.get_or_compute("k", 1000, compute) == ({"v": 1}, False)
        assert await cache.get_or_compute("k", 1000, compute) == ({"v": 1}, True)
        compute.assert_awaited_once()
        assert cache.stats.hits == 1

    @pytest.mark.asyncio
    async def test_expired_entry_recomputed(self) -> None:
        clock = FakeClock()
        cache = ResultCache(MemoryCacheStore(clock))
        compute = AsyncMock(side_effect=[{"v": 1}, {"v": 2}])

        await cache.get_or_compute("k", 1000, compute)
        clock.now += 2
        assert await cache.get_or_compute("k", 1000, compute) == ({"v": 2}, False)

    @pytest.mark.asyncio
    async def test_failure_reaches_all_waiters_and_is_not_cached(self) -> None:
        cache = ResultCache(MemoryCacheStore())
        release = asyncio.Event()

        async def boom() -> dict:
            await release.wait()
            raise RuntimeError("upstream")

        waiters = [asyncio.create_task(cache.get_or_compute("k", 1000, boom)) for _ in range(3)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*waiters, return_exceptions=True)
        assert all(isinstance(r, RuntimeError) for r in results)

        ok = AsyncMock(return_value={"v": 1})
        assert await cache.get_or_compute("k", 1000, ok) == ({"v": 1}, False)

    @pytest.mark.asyncio
    async def test_caller_cancellation_does_not_abort_computation(self) -> None:
        cache = ResultCache(MemoryCacheStore())
        release = asyncio.Event()
        calls = 0

        async def compute() -> dict:
            nonlocal calls
            calls += 1
            await release.wait()
            return {"v": 7}

        first = asyncio.create_task(cache.get_or_compute("k", 1000, compute))
        second = asyncio.create_task(cache.get_or_compute("k", 1000, compute))
        await asyncio.sleep(0)
        first.cancel()
        with pytest.raises(asyncio.CancelledError):
            await first

        release.set()
        assert await second == ({"v": 7}, False)
        assert calls == 1

    @pytest.mark.asyncio
    async def test_store_errors_bypassed(self) -> None:
        store = AsyncMock()
        store.get.side_effect = CacheError("redis down")
        store.set.side_effect = CacheError("redis down")
        cache = ResultCache(store)
        compute = AsyncMock(return_value={"v": 1})

        assert await cache.get_or_compute("k", 1000, compute) == ({"v": 1}, False)
        assert cache.stats.errors == 2
        compute.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_slow_store_read_joins_running_computation(self) -> None:
        inner = MemoryCacheStore()

        class SlowReadStore:
            async def get(self, key: str):
                value = await inner.get(key)
                await asyncio.sleep(0.05)
                return value

            async def set(self, key: str, value, ttl_ms: int) -> None:
                await inner.set(key, value, ttl_ms)

        cache = ResultCache(SlowReadStore())
        calls = 0

        async def compute() -> dict:
            nonlocal calls
            calls += 1
            await asyncio.sleep(0.03)
            return {"v": 1}

        first = asyncio.create_task(cache.get_or_compute("k", 10_000, compute))
        await asyncio.sleep(0.06)
        second = asyncio.create_task(cache.get_or_compute("k", 10_000, compute))

        assert await first == ({"v": 1}, False)
        assert await second == ({"v": 1}, False)
        assert calls == 1
        assert cache.stats.joined == 1

        # Once the shared task is gone, the next read is a plain store hit.
        assert await cache.get_or_compute("k", 10_000, compute) == ({"v": 1}, True)
        assert calls == 1
