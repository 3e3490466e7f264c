"""
Unit Tests for the Memoizing LRU Cache

Tests capacity, eviction order, memoization, failure handling and
coalescing of concurrent misses.
"""

import asyncio
from unittest.mock import AsyncMock

import pytest

from block_explorer.infrastructure.base_node.results import resolve_result
from block_explorer.infrastructure.cache.memo_cache import MemoCache, make_key


@pytest.mark.unit
class TestMakeKey:

    def test_object_key_order_is_irrelevant(self):
        assert make_key({"a": 1, "b": [2, 3]}) == make_key({"b": [2, 3], "a": 1})

    def test_different_shapes_differ(self):
        assert make_key({"heights": [5]}) != make_key({"height": 5})

    def test_bytes_are_hex_encoded(self):
        assert make_key({"hash": b"\x01\xff"}) == '{"hash":"01ff"}'

    def test_unsupported_types_raise(self):
        with pytest.raises(TypeError):
            make_key({"obj": object()})


@pytest.mark.unit
class TestMemoCacheBasics:

    def test_rejects_zero_capacity(self):
        with pytest.raises(ValueError):
            MemoCache(max_size=0)

    def test_set_overwrites_without_growing(self):
        cache = MemoCache(max_size=2)
        cache.set("a", 1)
        cache.set("a", 2)

        assert cache.get_size() == 1
        assert cache.get_keys() == ["a"]

    def test_set_evicts_oldest_at_capacity(self):
        cache = MemoCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("c", 3)

        assert cache.get_keys() == ["b", "c"]
        assert len(cache) == 2

    def test_overwrite_refreshes_recency(self):
        cache = MemoCache(max_size=2)
        cache.set("a", 1)
        cache.set("b", 2)
        cache.set("a", 10)
        cache.set("c", 3)

        assert cache.get_keys() == ["a", "c"]

    def test_clear(self):
        cache = MemoCache(max_size=3)
        cache.set("a", 1)
        cache.clear()

        assert cache.get_size() == 0
        assert cache.get_max_size() == 3


@pytest.mark.unit
class TestMemoCacheGet:

    @pytest.mark.asyncio
    async def test_second_call_is_served_from_cache(self):
        cache = MemoCache(max_size=10)
        fetch = AsyncMock(return_value={"value": 1})

        first = await cache.get(fetch, {"height": 1})
        second = await cache.get(fetch, {"height": 1})

        assert first == second == {"value": 1}
        fetch.assert_awaited_once_with({"height": 1})
        assert cache.stats()["hits"] == 1
        assert cache.stats()["misses"] == 1

    @pytest.mark.asyncio
    async def test_none_is_cached(self):
        cache = MemoCache(max_size=10)
        fetch = AsyncMock(return_value=None)

        assert await cache.get(fetch, {"x": 1}) is None
        assert await cache.get(fetch, {"x": 1}) is None
        assert fetch.await_count == 1
        assert {"x": 1} in cache

    @pytest.mark.asyncio
    async def test_failures_are_not_cached(self):
        cache = MemoCache(max_size=10)
        fetch = AsyncMock(side_effect=[RuntimeError("node down"), {"ok": True}])

        with pytest.raises(RuntimeError, match="node down"):
            await cache.get(fetch, {"x": 1})

        assert cache.get_size() == 0
        assert await cache.get(fetch, {"x": 1}) == {"ok": True}
        assert fetch.await_count == 2

    @pytest.mark.asyncio
    async def test_capacity_two_scenario(self):
        """Test that a hit refreshes recency so the other key is evicted."""
        cache = MemoCache(max_size=2)
        calls = []

        async def fetch(args):
            calls.append(args["k"])
            return args["k"] * 10

        assert await cache.get(fetch, {"k": 1}) == 10
        assert await cache.get(fetch, {"k": 2}) == 20
        assert await cache.get(fetch, {"k": 1}) == 10
        assert await cache.get(fetch, {"k": 3}) == 30

        assert {"k": 1} in cache
        assert {"k": 2} not in cache
        assert {"k": 3} in cache
        assert calls == [1, 2, 3]

        assert await cache.get(fetch, {"k": 2}) == 20
        assert calls == [1, 2, 3, 2]
        assert cache.get_size() == 2

    @pytest.mark.asyncio
    async def test_streaming_results_are_drained(self):
        cache = MemoCache(max_size=10)

        async def stream(args):
            for i in range(args["n"]):
                yield {"i": i}

        result = await cache.get(stream, {"n": 3})

        assert result == [{"i": 0}, {"i": 1}, {"i": 2}]

    @pytest.mark.asyncio
    async def test_plain_function_results_are_accepted(self):
        cache = MemoCache(max_size=10)

        assert await cache.get(lambda args: args["n"] + 1, {"n": 1}) == 2


@pytest.mark.unit
class TestMemoCacheSingleFlight:

    @pytest.mark.asyncio
    async def test_concurrent_misses_share_one_fetch(self):
        cache = MemoCache(max_size=10)
        release = asyncio.Event()
        calls = 0

        async def fetch(args):
            nonlocal calls
            calls += 1
            await release.wait()
            return "value"

        tasks = [asyncio.create_task(cache.get(fetch, {"h": 1})) for _ in range(3)]
        await asyncio.sleep(0)
        assert cache.stats()["in_flight"] == 1

        release.set()
        results = await asyncio.gather(*tasks)

        assert results == ["value", "value", "value"]
        assert calls == 1
        assert cache.stats()["coalesced"] == 2
        assert cache.stats()["in_flight"] == 0

    @pytest.mark.asyncio
    async def test_waiters_see_the_same_failure(self):
        cache = MemoCache(max_size=10)
        release = asyncio.Event()

        async def fetch(args):
            await release.wait()
            raise ConnectionError("unreachable")

        tasks = [asyncio.create_task(cache.get(fetch, {"h": 1})) for _ in range(2)]
        await asyncio.sleep(0)
        release.set()
        results = await asyncio.gather(*tasks, return_exceptions=True)

        assert all(isinstance(r, ConnectionError) for r in results)
        assert cache.get_size() == 0


@pytest.mark.unit
class TestResolveResult:

    @pytest.mark.asyncio
    async def test_awaitable(self):
        async def unary():
            return {"value": "v"}

        assert await resolve_result(unary()) == {"value": "v"}

    @pytest.mark.asyncio
    async def test_plain_value(self):
        assert await resolve_result([1, 2]) == [1, 2]


@pytest.mark.unit
class TestMemoCacheCancellation:

    @pytest.mark.asyncio
    async def test_cancelled_first_caller_does_not_cancel_waiters(self):
        """Test that a waiter still gets the value when the caller that started the fetch is cancelled."""
        cache = MemoCache(max_size=10)
        release = asyncio.Event()
        calls = 0

        async def fetch(args):
            nonlocal calls
            calls += 1
            await release.wait()
            return "value"

        first = asyncio.create_task(cache.get(fetch, {"heights": [30]}))
        await asyncio.sleep(0)
        waiter = asyncio.create_task(cache.get(fetch, {"heights": [30]}))
        await asyncio.sleep(0)

        first.cancel()
        await asyncio.gather(first, return_exceptions=True)
        release.set()
        results = await asyncio.gather(waiter, return_exceptions=True)

        assert results == ["value"]
        assert first.cancelled()
        assert calls == 1
        assert {"heights": [30]} in cache

    @pytest.mark.asyncio
    async def test_fetch_completes_after_every_caller_is_cancelled(self):
        cache = MemoCache(max_size=10)
        release = asyncio.Event()

        async def fetch(args):
            await release.wait()
            return "late"

        caller = asyncio.create_task(cache.get(fetch, {"h": 1}))
        await asyncio.sleep(0)
        caller.cancel()
        await asyncio.gather(caller, return_exceptions=True)

        release.set()
        for _ in range(10):
            await asyncio.sleep(0)

        assert cache.stats()["in_flight"] == 0
        assert await cache.get(fetch, {"h": 1}) == "late"
