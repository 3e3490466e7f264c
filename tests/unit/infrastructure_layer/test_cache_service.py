"""
Unit Tests for the shared JSON cache and its key builders
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from block_explorer.core.exceptions import CacheKeyError
from block_explorer.infrastructure.cache.cache_keys import CacheKeys
from block_explorer.infrastructure.cache.cache_service import CacheService, sanitize_big_ints


@pytest.fixture
def redis_client():
    client = MagicMock()
    client.is_connected.return_value = True
    client.ensure_connected = AsyncMock(return_value=True)
    for name in ("get", "set", "delete", "exists", "scan_delete", "ping"):
        setattr(client, name, AsyncMock())
    return client


@pytest.mark.unit
class TestSanitizeBigInts:

    def test_large_ints_become_strings(self):
        value = {"a": 2**64, "b": [-(2**63) - 1, 5], "c": True, "d": 2**63 - 1}

        assert sanitize_big_ints(value) == {
            "a": str(2**64),
            "b": [str(-(2**63) - 1), 5],
            "c": True,
            "d": 2**63 - 1,
        }


@pytest.mark.unit
class TestCacheService:

    @pytest.mark.asyncio
    async def test_set_serializes_json(self, redis_client):
        cache = CacheService(redis_client)

        assert await cache.set("tari:x", {"b": 1, "big": 2**70}, ttl_seconds=60)

        redis_client.set.assert_awaited_once_with(
            "tari:x", '{"b":1,"big":"1180591620717411303424"}', ttl=60
        )

    @pytest.mark.asyncio
    async def test_get_deserializes(self, redis_client):
        redis_client.get.return_value = '{"headers":[1,2]}'

        assert await CacheService(redis_client).get("tari:x") == {"headers": [1, 2]}

    @pytest.mark.asyncio
    async def test_get_miss(self, redis_client):
        redis_client.get.return_value = None

        assert await CacheService(redis_client).get("tari:x") is None

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, redis_client):
        redis_client.get.return_value = "{not json"

        assert await CacheService(redis_client).get("tari:x") is None

    @pytest.mark.asyncio
    async def test_redis_errors_are_swallowed(self, redis_client):
        error = CacheKeyError("Redis GET failed")
        redis_client.get.side_effect = error
        redis_client.set.side_effect = error
        redis_client.delete.side_effect = error
        redis_client.scan_delete.side_effect = error
        cache = CacheService(redis_client)

        assert await cache.get("k") is None
        assert await cache.set("k", 1) is False
        assert await cache.delete("k") is False
        assert await cache.delete_pattern("tari:*") == 0

    @pytest.mark.asyncio
    async def test_disconnected_short_circuits(self, redis_client):
        redis_client.ensure_connected.return_value = False
        cache = CacheService(redis_client)

        assert await cache.get("k") is None
        assert await cache.set("k", 1) is False
        assert await cache.exists("k") is False
        redis_client.get.assert_not_awaited()
        redis_client.set.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_set_multiple_counts_successes(self, redis_client):
        redis_client.set.side_effect = [None, CacheKeyError("fail"), None]
        cache = CacheService(redis_client)

        count = await cache.set_multiple([("a", 1, None), ("b", 2, 10), ("c", 3, 10)])

        assert count == 2

    @pytest.mark.asyncio
    async def test_delete_and_exists(self, redis_client):
        redis_client.delete.return_value = 1
        redis_client.exists.return_value = 1
        cache = CacheService(redis_client)

        assert await cache.delete("k") is True
        assert await cache.exists("k") is True


@pytest.mark.unit
class TestCacheKeys:

    def test_keys_use_prefix(self):
        keys = CacheKeys("testnet")

        assert keys.recent_blocks(0, 20) == "testnet:blocks:recent:0:20"
        assert keys.lock("background_updater:main") == "testnet:lock:background_updater:main"
        assert keys.pattern() == "testnet:*"

    def test_default_prefix(self):
        assert CacheKeys().recent_blocks(10, 50) == "tari:blocks:recent:10:50"
        assert CacheKeys().pattern("blocks:*") == "tari:blocks:*"
