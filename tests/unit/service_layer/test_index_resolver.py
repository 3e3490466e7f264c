"""
Unit Tests for index snapshot source selection
"""

from unittest.mock import AsyncMock, MagicMock

import pytest

from block_explorer.infrastructure.cache.cache_keys import CacheKeys
from block_explorer.services.background_updater import UpdaterSnapshot
from block_explorer.services.index_resolver import resolve_index_data

SNAPSHOT = {"title": "Blocks"}


@pytest.fixture
def healthy_updater():
    updater = MagicMock()
    updater.is_healthy.return_value = True
    updater.get_data.return_value = UpdaterSnapshot(index_data=SNAPSHOT, last_update=None)
    return updater


@pytest.mark.unit
class TestResolveIndexData:

    @pytest.mark.asyncio
    async def test_prefers_healthy_updater(self, healthy_updater):
        build = AsyncMock()

        data, source = await resolve_index_data(0, 20, build, updater=healthy_updater)

        assert (data, source) == (SNAPSHOT, "updater")
        healthy_updater.is_healthy.assert_called_once_with(0, 20)
        build.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_uses_shared_snapshot(self, healthy_updater):
        healthy_updater.is_healthy.return_value = False
        store = MagicMock()
        store.get = AsyncMock(return_value={"title": "shared"})
        build = AsyncMock()

        data, source = await resolve_index_data(
            10, 20, build, updater=healthy_updater, snapshot_store=store, cache_keys=CacheKeys("tari")
        )

        assert (data, source) == ({"title": "shared"}, "shared")
        store.get.assert_awaited_once_with("tari:blocks:recent:10:20")
        build.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_computes_on_miss(self):
        store = MagicMock()
        store.get = AsyncMock(return_value=None)
        build = AsyncMock(return_value={"title": "fresh"})

        data, source = await resolve_index_data(
            5, 10, build, snapshot_store=store, cache_keys=CacheKeys("tari")
        )

        assert (data, source) == ({"title": "fresh"}, "computed")
        build.assert_awaited_once_with(5, 10)

    @pytest.mark.asyncio
    async def test_computed_none_passes_through(self):
        data, source = await resolve_index_data(0, 20, AsyncMock(return_value=None))

        assert data is None
        assert source == "computed"
