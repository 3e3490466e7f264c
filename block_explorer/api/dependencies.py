"""
FastAPI dependencies.

Everything a route needs is built once in the lifespan (the composition root)
and stored on app.state. These providers read it back per request, so tests
can put fakes on app.state without touching module globals.

Example:
    @router.get("/")
    async def index(builder: IndexBuilderDep):
        ...
"""

from typing import Annotated

from fastapi import Depends, Request

from block_explorer.core.config.settings import Settings, get_settings
from block_explorer.core.exceptions import BaseNodeNotConfiguredError
from block_explorer.core.interfaces.base_node import BaseNodeClient
from block_explorer.infrastructure.cache.cache_keys import CacheKeys
from block_explorer.infrastructure.cache.cache_service import CacheService
from block_explorer.infrastructure.cache.memo_cache import MemoCache
from block_explorer.infrastructure.cache.redis_client import RedisClient
from block_explorer.infrastructure.lock.distributed_lock import DistributedLock
from block_explorer.services.background_updater import BackgroundUpdater
from block_explorer.services.index_data import IndexDataBuilder


def get_memo_cache(request: Request) -> MemoCache:
    return request.app.state.memo_cache


def get_cache_keys(request: Request) -> CacheKeys:
    return request.app.state.cache_keys


def get_lock(request: Request) -> DistributedLock | None:
    return getattr(request.app.state, "lock", None)


def get_redis_client(request: Request) -> RedisClient | None:
    return getattr(request.app.state, "redis_client", None)


def get_snapshot_cache(request: Request) -> CacheService | None:
    return getattr(request.app.state, "snapshot_cache", None)


def get_updater(request: Request) -> BackgroundUpdater | None:
    """The updater is absent when disabled or when no base node is configured."""
    return getattr(request.app.state, "updater", None)


def get_base_node_client(request: Request) -> BaseNodeClient | None:
    return getattr(request.app.state, "base_node_client", None)


def get_index_builder(request: Request) -> IndexDataBuilder:
    """
    Raises:
        BaseNodeNotConfiguredError: no base node client (mapped to 503)
    """
    builder = getattr(request.app.state, "index_builder", None)
    if builder is None:
        raise BaseNodeNotConfiguredError(
            "Base node client is not configured"
        ).with_suggestion("Set BASE_NODE_CLIENT_FACTORY and restart")
    return builder


SettingsDep = Annotated[Settings, Depends(get_settings)]
MemoCacheDep = Annotated[MemoCache, Depends(get_memo_cache)]
CacheKeysDep = Annotated[CacheKeys, Depends(get_cache_keys)]
LockDep = Annotated[DistributedLock | None, Depends(get_lock)]
RedisClientDep = Annotated[RedisClient | None, Depends(get_redis_client)]
SnapshotCacheDep = Annotated[CacheService | None, Depends(get_snapshot_cache)]
UpdaterDep = Annotated[BackgroundUpdater | None, Depends(get_updater)]
BaseNodeClientDep = Annotated[BaseNodeClient | None, Depends(get_base_node_client)]
IndexBuilderDep = Annotated[IndexDataBuilder, Depends(get_index_builder)]
