"""
Index route: the explorer front page as JSON.
"""

from fastapi import APIRouter, HTTPException, Query, Response

from block_explorer.api.dependencies import (
    CacheKeysDep,
    IndexBuilderDep,
    SettingsDep,
    SnapshotCacheDep,
    UpdaterDep,
)
from block_explorer.core.config.constants import (
    DEFAULT_PAGE_FROM,
    DEFAULT_PAGE_LIMIT,
    HEADER_CACHE_CONTROL,
    MAX_PAGE_LIMIT,
)
from block_explorer.core.logging.logger import get_logger
from block_explorer.services.index_resolver import resolve_index_data

logger = get_logger(__name__)

router = APIRouter(tags=["Index"])


@router.get("/")
async def index(
    response: Response,
    settings: SettingsDep,
    builder: IndexBuilderDep,
    updater: UpdaterDep,
    snapshot_cache: SnapshotCacheDep,
    cache_keys: CacheKeysDep,
    from_: int = Query(DEFAULT_PAGE_FROM, alias="from", ge=0),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1),
):
    """
    Recent blocks, mempool, hash rates and mining stats.

    Served from the background snapshot when it is healthy for the requested
    window, otherwise from the shared Redis snapshot, otherwise computed now.
    """
    limit = min(limit, MAX_PAGE_LIMIT)
    response.headers[HEADER_CACHE_CONTROL] = settings.cache.INDEX_CACHE_CONTROL

    data, source = await resolve_index_data(
        from_,
        limit,
        builder.build,
        updater=updater,
        snapshot_store=snapshot_cache,
        cache_keys=cache_keys,
    )
    logger.info("Index served", stage="API.INDEX", from_=from_, limit=limit, source=source)

    if data is None:
        raise HTTPException(
            status_code=404,
            detail="Block not found",
            headers={HEADER_CACHE_CONTROL: settings.cache.INDEX_CACHE_CONTROL},
        )
    return data
