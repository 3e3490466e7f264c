"""
Choose where an index snapshot comes from for a request.

Order:
1. This instance's updater, when its snapshot is healthy for the window
2. The snapshot another instance published to Redis for the same window
3. Build it now on the request path
"""

from typing import Any

from block_explorer.core.logging.logger import get_logger
from block_explorer.infrastructure.cache.cache_keys import CacheKeys
from block_explorer.infrastructure.cache.cache_service import CacheService
from block_explorer.services.background_updater import BackgroundUpdater, IndexDataFn

logger = get_logger(__name__)


async def resolve_index_data(
    from_: int,
    limit: int,
    build: IndexDataFn,
    updater: BackgroundUpdater | None = None,
    snapshot_store: CacheService | None = None,
    cache_keys: CacheKeys | None = None,
) -> tuple[dict[str, Any] | None, str]:
    """
    Returns:
        (snapshot or None, source) where source is "updater", "shared" or "computed"
    """
    if updater is not None and updater.is_healthy(from_, limit):
        return updater.get_data().index_data, "updater"

    if snapshot_store is not None and cache_keys is not None:
        shared = await snapshot_store.get(cache_keys.recent_blocks(from_, limit))
        if shared is not None:
            logger.debug("Serving shared snapshot", stage="API.INDEX", from_=from_, limit=limit)
            return shared, "shared"

    return await build(from_, limit), "computed"
