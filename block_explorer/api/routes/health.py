"""
Health and metrics endpoints.

GET /healthz  - node version plus updater, lock, memo cache and Redis status
GET /metrics  - Prometheus exposition
"""

import asyncio
from typing import Any

from fastapi import APIRouter, Response
from pydantic import BaseModel

from block_explorer.api.dependencies import (
    BaseNodeClientDep,
    CacheKeysDep,
    LockDep,
    MemoCacheDep,
    RedisClientDep,
    UpdaterDep,
)
from block_explorer.core.config.constants import HEALTH_VERSION_TIMEOUT_SECONDS, UPDATER_LOCK_NAME
from block_explorer.core.logging.logger import get_logger
from block_explorer.infrastructure.base_node.results import resolve_result
from block_explorer.infrastructure.monitoring.metrics import get_metrics_collector

logger = get_logger(__name__)

router = APIRouter(tags=["Health"])


class HealthzResponse(BaseModel):
    """
    Response model for /healthz.

    version is None when the base node is unreachable or not configured.
    """

    version: str | None
    updater: dict[str, Any] | None
    lock: dict[str, Any] | None
    memo_cache: dict[str, Any]
    redis: dict[str, Any] | None


@router.get("/healthz", response_model=HealthzResponse)
async def healthz(
    client: BaseNodeClientDep,
    updater: UpdaterDep,
    lock: LockDep,
    memo_cache: MemoCacheDep,
    redis_client: RedisClientDep,
    cache_keys: CacheKeysDep,
):
    version = None
    if client is not None:
        try:
            result = await asyncio.wait_for(
                resolve_result(client.get_version({})), timeout=HEALTH_VERSION_TIMEOUT_SECONDS
            )
            version = (result or {}).get("value")
        except Exception as e:
            logger.warning(
                "Base node version unavailable", stage="API.HEALTH",
                error=str(e), error_type=type(e).__name__,
            )

    lock_status = None
    if lock is not None:
        status = await lock.status(cache_keys.lock(UPDATER_LOCK_NAME))
        lock_status = {"locked": status.locked, "holder": status.holder, "ttl": status.ttl}

    return HealthzResponse(
        version=version,
        updater=updater.status() if updater is not None else None,
        lock=lock_status,
        memo_cache=memo_cache.stats(),
        redis=await redis_client.health_check() if redis_client is not None else None,
    )


@router.get("/metrics")
async def metrics():
    collector = get_metrics_collector()
    return Response(
        content=collector.get_prometheus_metrics(),
        media_type=collector.get_content_type(),
    )
