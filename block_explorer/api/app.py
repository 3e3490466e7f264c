"""
FastAPI Application Entry Point

The lifespan is the composition root: it builds the Redis client, memo cache,
distributed lock, shared snapshot cache, base node client, snapshot builder
and background updater once, and hangs them on app.state for the routes.
"""

import asyncio
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from block_explorer.api.routes.health import router as health_router
from block_explorer.api.routes.index import router as index_router
from block_explorer.core.config.constants import HEADER_REQUEST_ID, UPDATER_LOCK_NAME
from block_explorer.core.config.settings import Settings, get_settings
from block_explorer.core.exceptions import (
    BaseNodeNotConfiguredError,
    CacheConnectionError,
    ExplorerError,
)
from block_explorer.core.interfaces.base_node import load_base_node_client
from block_explorer.core.logging.logger import (
    clear_request_id,
    get_logger,
    get_request_id,
    set_request_id,
    setup_logging,
)
from block_explorer.infrastructure.cache.cache_keys import CacheKeys
from block_explorer.infrastructure.cache.cache_service import CacheService
from block_explorer.infrastructure.cache.memo_cache import MemoCache
from block_explorer.infrastructure.cache.redis_client import RedisClient
from block_explorer.infrastructure.lock.distributed_lock import DistributedLock
from block_explorer.infrastructure.monitoring.metrics import get_metrics_collector
from block_explorer.services.background_updater import BackgroundUpdater
from block_explorer.services.index_data import IndexDataBuilder

logger = get_logger(__name__)


def build_updater(
    settings: Settings,
    builder: IndexDataBuilder,
    lock: DistributedLock,
    snapshot_cache: CacheService,
    cache_keys: CacheKeys,
) -> BackgroundUpdater:
    updater_settings = settings.updater
    return BackgroundUpdater(
        builder.build,
        lock,
        cache_keys.lock(UPDATER_LOCK_NAME),
        update_interval=updater_settings.UPDATER_INTERVAL_SECONDS,
        max_retries=updater_settings.UPDATER_MAX_RETRIES,
        retry_delay=updater_settings.UPDATER_RETRY_DELAY_SECONDS,
        lock_ttl=settings.lock.LOCK_TTL_SECONDS,
        from_=updater_settings.UPDATER_FROM,
        limit=updater_settings.UPDATER_LIMIT,
        tip_height_fn=builder.get_tip_height,
        skip_unchanged_tip=updater_settings.UPDATER_SKIP_UNCHANGED_TIP,
        snapshot_store=snapshot_cache,
        cache_keys=cache_keys,
        snapshot_ttl=settings.cache.SNAPSHOT_CACHE_TTL,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle (startup and shutdown).

    STARTUP:
    1. Logging
    2. Redis (the explorer keeps serving without it, straight from the node)
    3. Memo cache, lock, shared snapshot cache
    4. Base node client and snapshot builder
    5. Background updater, started as a task

    SHUTDOWN:
    1. Stop the updater schedule and any cycle in flight
    2. Cancel lock renewals
    3. Close Redis
    """
    settings = get_settings()
    setup_logging(log_level=settings.logging.LOG_LEVEL, log_format=settings.logging.LOG_FORMAT)

    logger.info(
        "Starting block explorer",
        environment=settings.app.ENVIRONMENT,
        version=settings.app.APP_VERSION,
    )
    get_metrics_collector().set_app_info(
        settings.app.APP_NAME, settings.app.APP_VERSION, settings.app.ENVIRONMENT
    )

    redis_client = RedisClient(settings)
    updater: BackgroundUpdater | None = None
    updater_task: asyncio.Task | None = None
    lock: DistributedLock | None = None

    try:
        try:
            await redis_client.connect()
        except CacheConnectionError as e:
            logger.warning(
                "Redis unavailable, running without coordination or shared cache",
                stage="REDIS.2",
                error=e.message,
            )

        cache_keys = CacheKeys(settings.cache.CACHE_PREFIX)
        memo_cache = MemoCache(max_size=settings.cache.CACHE_L1_MAX_SIZE)
        lock = DistributedLock(redis_client, renew_ratio=settings.lock.LOCK_RENEW_RATIO)
        snapshot_cache = CacheService(redis_client)

        app.state.settings = settings
        app.state.redis_client = redis_client
        app.state.cache_keys = cache_keys
        app.state.memo_cache = memo_cache
        app.state.lock = lock
        app.state.snapshot_cache = snapshot_cache
        app.state.base_node_client = None
        app.state.index_builder = None
        app.state.updater = None

        try:
            client = load_base_node_client(settings)
        except BaseNodeNotConfiguredError as e:
            logger.warning("Base node not configured, index routes disabled", error=e.message)
            client = None

        if client is not None:
            builder = IndexDataBuilder(client, memo_cache)
            app.state.base_node_client = client
            app.state.index_builder = builder

            if settings.updater.UPDATER_ENABLED:
                updater = build_updater(settings, builder, lock, snapshot_cache, cache_keys)
                app.state.updater = updater
                updater_task = asyncio.create_task(updater.start(), name="background-updater-start")

        logger.info("Application startup complete")

        yield

    finally:
        logger.info("Shutting down application")

        if updater is not None:
            await updater.stop()
        if updater_task is not None and not updater_task.done():
            updater_task.cancel()
            await asyncio.gather(updater_task, return_exceptions=True)
        if lock is not None:
            await lock.cleanup()
        await redis_client.disconnect()

        logger.info("Application shutdown complete")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app.APP_NAME,
        version=settings.app.APP_VERSION,
        description="Tari block explorer API",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.app.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[HEADER_REQUEST_ID],
    )

    @app.middleware("http")
    async def request_id_middleware(request: Request, call_next):
        """
        Bind a request id for log correlation and echo it back.
        """
        request_id = request.headers.get(HEADER_REQUEST_ID) or str(uuid.uuid4())
        set_request_id(request_id)
        try:
            response = await call_next(request)
            response.headers[HEADER_REQUEST_ID] = request_id
            return response
        finally:
            clear_request_id()

    @app.exception_handler(ExplorerError)
    async def explorer_exception_handler(request: Request, exc: ExplorerError):
        exc.request_id = exc.request_id or get_request_id()
        logger.error(
            "Explorer exception",
            stage="API.ERROR",
            error_type=type(exc).__name__,
            error=exc.message,
            path=request.url.path,
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(index_router)
    app.include_router(health_router)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "block_explorer.api.app:app",
        host=settings.app.API_HOST,
        port=settings.app.API_PORT,
        reload=settings.app.ENVIRONMENT == "development",
        log_level=settings.logging.LOG_LEVEL.lower(),
    )
