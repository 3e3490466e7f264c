"""
Redis Client with Connection Pooling

Architecture:
    RedisClient (Public API)
        ├── ConnectionManager (Connection lifecycle)
        ├── OperationExecutor (Command execution with error handling)
        └── HealthMonitor (Health checks)

The client backs two consumers: the distributed lock, which needs atomic
SET NX EX plus compare-and-delete / compare-and-expire, and the secondary
JSON cache. Every command failure surfaces as CacheKeyError; consumers decide
whether to degrade.
"""

import asyncio
import time
from collections.abc import Callable
from typing import Any

import redis.asyncio as redis
from redis.asyncio.connection import ConnectionPool
from redis.exceptions import ConnectionError, RedisError, TimeoutError

from block_explorer.core.config.settings import Settings
from block_explorer.core.exceptions import CacheConnectionError, CacheKeyError
from block_explorer.core.logging.logger import get_logger

logger = get_logger(__name__)

# Delete the key only while it still holds the caller's value.
COMPARE_AND_DELETE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""

# Extend the expiry only while the key still holds the caller's value.
COMPARE_AND_EXPIRE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("expire", KEYS[1], ARGV[2])
else
    return 0
end
"""


# =============================================================================
# LAYER 1: CONNECTION MANAGEMENT
# =============================================================================


class ConnectionManager:
    """
    Manages Redis connection lifecycle and pooling.

    Pool configuration comes from settings.redis:
    - Max connections: REDIS_MAX_CONNECTIONS
    - Socket / connect timeouts
    - Health check interval
    - Decoded (str) responses
    """

    def __init__(self, settings: Settings):
        self._settings = settings
        self._pool: ConnectionPool | None = None
        self._client: redis.Redis | None = None
        self._is_connected = False

    async def connect(self) -> redis.Redis:
        """
        Establish connection to Redis with connection pooling.

        STAGE-REDIS.2: Connection establishment

        Raises:
            CacheConnectionError: If connection fails
        """
        if self._is_connected and self._client:
            return self._client

        redis_settings = self._settings.redis
        try:
            self._pool = ConnectionPool(
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                db=redis_settings.REDIS_DB,
                password=redis_settings.REDIS_PASSWORD,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
                socket_connect_timeout=redis_settings.REDIS_SOCKET_CONNECT_TIMEOUT,
                socket_timeout=redis_settings.REDIS_SOCKET_TIMEOUT,
                retry_on_timeout=True,
                health_check_interval=redis_settings.REDIS_HEALTH_CHECK_INTERVAL,
                decode_responses=True,
            )
            self._client = redis.Redis(connection_pool=self._pool)

            await self._client.ping()
            self._is_connected = True

            logger.info(
                "Redis connected successfully",
                stage="REDIS.2",
                host=redis_settings.REDIS_HOST,
                port=redis_settings.REDIS_PORT,
                max_connections=redis_settings.REDIS_MAX_CONNECTIONS,
            )
            return self._client

        except (ConnectionError, TimeoutError) as e:
            logger.error("Failed to connect to Redis", stage="REDIS.2", error=str(e))
            await self._discard()
            raise CacheConnectionError(
                message=f"Failed to connect to Redis: {e}",
                details={"host": redis_settings.REDIS_HOST, "port": redis_settings.REDIS_PORT},
            ) from e

    async def _discard(self) -> None:
        client, pool = self._client, self._pool
        self._client = None
        self._pool = None
        try:
            if client:
                await client.aclose()
            if pool:
                await pool.disconnect()
        except RedisError as e:
            logger.debug("Error discarding failed connection", stage="REDIS.2", error=str(e))

    async def disconnect(self) -> None:
        """
        Close Redis connection and pool.

        STAGE-REDIS.3: Connection cleanup
        """
        if self._client:
            await self._client.aclose()

        if self._pool:
            await self._pool.disconnect()

        self._client = None
        self._pool = None
        self._is_connected = False

        logger.info("Redis disconnected", stage="REDIS.3")

    async def ping(self) -> bool:
        try:
            if self._client and self._is_connected:
                await self._client.ping()
                return True
        except (ConnectionError, TimeoutError):
            pass
        return False

    def get_client(self) -> redis.Redis | None:
        return self._client

    def get_pool(self) -> ConnectionPool | None:
        return self._pool

    def is_connected(self) -> bool:
        return self._is_connected


# =============================================================================
# LAYER 2: OPERATION EXECUTOR
# =============================================================================


class OperationExecutor:
    """
    Executes Redis operations with consistent error handling.

    Error Handling Strategy:
    - Catch RedisError exceptions
    - Log error with context (stage, key)
    - Raise CacheKeyError with details
    """

    def __init__(self, redis_client: redis.Redis):
        self._redis = redis_client

    async def get(self, key: str) -> str | None:
        """
        STAGE-REDIS.GET: Redis GET operation
        """
        try:
            return await self._redis.get(key)
        except RedisError as e:
            logger.error("Redis GET failed", stage="REDIS.GET", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis GET failed: {e}", details={"key": key}) from e

    async def set(self, key: str, value: str, ttl: int | None = None, nx: bool = False) -> bool:
        """
        STAGE-REDIS.SET: Redis SET operation

        Args:
            key: Redis key
            value: Value to set
            ttl: Time-to-live in seconds (optional)
            nx: Only set if key doesn't exist (SET NX)

        Returns:
            True if the key was written. With nx=True, False means the key
            already existed.
        """
        try:
            result = await self._redis.set(key, value, ex=ttl, nx=nx)
            return bool(result)
        except RedisError as e:
            logger.error("Redis SET failed", stage="REDIS.SET", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis SET failed: {e}", details={"key": key}) from e

    async def delete(self, *keys: str) -> int:
        """
        STAGE-REDIS.DEL: Redis DELETE operation
        """
        try:
            return await self._redis.delete(*keys)
        except RedisError as e:
            logger.error("Redis DELETE failed", stage="REDIS.DEL", keys=keys, error=str(e))
            raise CacheKeyError(message=f"Redis DELETE failed: {e}", details={"keys": keys}) from e

    async def exists(self, *keys: str) -> int:
        try:
            return await self._redis.exists(*keys)
        except RedisError as e:
            logger.error("Redis EXISTS failed", stage="REDIS.EXISTS", keys=keys, error=str(e))
            raise CacheKeyError(message=f"Redis EXISTS failed: {e}", details={"keys": keys}) from e

    async def expire(self, key: str, ttl: int) -> bool:
        try:
            return bool(await self._redis.expire(key, ttl))
        except RedisError as e:
            logger.error("Redis EXPIRE failed", stage="REDIS.EXPIRE", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis EXPIRE failed: {e}", details={"key": key}) from e

    async def ttl(self, key: str) -> int:
        """
        Remaining TTL in seconds; -1 without expiry, -2 when the key is missing.
        """
        try:
            return await self._redis.ttl(key)
        except RedisError as e:
            logger.error("Redis TTL failed", stage="REDIS.TTL", key=key, error=str(e))
            raise CacheKeyError(message=f"Redis TTL failed: {e}", details={"key": key}) from e

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        """
        STAGE-REDIS.CAD: Atomic delete-if-value-matches (single Lua script)
        """
        try:
            result = await self._redis.eval(COMPARE_AND_DELETE_SCRIPT, 1, key, expected)
            return result == 1
        except RedisError as e:
            logger.error("Redis compare-and-delete failed", stage="REDIS.CAD", key=key, error=str(e))
            raise CacheKeyError(
                message=f"Redis compare-and-delete failed: {e}", details={"key": key}
            ) from e

    async def compare_and_expire(self, key: str, expected: str, ttl: int) -> bool:
        """
        STAGE-REDIS.CAE: Atomic expire-if-value-matches (single Lua script)
        """
        try:
            result = await self._redis.eval(COMPARE_AND_EXPIRE_SCRIPT, 1, key, expected, ttl)
            return result == 1
        except RedisError as e:
            logger.error("Redis compare-and-expire failed", stage="REDIS.CAE", key=key, error=str(e))
            raise CacheKeyError(
                message=f"Redis compare-and-expire failed: {e}", details={"key": key}
            ) from e

    async def scan_delete(self, pattern: str, batch_size: int = 500) -> int:
        """
        Delete every key matching a glob pattern using SCAN (never KEYS).

        Returns:
            Number of keys deleted
        """
        deleted = 0
        batch: list[str] = []
        try:
            async for key in self._redis.scan_iter(match=pattern, count=batch_size):
                batch.append(key)
                if len(batch) >= batch_size:
                    deleted += await self._redis.delete(*batch)
                    batch.clear()
            if batch:
                deleted += await self._redis.delete(*batch)
            return deleted
        except RedisError as e:
            logger.error("Redis SCAN delete failed", stage="REDIS.SCAN", pattern=pattern, error=str(e))
            raise CacheKeyError(
                message=f"Redis SCAN delete failed: {e}", details={"pattern": pattern}
            ) from e


# =============================================================================
# LAYER 3: HEALTH MONITORING
# =============================================================================


class HealthMonitor:
    """
    Health checks and pool monitoring.

    Reports connection status, ping latency and pool size.
    """

    def __init__(self, connection_manager: ConnectionManager, settings: Settings):
        self._conn_mgr = connection_manager
        self._settings = settings

    async def health_check(self) -> dict[str, Any]:
        """
        STAGE-REDIS.HEALTH: Redis health check

        Returns:
            Dict with health status and metrics
        """
        health = {
            "status": "healthy",
            "connected": self._conn_mgr.is_connected(),
            "host": self._settings.redis.REDIS_HOST,
            "port": self._settings.redis.REDIS_PORT,
            "pool_size": 0,
            "ping_latency_ms": None,
        }

        client = self._conn_mgr.get_client()
        if not client:
            health["status"] = "unhealthy"
            health["error"] = "Client not initialized"
            return health

        try:
            start = time.perf_counter()
            await client.ping()
            health["ping_latency_ms"] = round((time.perf_counter() - start) * 1000, 2)

            pool = self._conn_mgr.get_pool()
            if pool:
                health["pool_size"] = pool.max_connections
        except RedisError as e:
            health["status"] = "unhealthy"
            health["error"] = str(e)

        return health


# =============================================================================
# LAYER 4: PUBLIC API
# =============================================================================


class RedisClient:
    """
    Async Redis client with connection pooling and health checks.

    Usage:
        client = RedisClient(settings)
        await client.connect()

        # Commands issued while Redis is down trigger a reconnect attempt,
        # at most once per REDIS_RECONNECT_INTERVAL.

        acquired = await client.set("tari:lock:x", lock_id, ttl=300, nx=True)
        released = await client.compare_and_delete("tari:lock:x", lock_id)

        await client.disconnect()
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.monotonic):
        """
        STAGE-REDIS.1: Client initialization
        """
        self._settings = settings
        self._clock = clock
        self._conn_mgr = ConnectionManager(settings)
        self._executor: OperationExecutor | None = None
        self._connect_lock = asyncio.Lock()
        self._last_attempt: float | None = None
        self._closed = False
        self._health_monitor = HealthMonitor(self._conn_mgr, settings)

        logger.info(
            "Redis client initialized",
            stage="REDIS.1",
            host=settings.redis.REDIS_HOST,
            port=settings.redis.REDIS_PORT,
        )

    async def connect(self) -> None:
        """
        Raises:
            CacheConnectionError: If connection fails
        """
        async with self._connect_lock:
            self._closed = False
            await self._connect()

    async def _connect(self) -> None:
        self._last_attempt = self._clock()
        client = await self._conn_mgr.connect()
        self._executor = OperationExecutor(client)

    async def ensure_connected(self) -> bool:
        """
        STAGE-REDIS.4: Lazy reconnect

        Returns:
            True when a connection is available, reconnecting first if the
            last attempt is older than REDIS_RECONNECT_INTERVAL
        """
        if self._executor is not None:
            return True
        if self._closed:
            return False

        async with self._connect_lock:
            if self._executor is not None:
                return True
            interval = self._settings.redis.REDIS_RECONNECT_INTERVAL
            if self._last_attempt is not None and self._clock() - self._last_attempt < interval:
                return False
            try:
                await self._connect()
            except CacheConnectionError:
                return False

        logger.info("Redis reconnected", stage="REDIS.4")
        return True

    async def disconnect(self) -> None:
        self._closed = True
        await self._conn_mgr.disconnect()
        self._executor = None

    async def ping(self) -> bool:
        return await self._conn_mgr.ping()

    def is_connected(self) -> bool:
        return self._conn_mgr.is_connected()

    async def _require_executor(self) -> OperationExecutor:
        if not await self.ensure_connected():
            raise CacheConnectionError(
                message="Redis client is not connected",
                details={
                    "host": self._settings.redis.REDIS_HOST,
                    "port": self._settings.redis.REDIS_PORT,
                },
            )
        return self._executor

    # -------------------------------------------------------------------------
    # Delegate to OperationExecutor
    # -------------------------------------------------------------------------

    async def get(self, key: str) -> str | None:
        executor = await self._require_executor()
        return await executor.get(key)

    async def set(self, key: str, value: str, ttl: int | None = None, nx: bool = False) -> bool:
        executor = await self._require_executor()
        return await executor.set(key, value, ttl, nx)

    async def delete(self, *keys: str) -> int:
        executor = await self._require_executor()
        return await executor.delete(*keys)

    async def exists(self, *keys: str) -> int:
        executor = await self._require_executor()
        return await executor.exists(*keys)

    async def expire(self, key: str, ttl: int) -> bool:
        executor = await self._require_executor()
        return await executor.expire(key, ttl)

    async def ttl(self, key: str) -> int:
        executor = await self._require_executor()
        return await executor.ttl(key)

    async def compare_and_delete(self, key: str, expected: str) -> bool:
        executor = await self._require_executor()
        return await executor.compare_and_delete(key, expected)

    async def compare_and_expire(self, key: str, expected: str, ttl: int) -> bool:
        executor = await self._require_executor()
        return await executor.compare_and_expire(key, expected, ttl)

    async def scan_delete(self, pattern: str) -> int:
        executor = await self._require_executor()
        return await executor.scan_delete(pattern)

    async def health_check(self) -> dict[str, Any]:
        return await self._health_monitor.health_check()
