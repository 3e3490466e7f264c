"""
Secondary Redis cache for JSON documents.

STAGE-2.2: Shared cache across instances

Unlike the memo cache this one is shared by every instance and entries can
expire. Every operation is fail-soft: a Redis problem turns into a miss,
False or 0 plus an error log, never an exception.
"""

from typing import Any

import orjson

from block_explorer.core.exceptions import CacheError
from block_explorer.core.logging.logger import get_logger
from block_explorer.infrastructure.cache.redis_client import RedisClient

logger = get_logger(__name__)

INT64_MIN = -(2**63)
INT64_MAX = 2**63 - 1


def sanitize_big_ints(value: Any) -> Any:
    """
    Recursively turn integers outside the signed 64-bit range into strings.

    Commitment amounts and difficulties can exceed what JSON consumers in
    other languages can parse.
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        if value < INT64_MIN or value > INT64_MAX:
            return str(value)
        return value
    if isinstance(value, dict):
        return {k: sanitize_big_ints(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [sanitize_big_ints(v) for v in value]
    return value


def _encode_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return obj.hex()
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


class CacheService:
    """
    JSON cache on top of RedisClient.

    Usage:
        cache = CacheService(redis_client)
        await cache.set(keys.recent_blocks(0, 20), snapshot, ttl_seconds=300)
        snapshot = await cache.get(keys.recent_blocks(0, 20))
    """

    def __init__(self, redis_client: RedisClient):
        self._redis = redis_client

    def is_connected(self) -> bool:
        return self._redis.is_connected()

    async def get(self, key: str) -> Any | None:
        if not await self._redis.ensure_connected():
            logger.warning("Redis not connected, cannot get key", stage="CACHE.L2.GET", key=key)
            return None

        try:
            data = await self._redis.get(key)
        except CacheError as e:
            logger.error("Error getting cache key", stage="CACHE.L2.GET", key=key, error=str(e))
            return None

        if data is None:
            logger.debug("Cache miss", stage="CACHE.L2.MISS", key=key)
            return None

        try:
            value = orjson.loads(data)
        except orjson.JSONDecodeError as e:
            logger.error("Corrupt cache entry", stage="CACHE.L2.GET", key=key, error=str(e))
            return None

        logger.debug("Cache hit", stage="CACHE.L2.HIT", key=key)
        return value

    async def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> bool:
        if not await self._redis.ensure_connected():
            logger.warning("Redis not connected, cannot set key", stage="CACHE.L2.SET", key=key)
            return False

        try:
            payload = orjson.dumps(sanitize_big_ints(value), default=_encode_default)
        except TypeError as e:
            logger.error("Cache value not serializable", stage="CACHE.L2.SET", key=key, error=str(e))
            return False

        try:
            await self._redis.set(key, payload.decode(), ttl=ttl_seconds)
        except CacheError as e:
            logger.error("Error setting cache key", stage="CACHE.L2.SET", key=key, error=str(e))
            return False

        logger.debug("Cache set", stage="CACHE.L2.SET", key=key, ttl=ttl_seconds)
        return True

    async def delete(self, key: str) -> bool:
        if not await self._redis.ensure_connected():
            logger.warning("Redis not connected, cannot delete key", stage="CACHE.L2.DEL", key=key)
            return False

        try:
            deleted = await self._redis.delete(key)
        except CacheError as e:
            logger.error("Error deleting cache key", stage="CACHE.L2.DEL", key=key, error=str(e))
            return False

        logger.debug("Cache delete", stage="CACHE.L2.DEL", key=key, deleted=deleted > 0)
        return deleted > 0

    async def exists(self, key: str) -> bool:
        if not await self._redis.ensure_connected():
            return False

        try:
            return await self._redis.exists(key) == 1
        except CacheError as e:
            logger.error("Error checking cache key", stage="CACHE.L2.EXISTS", key=key, error=str(e))
            return False

    async def delete_pattern(self, pattern: str) -> int:
        if not await self._redis.ensure_connected():
            logger.warning(
                "Redis not connected, cannot delete pattern", stage="CACHE.L2.DEL", pattern=pattern
            )
            return 0

        try:
            deleted = await self._redis.scan_delete(pattern)
        except CacheError as e:
            logger.error(
                "Error deleting cache pattern", stage="CACHE.L2.DEL", pattern=pattern, error=str(e)
            )
            return 0

        logger.debug("Cache delete pattern", stage="CACHE.L2.DEL", pattern=pattern, deleted=deleted)
        return deleted

    async def set_multiple(self, items: list[tuple[str, Any, int | None]]) -> int:
        """
        Set several (key, value, ttl_seconds) entries; returns how many succeeded.
        """
        if not await self._redis.ensure_connected():
            logger.warning("Redis not connected, cannot set multiple keys", stage="CACHE.L2.SET")
            return 0

        success_count = 0
        for key, value, ttl_seconds in items:
            if await self.set(key, value, ttl_seconds):
                success_count += 1

        logger.debug(
            "Cache set multiple", stage="CACHE.L2.SET", succeeded=success_count, total=len(items)
        )
        return success_count

    async def ping(self) -> bool:
        return await self._redis.ping()
