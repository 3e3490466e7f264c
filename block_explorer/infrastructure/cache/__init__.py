"""
Cache Module

- memo_cache: in-process LRU memoization of base node calls
- cache_service: shared JSON cache in Redis (fail-soft)
- redis_client: pooled async Redis client
"""

from .cache_keys import CacheKeys
from .cache_service import CacheService
from .memo_cache import MemoCache, make_key
from .redis_client import RedisClient

__all__ = [
    "CacheKeys",
    "CacheService",
    "MemoCache",
    "RedisClient",
    "make_key",
]
