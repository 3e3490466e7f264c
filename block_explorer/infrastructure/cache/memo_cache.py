"""
Memoizing LRU Cache for base node calls

Wraps an arbitrary async fetch function and memoizes its result under a key
derived from the call arguments. Capacity-bounded, no time-based expiry.

STAGE-CACHE: In-process memoization

Implementation Details:
- OrderedDict for O(1) lookup and LRU ordering (oldest first)
- Bookkeeping is synchronous, so no lock is needed under asyncio
- Concurrent misses on the same key share one in-flight fetch task
- Cancelling a caller never cancels a fetch other callers wait on
- Failed fetches are never cached

Key contract:
    The key is the canonical JSON of ``args`` only (object keys sorted), not of
    the fetch function. Two different functions called with identical
    arguments share an entry, so callers must keep argument shapes distinct
    per RPC (``{"heights": [h]}`` vs ``{"height": h}``).
"""

import asyncio
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from typing import Any

import orjson

from block_explorer.core.logging.logger import get_logger
from block_explorer.infrastructure.base_node.results import resolve_result
from block_explorer.infrastructure.monitoring.metrics import get_metrics_collector

logger = get_logger(__name__)

FetchFn = Callable[[Any], Awaitable[Any] | Any]


def _encode_default(obj: Any) -> Any:
    if isinstance(obj, (bytes, bytearray)):
        return obj.hex()
    if isinstance(obj, (set, frozenset)):
        return sorted(obj)
    raise TypeError(f"Cannot build cache key from {type(obj).__name__}")


def _retrieve_exception(task: asyncio.Task) -> None:
    # Every caller may have been cancelled; mark the failure as seen.
    if not task.cancelled():
        task.exception()


def make_key(args: Any) -> str:
    """
    Canonical cache key for a call's arguments.

    Mapping keys are sorted, so ``{"a": 1, "b": 2}`` and ``{"b": 2, "a": 1}``
    collide. Byte strings are hex-encoded.
    """
    return orjson.dumps(args, default=_encode_default, option=orjson.OPT_SORT_KEYS).decode()


class MemoCache:
    """
    Bounded LRU memoization of async calls.

    Usage:
        cache = MemoCache(max_size=1000)
        blocks = await cache.get(client.get_blocks, {"heights": [height]})
    """

    def __init__(self, max_size: int = 1000):
        if max_size < 1:
            raise ValueError("max_size must be >= 1")
        self._max_size = max_size
        self._entries: OrderedDict[str, Any] = OrderedDict()
        self._pending: dict[str, asyncio.Task] = {}
        self._metrics = get_metrics_collector()
        self._hits = 0
        self._misses = 0
        self._coalesced = 0

    def set(self, key: str, value: Any) -> None:
        """
        Insert or overwrite ``key``. At capacity, the oldest entry is evicted
        before a new key goes in.
        """
        if key in self._entries:
            self._entries.move_to_end(key)
        elif len(self._entries) >= self._max_size:
            evicted, _ = self._entries.popitem(last=False)
            logger.debug("Evicted cache entry", stage="CACHE.EVICT", key=evicted)
        self._entries[key] = value

    async def get(self, fetch_fn: FetchFn, args: Any) -> Any:
        """
        Return the memoized result of ``fetch_fn(args)``, calling it on a miss.

        A stored ``None`` is a valid hit. Errors raised by ``fetch_fn`` reach
        the caller unchanged and leave no entry behind.
        """
        key = make_key(args)

        if key in self._entries:
            self._entries.move_to_end(key)
            self._hits += 1
            self._metrics.record_cache_hit()
            return self._entries[key]

        pending = self._pending.get(key)
        if pending is not None:
            self._coalesced += 1
            return await asyncio.shield(pending)

        self._misses += 1
        self._metrics.record_cache_miss()

        # Own task, so a cancelled caller never cancels the fetch other callers wait on.
        task = asyncio.create_task(self._fetch(key, fetch_fn, args), name=f"memo-fetch:{key}")
        task.add_done_callback(_retrieve_exception)
        self._pending[key] = task
        return await asyncio.shield(task)

    async def _fetch(self, key: str, fetch_fn: FetchFn, args: Any) -> Any:
        try:
            value = await resolve_result(fetch_fn(args))
        finally:
            self._pending.pop(key, None)
        self.set(key, value)
        return value

    def __contains__(self, args: Any) -> bool:
        return make_key(args) in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def get_size(self) -> int:
        return len(self._entries)

    def get_max_size(self) -> int:
        return self._max_size

    def get_keys(self) -> list[str]:
        """
        Keys in LRU order (oldest first, newest last).
        """
        return list(self._entries.keys())

    def clear(self) -> None:
        self._entries.clear()

    def stats(self) -> dict[str, Any]:
        total = self._hits + self._misses
        return {
            "size": len(self._entries),
            "max_size": self._max_size,
            "hits": self._hits,
            "misses": self._misses,
            "coalesced": self._coalesced,
            "in_flight": len(self._pending),
            "hit_rate": round(self._hits / total, 4) if total else 0.0,
        }
