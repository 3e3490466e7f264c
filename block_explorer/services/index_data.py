"""
Index Snapshot Builder

STAGE-SNAP: Aggregate the data behind the explorer's front page

Given a (from, limit) window this collects, from the base node:
- tip info, node version
- the last 101 headers (algorithm split, block times)
- the page headers plus one (kernel / output deltas)
- mempool transactions (fee totals)
- the network difficulty series (hash-rate charts)
- the page blocks and active validator nodes (mining stats)

Sub-fetches after the tip run concurrently and fail independently: a failed
one is logged and replaced with an empty value. The snapshot as a whole is
None when the tip or the tip block cannot be resolved.
"""

import asyncio
import time
from collections.abc import Awaitable, Callable
from datetime import datetime, timezone
from typing import Any

from block_explorer.core.config.constants import (
    DIFFICULTY_SAMPLES_FROM_TIP,
    HASH_RATE_WINDOW,
    POW_NAMES,
    RANDOMX_MINER_HASH_RATE,
    RECENT_HEADERS_COUNT,
    SHA3X_MINER_HASH_RATE,
    TARGET_ALGO_BLOCK_TIME_MINUTES,
    TARGET_BLOCK_TIME_MINUTES,
    PowAlgo,
)
from block_explorer.core.interfaces.base_node import BaseNodeClient
from block_explorer.core.logging.logger import get_logger, log_stage
from block_explorer.infrastructure.base_node.results import resolve_result
from block_explorer.infrastructure.cache.memo_cache import MemoCache
from block_explorer.services.mining_stats import mining_stats

logger = get_logger(__name__)

# Algorithm split windows (most recent N blocks)
SPLIT_WINDOWS = (10, 20, 50, 100)

SPLIT_PREFIXES = {
    PowAlgo.MONERO_RANDOMX.value: "moneroRx",
    PowAlgo.SHA3X.value: "sha3X",
    PowAlgo.TARI_RANDOMX.value: "tariRx",
}

STAT_FIELDS = ("totalCoinbaseXtm", "numCoinbases", "numOutputsNoCoinbases", "numInputs")


def _to_int(value: Any) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _pow_algo(header: dict[str, Any]) -> str:
    return str((header.get("pow") or {}).get("pow_algo", ""))


def _block_height(block: dict[str, Any]) -> int:
    return _to_int(((block.get("block") or {}).get("header") or {}).get("height"))


def algo_split(recent_headers: list[dict[str, Any]]) -> dict[str, int]:
    """
    Blocks per algorithm over the last 10/20/50/100 headers.

    The oldest header of the 101 is only a reference point and is not counted.
    """
    split = {f"{prefix}{window}": 0 for prefix in SPLIT_PREFIXES.values() for window in SPLIT_WINDOWS}
    for index, header in enumerate(recent_headers[:-1]):
        prefix = SPLIT_PREFIXES.get(_pow_algo(header), SPLIT_PREFIXES[PowAlgo.TARI_RANDOMX.value])
        for window in SPLIT_WINDOWS:
            if index < window:
                split[f"{prefix}{window}"] += 1
    return split


def hash_rates(difficulties: list[dict[str, Any]], field: str) -> list[int]:
    """
    Hash-rate series for the chart: at most HASH_RATE_WINDOW points ending
    just before the newest sample. Zero gaps take the next non-zero value.
    """
    values = [_to_int(sample.get(field)) for sample in difficulties]
    end = max(len(values) - 1, 0)
    series = values[max(0, end - HASH_RATE_WINDOW):end]

    for i in range(len(series) - 2, -1, -1):
        if series[i] == 0:
            series[i] = series[i + 1]
    return series


def block_times(
    recent_headers: list[dict[str, Any]], algo: str | None, target_minutes: int
) -> dict[str, Any]:
    """
    Minutes between consecutive headers (newest first), relative to target.
    """
    headers = recent_headers
    if algo is not None:
        headers = [header for header in recent_headers if _pow_algo(header) == algo]

    actual = [
        (_to_int(headers[i - 1].get("timestamp")) - _to_int(headers[i].get("timestamp"))) / 60
        for i in range(1, len(headers))
    ]
    average = sum(actual) / len(actual) if actual else 0
    return {
        "series": [minutes - target_minutes for minutes in actual],
        "average": f"{average:.2f}",
    }


def mempool_with_fees(mempool: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """
    Annotate each mempool transaction body with total_fees and the signature
    of its last kernel.
    """
    for entry in mempool:
        body = (entry.get("transaction") or {}).get("body") or {}
        kernels = body.get("kernels") or []
        body["total_fees"] = sum(_to_int(kernel.get("fee")) for kernel in kernels)
        if kernels:
            body["signature"] = (kernels[-1].get("excess_sig") or {}).get("signature")
    return mempool


class IndexDataBuilder:
    """
    Builds the index snapshot for a pagination window.

    Usage:
        builder = IndexDataBuilder(client, memo_cache)
        snapshot = await builder.build(0, 20)
    """

    def __init__(
        self,
        client: BaseNodeClient,
        memo_cache: MemoCache,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._client = client
        self._memo = memo_cache
        self._clock = clock

    async def __call__(self, from_: int, limit: int) -> dict[str, Any] | None:
        return await self.build(from_, limit)

    async def _fetch(self, name: str, call: Callable[[], Awaitable[Any] | Any], default: Any) -> Any:
        try:
            return await resolve_result(call())
        except Exception as e:
            log_stage(
                logger, "SNAP.FETCH", "Sub-fetch failed, using empty value", level="warning",
                fetch=name, error=str(e),
            )
            return default

    async def get_tip_height(self) -> int | None:
        """
        Current best block height, or None when the node reports no metadata.
        """
        tip_info = await resolve_result(self._client.get_tip_info({}))
        metadata = (tip_info or {}).get("metadata")
        if not metadata:
            return None
        return _to_int(metadata.get("best_block_height"))

    async def build(self, from_: int, limit: int) -> dict[str, Any] | None:
        """
        STAGE-SNAP.1: Aggregate the index snapshot

        Returns:
            Snapshot dict, or None when the tip or tip block is unavailable
        """
        start = time.perf_counter()
        client = self._client

        tip_info = await resolve_result(client.get_tip_info({}))
        metadata = (tip_info or {}).get("metadata")
        if not metadata:
            log_stage(logger, "SNAP.1", "Tip info unavailable", level="warning")
            return None
        tip_height = _to_int(metadata.get("best_block_height"))

        page_start = from_ or tip_height
        page_heights = [page_start - i for i in range(limit) if page_start - i >= 0]

        version_result, recent_resp, page_resp, mempool, difficulties, blocks = await asyncio.gather(
            self._fetch("get_version", lambda: client.get_version({}), {}),
            self._fetch(
                "list_headers:recent",
                lambda: client.list_headers(
                    {"tip_height": tip_height, "from_height": 0, "num_headers": RECENT_HEADERS_COUNT}
                ),
                [],
            ),
            # One extra header so the oldest shown one has an MMR delta.
            self._fetch(
                "list_headers:page",
                lambda: client.list_headers(
                    {"tip_height": tip_height, "from_height": from_, "num_headers": limit + 1}
                ),
                [],
            ),
            self._fetch("get_mempool_transactions", lambda: client.get_mempool_transactions({}), []),
            self._fetch(
                "get_network_difficulty",
                lambda: client.get_network_difficulty({"from_tip": DIFFICULTY_SAMPLES_FROM_TIP}),
                [],
            ),
            self._fetch("get_blocks:page", lambda: client.get_blocks({"heights": page_heights}), []),
        )

        if not blocks:
            log_stage(logger, "SNAP.1", "No blocks for window", level="warning", from_=from_, limit=limit)
            return None

        version = ((version_result or {}).get("value") or "")[:25]
        recent_headers = [entry["header"] for entry in recent_resp if entry.get("header")]
        headers = [entry["header"] for entry in page_resp if entry.get("header")]

        headers = self._annotate_headers(headers)
        if not headers:
            log_stage(logger, "SNAP.1", "No headers for window", level="warning", from_=from_, limit=limit)
            return None

        stats = sorted(
            (
                {"height": _block_height(block), **mining_stats(block)}
                for block in blocks
            ),
            key=lambda stat: stat["height"],
            reverse=True,
        )
        await self._attach_stats(headers, stats)

        active_vns = await self._memo.get(
            client.get_active_validator_nodes, {"height": tip_height}
        )

        tip_block = await self._memo.get(
            client.get_blocks, {"heights": [tip_height]}
        )
        if not tip_block:
            log_stage(logger, "SNAP.1", "Tip block unavailable", level="warning", tip_height=tip_height)
            return None

        first_height = _to_int(headers[0].get("height"))

        total_rates = hash_rates(difficulties, "estimated_hash_rate")
        sha3x_rates = hash_rates(difficulties, "sha3x_estimated_hash_rate")
        monero_rates = hash_rates(difficulties, "monero_randomx_estimated_hash_rate")
        tari_rates = hash_rates(difficulties, "tari_randomx_estimated_hash_rate")

        current_sha3x = sha3x_rates[-1] if sha3x_rates else 0
        current_monero = monero_rates[-1] if monero_rates else 0
        current_tari = tari_rates[-1] if tari_rates else 0

        snapshot = {
            "title": "Blocks",
            "version": version,
            "tipInfo": tip_info,
            "mempool": mempool_with_fees(mempool),
            "headers": headers,
            "pows": POW_NAMES,
            "nextPage": first_height - limit,
            "prevPage": first_height + limit,
            "limit": limit,
            "from": from_,
            "algoSplit": algo_split(recent_headers),
            "blockTimes": block_times(recent_headers, None, TARGET_BLOCK_TIME_MINUTES),
            "moneroRandomxTimes": block_times(
                recent_headers, PowAlgo.MONERO_RANDOMX.value, TARGET_ALGO_BLOCK_TIME_MINUTES
            ),
            "sha3xTimes": block_times(
                recent_headers, PowAlgo.SHA3X.value, TARGET_ALGO_BLOCK_TIME_MINUTES
            ),
            "tariRandomxTimes": block_times(
                recent_headers, PowAlgo.TARI_RANDOMX.value, TARGET_ALGO_BLOCK_TIME_MINUTES
            ),
            "currentHashRate": total_rates[-1] if total_rates else 0,
            "totalHashRates": total_rates,
            "currentSha3xHashRate": current_sha3x,
            "sha3xHashRates": sha3x_rates,
            "averageSha3xMiners": current_sha3x // SHA3X_MINER_HASH_RATE,
            "currentMoneroRandomxHashRate": current_monero,
            "moneroRandomxHashRates": monero_rates,
            "averageMoneroRandomxMiners": current_monero // RANDOMX_MINER_HASH_RATE,
            "currentTariRandomxHashRate": current_tari,
            "tariRandomxHashRates": tari_rates,
            "averageTariRandomxMiners": current_tari // RANDOMX_MINER_HASH_RATE,
            "activeVns": active_vns,
            "lastUpdate": self._clock().isoformat(),
            "stats": stats,
        }

        log_stage(
            logger, "SNAP.1", "Index snapshot built",
            from_=from_, limit=limit, tip_height=tip_height,
            duration_ms=round((time.perf_counter() - start) * 1000, 2),
        )
        return snapshot

    @staticmethod
    def _annotate_headers(headers: list[dict[str, Any]]) -> list[dict[str, Any]]:
        """
        Kernel/output counts from MMR size deltas. The extra trailing header is
        dropped unless it is genesis, whose counts are its MMR sizes.
        """
        if not headers:
            return headers

        for i in range(len(headers) - 2, -1, -1):
            header, older = headers[i], headers[i + 1]
            header["kernels"] = _to_int(header.get("kernel_mmr_size")) - _to_int(older.get("kernel_mmr_size"))
            header["outputs"] = _to_int(header.get("output_mmr_size")) - _to_int(older.get("output_mmr_size"))
            header["powText"] = POW_NAMES.get(_pow_algo(header))

        last = headers[-1]
        if _to_int(last.get("height")) == 0:
            last["kernels"] = _to_int(last.get("kernel_mmr_size"))
            last["outputs"] = _to_int(last.get("output_mmr_size"))
            last["powText"] = POW_NAMES.get(_pow_algo(last))
        else:
            headers = headers[:-1]
        return headers

    async def _attach_stats(self, headers: list[dict[str, Any]], stats: list[dict[str, Any]]) -> None:
        by_height = {stat["height"]: stat for stat in stats}
        for header in headers:
            height = _to_int(header.get("height"))
            stat = by_height.get(height)
            if stat is None:
                block = await self._memo.get(
                    self._client.get_blocks, {"heights": [height]}
                )
                stat = mining_stats(block)
            for field in STAT_FIELDS:
                header[field] = stat[field]
