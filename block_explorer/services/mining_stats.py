"""
Per-block mining statistics.
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from block_explorer.core.config.constants import POW_NAMES
from block_explorer.core.exceptions import InvalidBlockError

COINBASE_OUTPUT_TYPE = 1
COINBASE_RANGE_PROOF_TYPE = 1
MICRO_XTM_PER_XTM = Decimal(1_000_000)


def _is_coinbase(output: dict[str, Any]) -> bool:
    features = output.get("features") or {}
    return (
        int(features.get("output_type", -1)) == COINBASE_OUTPUT_TYPE
        and int(features.get("range_proof_type", -1)) == COINBASE_RANGE_PROOF_TYPE
    )


def mining_stats(block: dict[str, Any] | list[dict[str, Any]]) -> dict[str, Any]:
    """
    Coinbase totals and input/output counts of a historical block.

    Accepts a block or a get_blocks result list (first element is used).

    Raises:
        InvalidBlockError: (a ValueError) when the block has no output list
    """
    block_data = block[0] if isinstance(block, list) and block else block
    if not isinstance(block_data, dict):
        raise InvalidBlockError("Invalid block data")

    inner = block_data.get("block") or {}
    body = inner.get("body") or {}
    outputs = body.get("outputs")
    if not isinstance(outputs, list):
        raise InvalidBlockError("Invalid block data")

    header = inner.get("header") or {}
    pow_algo = str((header.get("pow") or {}).get("pow_algo", "0"))
    timestamp = datetime.fromtimestamp(int(header.get("timestamp", 0)), tz=timezone.utc)

    coinbases = [output for output in outputs if _is_coinbase(output)]
    total_coinbase = sum(int(output.get("minimum_value_promise") or 0) for output in coinbases)

    return {
        "totalCoinbaseXtm": f"{Decimal(total_coinbase) / MICRO_XTM_PER_XTM:,.6f}",
        "numCoinbases": len(coinbases),
        "numOutputsNoCoinbases": len(outputs) - len(coinbases),
        "numInputs": len(body.get("inputs") or []),
        "powAlgo": POW_NAMES.get(pow_algo, pow_algo),
        "timestamp": timestamp.strftime("%Y-%m-%d %H:%M:%S"),
    }
