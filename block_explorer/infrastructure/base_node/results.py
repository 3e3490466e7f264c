"""
Normalization of base node call results.

Unary RPCs hand back an awaitable; server-streaming RPCs (headers, blocks,
mempool, difficulty) hand back an async iterator. Callers want a plain value
either way.
"""

import inspect
from typing import Any


async def resolve_result(result: Any) -> Any:
    """
    Await a unary result or drain a streaming one into a list.

    Plain values pass through unchanged.
    """
    if hasattr(result, "__aiter__"):
        return [item async for item in result]
    if inspect.isawaitable(result):
        return await result
    return result
