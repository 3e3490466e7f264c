"""
Pytest Configuration and Shared Test Fixtures

All fixtures defined here are automatically available to all test files.
"""

import os
import sys
from unittest.mock import AsyncMock

import pytest

# Add project root to sys.path
sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from block_explorer.core.config.settings import Settings  # noqa: E402


# ============================================================================
# Settings
# ============================================================================


@pytest.fixture
def test_settings():
    """
    Real Settings object isolated from the environment and any .env file.
    """
    return Settings(
        _env_file=None,
        CACHE_L1_MAX_SIZE=100,
        UPDATER_RETRY_DELAY_SECONDS=0,
        LOG_FORMAT="console",
    )


# ============================================================================
# In-memory atomic store (lock backing store)
# ============================================================================


class InMemoryAtomicStore:
    """
    Emulates the Redis primitives the distributed lock uses.

    Each method completes without yielding to the event loop, so every
    operation is atomic just as a single Redis command or Lua script is.
    Expiry is not simulated; tests call expire_now() to model a lapsed TTL.
    """

    def __init__(self):
        self.data: dict[str, str] = {}
        self.ttls: dict[str, int] = {}
        self.calls: list[tuple] = []

    async def set(self, key, value, ttl=None, nx=False):
        self.calls.append(("set", key, value, ttl, nx))
        if nx and key in self.data:
            return False
        self.data[key] = value
        if ttl is not None:
            self.ttls[key] = ttl
        return True

    async def get(self, key):
        return self.data.get(key)

    async def ttl(self, key):
        if key not in self.data:
            return -2
        return self.ttls.get(key, -1)

    async def compare_and_delete(self, key, expected):
        self.calls.append(("compare_and_delete", key, expected))
        if self.data.get(key) == expected:
            del self.data[key]
            self.ttls.pop(key, None)
            return True
        return False

    async def compare_and_expire(self, key, expected, ttl):
        self.calls.append(("compare_and_expire", key, expected, ttl))
        if self.data.get(key) == expected:
            self.ttls[key] = ttl
            return True
        return False

    def expire_now(self, key):
        self.data.pop(key, None)
        self.ttls.pop(key, None)


@pytest.fixture
def atomic_store():
    return InMemoryAtomicStore()


@pytest.fixture
def no_sleep():
    """Sleep replacement that returns immediately and records delays."""
    return AsyncMock(return_value=None)


# ============================================================================
# Fake base node
# ============================================================================


def make_header(height, pow_algo="1", timestamp=None, kernel_mmr_size=None, output_mmr_size=None):
    return {
        "height": str(height),
        "timestamp": str(timestamp if timestamp is not None else 1_700_000_000 + height * 120),
        "kernel_mmr_size": str(kernel_mmr_size if kernel_mmr_size is not None else height * 3),
        "output_mmr_size": str(output_mmr_size if output_mmr_size is not None else height * 5),
        "pow": {"pow_algo": pow_algo},
    }


def make_block(height, coinbase_values=(1_000_000,), other_outputs=1, inputs=1, pow_algo="1"):
    outputs = [
        {
            "features": {"output_type": 1, "range_proof_type": 1},
            "minimum_value_promise": str(value),
        }
        for value in coinbase_values
    ]
    outputs += [
        {"features": {"output_type": 0, "range_proof_type": 0}, "minimum_value_promise": "0"}
        for _ in range(other_outputs)
    ]
    return {
        "block": {
            "header": make_header(height, pow_algo=pow_algo),
            "body": {
                "inputs": [{"input_data": f"in-{height}-{i}"} for i in range(inputs)],
                "outputs": outputs,
                "kernels": [],
            },
        }
    }


class FakeBaseNode:
    """
    Small in-memory chain. Unary calls are coroutines, streaming calls are
    async generators, like real gRPC stubs.
    """

    def __init__(self, tip_height=30):
        self.tip_height = tip_height
        self.calls: list[tuple[str, dict]] = []

    async def get_version(self, request):
        self.calls.append(("get_version", request))
        return {"value": "1.2.3-explorer-test-build-with-a-long-suffix"}

    async def get_tip_info(self, request):
        self.calls.append(("get_tip_info", request))
        return {"metadata": {"best_block_height": str(self.tip_height)}}

    async def list_headers(self, request):
        self.calls.append(("list_headers", request))
        start = request["from_height"] or self.tip_height
        for height in range(start, max(start - request["num_headers"], -1), -1):
            yield {"header": make_header(height, pow_algo=str(height % 3))}

    async def get_blocks(self, request):
        self.calls.append(("get_blocks", request))
        for height in request["heights"]:
            if 0 <= height <= self.tip_height:
                yield make_block(height)

    async def get_mempool_transactions(self, request):
        self.calls.append(("get_mempool_transactions", request))
        yield {
            "transaction": {
                "body": {
                    "kernels": [
                        {"fee": "10", "excess_sig": {"signature": "sig-a"}},
                        {"fee": "15", "excess_sig": {"signature": "sig-b"}},
                    ]
                }
            }
        }

    async def get_network_difficulty(self, request):
        self.calls.append(("get_network_difficulty", request))
        for i in range(request["from_tip"]):
            yield {
                "estimated_hash_rate": str(1000 + i),
                "sha3x_estimated_hash_rate": str(400_000_000),
                "monero_randomx_estimated_hash_rate": str(5400),
                "tari_randomx_estimated_hash_rate": str(2700 * 3),
            }

    async def get_active_validator_nodes(self, request):
        self.calls.append(("get_active_validator_nodes", request))
        yield {"public_key": "vn-1", "shard_key": "s-1"}

    async def get_header_by_hash(self, request):
        return {}

    async def search_utxos(self, request):
        return []

    async def search_kernels(self, request):
        return []

    async def get_tokens(self, request):
        return []

    def count(self, method):
        return sum(1 for name, _ in self.calls if name == method)


@pytest.fixture
def fake_base_node():
    return FakeBaseNode()


@pytest.fixture
def block_factory():
    return make_block


@pytest.fixture
def header_factory():
    return make_header
