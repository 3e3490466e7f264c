"""
Base node client interface.

The explorer talks to a Tari base node over gRPC. The generated stubs are not
part of this package; deployments point BASE_NODE_CLIENT_FACTORY at a
"module:callable" that takes the node address and returns an object with the
methods below.

Each method takes a request dict. Unary RPCs return an awaitable; streaming
RPCs (list_headers, get_blocks, get_mempool_transactions,
get_network_difficulty, get_active_validator_nodes, search_*) may return an
async iterator instead. Use resolve_result() to normalize either shape.
Messages are plain dicts using the proto field names.
"""

import importlib
from typing import Any, Protocol, runtime_checkable

from block_explorer.core.config.settings import Settings
from block_explorer.core.exceptions import BaseNodeNotConfiguredError, ConfigurationError
from block_explorer.core.logging.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class BaseNodeClient(Protocol):
    def get_version(self, request: dict[str, Any]) -> Any: ...

    def get_tip_info(self, request: dict[str, Any]) -> Any: ...

    def list_headers(self, request: dict[str, Any]) -> Any: ...

    def get_blocks(self, request: dict[str, Any]) -> Any: ...

    def get_mempool_transactions(self, request: dict[str, Any]) -> Any: ...

    def get_network_difficulty(self, request: dict[str, Any]) -> Any: ...

    def get_active_validator_nodes(self, request: dict[str, Any]) -> Any: ...

    def get_header_by_hash(self, request: dict[str, Any]) -> Any: ...

    def search_utxos(self, request: dict[str, Any]) -> Any: ...

    def search_kernels(self, request: dict[str, Any]) -> Any: ...

    def get_tokens(self, request: dict[str, Any]) -> Any: ...


def load_base_node_client(settings: Settings) -> BaseNodeClient:
    """
    Build the base node client from BASE_NODE_CLIENT_FACTORY.

    Raises:
        BaseNodeNotConfiguredError: No factory configured
        ConfigurationError: Factory path cannot be imported or called
    """
    node_settings = settings.base_node
    factory_path = node_settings.BASE_NODE_CLIENT_FACTORY
    if not factory_path:
        raise BaseNodeNotConfiguredError(
            "No base node client factory configured"
        ).with_suggestion("Set BASE_NODE_CLIENT_FACTORY to 'package.module:callable'")

    module_name, sep, attr = factory_path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationError(
            "BASE_NODE_CLIENT_FACTORY must look like 'module:callable'",
            details={"value": factory_path},
        )

    try:
        factory = getattr(importlib.import_module(module_name), attr)
    except (ImportError, AttributeError) as e:
        raise ConfigurationError.from_exception(
            e, message=f"Cannot load base node client factory {factory_path}", factory=factory_path
        ) from e

    client = factory(node_settings.BASE_NODE_GRPC_URL)
    logger.info(
        "Base node client created",
        stage="BN.1",
        factory=factory_path,
        address=node_settings.BASE_NODE_GRPC_URL,
    )
    return client
