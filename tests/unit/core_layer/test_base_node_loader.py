"""
Unit Tests for loading the base node client factory
"""

import pytest

from block_explorer.core.config.settings import Settings
from block_explorer.core.exceptions import BaseNodeNotConfiguredError, ConfigurationError
from block_explorer.core.interfaces.base_node import BaseNodeClient, load_base_node_client

created = []


def make_client(address):
    from conftest import FakeBaseNode

    created.append(address)
    return FakeBaseNode()


@pytest.mark.unit
class TestLoadBaseNodeClient:

    def test_missing_factory(self):
        with pytest.raises(BaseNodeNotConfiguredError) as exc_info:
            load_base_node_client(Settings(_env_file=None))

        assert "suggestion" in exc_info.value.details
        assert exc_info.value.status_code == 503

    def test_malformed_factory_path(self):
        with pytest.raises(ConfigurationError):
            load_base_node_client(Settings(_env_file=None, BASE_NODE_CLIENT_FACTORY="no_colon_here"))

    def test_unimportable_factory(self):
        settings = Settings(_env_file=None, BASE_NODE_CLIENT_FACTORY="missing_explorer_module:make")

        with pytest.raises(ConfigurationError) as exc_info:
            load_base_node_client(settings)

        assert exc_info.value.details["original_error"] == "ModuleNotFoundError"

    def test_missing_attribute(self):
        settings = Settings(_env_file=None, BASE_NODE_CLIENT_FACTORY="json:no_such_factory")

        with pytest.raises(ConfigurationError):
            load_base_node_client(settings)

    def test_factory_receives_address(self):
        settings = Settings(
            _env_file=None,
            BASE_NODE_CLIENT_FACTORY=f"{__name__}:make_client",
            BASE_NODE_GRPC_URL="node.internal:18142",
        )

        client = load_base_node_client(settings)

        assert isinstance(client, BaseNodeClient)
        assert created[-1] == "node.internal:18142"
