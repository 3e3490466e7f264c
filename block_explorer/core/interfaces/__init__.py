from .base_node import BaseNodeClient, load_base_node_client

__all__ = ["BaseNodeClient", "load_base_node_client"]
