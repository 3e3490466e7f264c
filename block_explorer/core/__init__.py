"""
Core Module

Foundational components: configuration, logging, exceptions and the base node
client interface.
"""

from .exceptions import (
    BaseNodeNotConfiguredError,
    CacheConnectionError,
    CacheError,
    CacheKeyError,
    ConfigurationError,
    ExplorerError,
    SnapshotUnavailableError,
    UpstreamError,
)
from .logging import (
    clear_request_id,
    get_logger,
    get_request_id,
    log_stage,
    set_request_id,
    setup_logging,
)

__all__ = [
    "BaseNodeNotConfiguredError",
    "CacheConnectionError",
    "CacheError",
    "CacheKeyError",
    "ConfigurationError",
    "ExplorerError",
    "SnapshotUnavailableError",
    "UpstreamError",
    "clear_request_id",
    "get_logger",
    "get_request_id",
    "log_stage",
    "set_request_id",
    "setup_logging",
]
