"""
Exception Module

- **base.py**: ExplorerError base class + configuration errors
- **cache.py**: Redis / cache exceptions
- **upstream.py**: Base node exceptions

Usage:
------
```python
from block_explorer.core.exceptions import CacheKeyError, SnapshotUnavailableError
```
"""

from block_explorer.core.exceptions.base import (
    BaseNodeNotConfiguredError,
    ConfigurationError,
    ExplorerError,
)
from block_explorer.core.exceptions.cache import CacheConnectionError, CacheError, CacheKeyError
from block_explorer.core.exceptions.upstream import (
    InvalidBlockError,
    SnapshotUnavailableError,
    UpstreamError,
)

__all__ = [
    "ExplorerError",
    "ConfigurationError",
    "BaseNodeNotConfiguredError",
    "CacheError",
    "CacheConnectionError",
    "CacheKeyError",
    "UpstreamError",
    "SnapshotUnavailableError",
    "InvalidBlockError",
]
