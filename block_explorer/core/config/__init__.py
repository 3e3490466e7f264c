"""
Configuration Module

- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: Behaviour constants and enums (staleness threshold, PoW ids)

Usage:
------
```python
from block_explorer.core.config import get_settings
from block_explorer.core.config.constants import HEALTH_STALENESS_SECONDS

settings = get_settings()
interval = settings.updater.UPDATER_INTERVAL_SECONDS
```
"""

from .settings import Settings, get_settings, reload_settings

__all__ = [
    "Settings",
    "get_settings",
    "reload_settings",
]
