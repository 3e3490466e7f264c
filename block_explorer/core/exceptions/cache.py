"""
Cache-Related Exceptions

Errors raised by the Redis client. The lock and the snapshot cache catch them
and degrade; only direct callers of the client see them.
"""

from block_explorer.core.exceptions.base import ExplorerError


class CacheError(ExplorerError):
    """Base exception for cache-related errors."""
    pass


class CacheConnectionError(CacheError):
    """
    Raised when unable to connect to Redis.

    Common causes:
    - Redis server is down
    - Incorrect host/port configuration
    - Authentication failure
    """
    pass


class CacheKeyError(CacheError):
    """Raised when a command on a single key fails."""
    pass
