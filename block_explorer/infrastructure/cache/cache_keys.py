"""
Redis key builders.

Every key lives under the configured CACHE_PREFIX so several explorers (or
networks) can share one Redis.
"""


class CacheKeys:
    """
    Usage:
        keys = CacheKeys("tari")
        keys.recent_blocks(0, 20)   # "tari:blocks:recent:0:20"
        keys.lock("background_updater:main")
    """

    def __init__(self, prefix: str = "tari"):
        self.prefix = prefix

    def recent_blocks(self, from_: int, limit: int) -> str:
        """Shared index snapshot for a pagination window."""
        return f"{self.prefix}:blocks:recent:{from_}:{limit}"

    def lock(self, name: str) -> str:
        return f"{self.prefix}:lock:{name}"

    def pattern(self, suffix: str = "*") -> str:
        """Glob over this prefix, for delete_pattern."""
        return f"{self.prefix}:{suffix}"
