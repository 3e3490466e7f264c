#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the block
explorer. All configuration is centralized here so the cache, the distributed
lock and the background updater read the same values.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Grouped read-only views (settings.redis, settings.updater, ...)
- Easy testing with reload_settings()
"""

from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Redis configuration for the distributed lock and the secondary cache.

    STAGE-0.1: Redis connection configuration
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Command timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=10, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_RECONNECT_INTERVAL: float = Field(
        default=5.0, description="Minimum seconds between reconnect attempts while Redis is down"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Caching configuration.

    STAGE-2: In-process memo cache and shared Redis snapshot cache
    """

    CACHE_PREFIX: str = Field(default="tari", description="Namespace for every Redis key")
    CACHE_L1_MAX_SIZE: int = Field(default=1000, description="Memoizing LRU cache max entries")
    SNAPSHOT_CACHE_TTL: int = Field(default=300, description="TTL of the shared index snapshot")
    INDEX_CACHE_CONTROL: str = Field(
        default="public, max-age=120, s-maxage=60, stale-while-revalidate=30",
        description="Cache-Control header for the index page",
    )
    MEMPOOL_CACHE_CONTROL: str = Field(
        default="public, max-age=15, s-maxage=15, stale-while-revalidate=15",
        description="Cache-Control header for mempool views",
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class UpdaterSettings(BaseSettings):
    """
    Background updater schedule and retry policy.

    STAGE-UPD: Index snapshot refresh
    """

    UPDATER_ENABLED: bool = Field(default=True, description="Start the updater at startup")
    UPDATER_INTERVAL_SECONDS: float = Field(default=60.0, description="Delay between cycles")
    UPDATER_MAX_RETRIES: int = Field(default=3, description="Attempts per cycle")
    UPDATER_RETRY_DELAY_SECONDS: float = Field(default=5.0, description="Pause between attempts")
    UPDATER_FROM: int = Field(default=0, description="Snapshot pagination offset")
    UPDATER_LIMIT: int = Field(default=20, description="Snapshot pagination size")
    UPDATER_SKIP_UNCHANGED_TIP: bool = Field(
        default=False, description="Skip recomputation when the chain tip did not move"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LockSettings(BaseSettings):
    """
    Distributed lock configuration.

    STAGE-LOCK: Cross-instance coordination
    """

    LOCK_TTL_SECONDS: int = Field(default=300, description="Lock expiry in seconds")
    LOCK_RENEW_RATIO: float = Field(default=0.7, description="Fraction of TTL between renewals")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class BaseNodeSettings(BaseSettings):
    """
    Upstream base node connection.

    The client itself is built by an importable factory so the gRPC stubs stay
    outside this package.
    """

    BASE_NODE_GRPC_URL: str = Field(default="localhost:18142", description="Base node address")
    BASE_NODE_CLIENT_FACTORY: str | None = Field(
        default=None, description="'module:callable' building the upstream client"
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    STAGE-L: Logging configuration
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class ApplicationSettings(BaseSettings):
    """
    General application settings.

    STAGE-0: Application initialization
    """

    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Tari Block Explorer", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=4000, description="API port")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from block_explorer.core.config.settings import get_settings

        settings = get_settings()
        ttl = settings.lock.LOCK_TTL_SECONDS
        capacity = settings.cache.CACHE_L1_MAX_SIZE
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Command timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=10, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_RECONNECT_INTERVAL: float = Field(
        default=5.0, description="Minimum seconds between reconnect attempts while Redis is down"
    )

    # Cache settings
    CACHE_PREFIX: str = Field(default="tari", description="Namespace for every Redis key")
    CACHE_L1_MAX_SIZE: int = Field(default=1000, description="Memoizing LRU cache max entries")
    SNAPSHOT_CACHE_TTL: int = Field(default=300, description="TTL of the shared index snapshot")
    INDEX_CACHE_CONTROL: str = Field(
        default="public, max-age=120, s-maxage=60, stale-while-revalidate=30",
        description="Cache-Control header for the index page",
    )
    MEMPOOL_CACHE_CONTROL: str = Field(
        default="public, max-age=15, s-maxage=15, stale-while-revalidate=15",
        description="Cache-Control header for mempool views",
    )

    # Background updater settings
    UPDATER_ENABLED: bool = Field(default=True, description="Start the updater at startup")
    UPDATER_INTERVAL_SECONDS: float = Field(default=60.0, description="Delay between cycles")
    UPDATER_MAX_RETRIES: int = Field(default=3, description="Attempts per cycle")
    UPDATER_RETRY_DELAY_SECONDS: float = Field(default=5.0, description="Pause between attempts")
    UPDATER_FROM: int = Field(default=0, description="Snapshot pagination offset")
    UPDATER_LIMIT: int = Field(default=20, description="Snapshot pagination size")
    UPDATER_SKIP_UNCHANGED_TIP: bool = Field(
        default=False, description="Skip recomputation when the chain tip did not move"
    )

    # Distributed lock settings
    LOCK_TTL_SECONDS: int = Field(default=300, description="Lock expiry in seconds")
    LOCK_RENEW_RATIO: float = Field(default=0.7, description="Fraction of TTL between renewals")

    # Base node settings
    BASE_NODE_GRPC_URL: str = Field(default="localhost:18142", description="Base node address")
    BASE_NODE_CLIENT_FACTORY: str | None = Field(
        default=None, description="'module:callable' building the upstream client"
    )

    # Logging settings
    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    # Application settings
    ENVIRONMENT: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Application environment"
    )
    APP_NAME: str = Field(default="Tari Block Explorer", description="Application name")
    APP_VERSION: str = Field(default="1.0.0", description="Application version")
    API_HOST: str = Field(default="0.0.0.0", description="API host")
    API_PORT: int = Field(default=4000, description="API port")
    CORS_ORIGINS: list[str] = Field(default=["*"], description="Allowed CORS origins")

    @field_validator("LOG_LEVEL")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"LOG_LEVEL must be one of {valid_levels}")
        return v.upper()

    @field_validator(
        "CACHE_L1_MAX_SIZE", "SNAPSHOT_CACHE_TTL", "UPDATER_MAX_RETRIES", "LOCK_TTL_SECONDS"
    )
    @classmethod
    def validate_positive(cls, v, info):
        """Capacities, retry counts and TTLs must be positive."""
        if v < 1:
            raise ValueError(f"{info.field_name} must be >= 1")
        return v

    @field_validator("UPDATER_INTERVAL_SECONDS", "UPDATER_RETRY_DELAY_SECONDS", "REDIS_RECONNECT_INTERVAL")
    @classmethod
    def validate_non_negative(cls, v, info):
        if v < 0:
            raise ValueError(f"{info.field_name} must be >= 0")
        return v

    @field_validator("LOCK_RENEW_RATIO")
    @classmethod
    def validate_renew_ratio(cls, v):
        """Renewal has to fire before the lock expires."""
        if not 0 < v < 1:
            raise ValueError("LOCK_RENEW_RATIO must be between 0 and 1 (exclusive)")
        return v

    # Grouped views
    @property
    def redis(self) -> 'RedisSettings':
        """Get Redis settings."""
        return RedisSettings(
            REDIS_HOST=self.REDIS_HOST,
            REDIS_PORT=self.REDIS_PORT,
            REDIS_DB=self.REDIS_DB,
            REDIS_PASSWORD=self.REDIS_PASSWORD,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
            REDIS_RECONNECT_INTERVAL=self.REDIS_RECONNECT_INTERVAL
        )

    @property
    def cache(self) -> 'CacheSettings':
        """Get cache settings."""
        return CacheSettings(
            CACHE_PREFIX=self.CACHE_PREFIX,
            CACHE_L1_MAX_SIZE=self.CACHE_L1_MAX_SIZE,
            SNAPSHOT_CACHE_TTL=self.SNAPSHOT_CACHE_TTL,
            INDEX_CACHE_CONTROL=self.INDEX_CACHE_CONTROL,
            MEMPOOL_CACHE_CONTROL=self.MEMPOOL_CACHE_CONTROL
        )

    @property
    def updater(self) -> 'UpdaterSettings':
        """Get background updater settings."""
        return UpdaterSettings(
            UPDATER_ENABLED=self.UPDATER_ENABLED,
            UPDATER_INTERVAL_SECONDS=self.UPDATER_INTERVAL_SECONDS,
            UPDATER_MAX_RETRIES=self.UPDATER_MAX_RETRIES,
            UPDATER_RETRY_DELAY_SECONDS=self.UPDATER_RETRY_DELAY_SECONDS,
            UPDATER_FROM=self.UPDATER_FROM,
            UPDATER_LIMIT=self.UPDATER_LIMIT,
            UPDATER_SKIP_UNCHANGED_TIP=self.UPDATER_SKIP_UNCHANGED_TIP
        )

    @property
    def lock(self) -> 'LockSettings':
        """Get distributed lock settings."""
        return LockSettings(
            LOCK_TTL_SECONDS=self.LOCK_TTL_SECONDS,
            LOCK_RENEW_RATIO=self.LOCK_RENEW_RATIO
        )

    @property
    def base_node(self) -> 'BaseNodeSettings':
        """Get upstream base node settings."""
        return BaseNodeSettings(
            BASE_NODE_GRPC_URL=self.BASE_NODE_GRPC_URL,
            BASE_NODE_CLIENT_FACTORY=self.BASE_NODE_CLIENT_FACTORY
        )

    @property
    def logging(self) -> 'LoggingSettings':
        """Get logging settings."""
        return LoggingSettings(
            LOG_LEVEL=self.LOG_LEVEL,
            LOG_FORMAT=self.LOG_FORMAT
        )

    @property
    def app(self) -> 'ApplicationSettings':
        """Get application settings."""
        return ApplicationSettings(
            ENVIRONMENT=self.ENVIRONMENT,
            APP_NAME=self.APP_NAME,
            APP_VERSION=self.APP_VERSION,
            API_HOST=self.API_HOST,
            API_PORT=self.API_PORT,
            CORS_ORIGINS=self.CORS_ORIGINS
        )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance.

    STAGE-0.3: Settings initialization

    Returns:
        Settings: Global settings instance
    """
    global _settings

    if _settings is None:
        _settings = Settings()

    return _settings


def reload_settings() -> Settings:
    """
    Reload settings (useful for testing).

    Returns:
        Settings: New settings instance
    """
    global _settings
    _settings = Settings()
    return _settings
