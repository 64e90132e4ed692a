#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
two-tier cache. All configuration is centralized here to ensure consistency
across modules.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Backend selection (memory vs tiered) resolved once, here
- Easy testing with override mechanisms
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from tiercache.core.config.constants import (
    CLEANUP_INTERVAL_SECONDS,
    CONNECT_ATTEMPTS,
    DEFAULT_TTL_SECONDS,
    RECONNECT_INTERVAL_SECONDS,
    REFRESH_THRESHOLD,
    CacheMode,
)


class RedisSettings(BaseSettings):
    """
    Redis configuration for the distributed tier.

    The tier is enabled only when REDIS_URL is present. Timeouts here are the
    only blocking bound on distributed operations.
    """

    REDIS_URL: str | None = Field(default=None, description="Redis connection URL")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0, description="Connect timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_CONNECT_ATTEMPTS: int = Field(default=CONNECT_ATTEMPTS, description="Connect attempts per probe")
    REDIS_RECONNECT_INTERVAL: float = Field(
        default=RECONNECT_INTERVAL_SECONDS,
        description="Minimum seconds between reconnect probes after a failure",
    )

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Cache behaviour configuration.
    """

    CACHE_MODE: CacheMode = Field(default=CacheMode.MEMORY, description="Backend selection")
    CACHE_DEFAULT_TTL: int = Field(default=DEFAULT_TTL_SECONDS, description="Default TTL in seconds")
    CACHE_CLEANUP_INTERVAL: float = Field(
        default=CLEANUP_INTERVAL_SECONDS, description="Entry store sweep interval in seconds"
    )
    CACHE_REFRESH_THRESHOLD: float = Field(
        default=REFRESH_THRESHOLD, description="TTL fraction after which API responses refresh"
    )
    CACHE_L1_MAX_ENTRIES: int | None = Field(default=None, description="Optional LRU bound for the entry store")
    CACHE_SINGLE_FLIGHT: bool = Field(default=False, description="Coalesce concurrent memoize misses")
    CACHE_COMPRESSION: Literal["none", "zlib"] = Field(default="none", description="Payload codec")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class LoggingSettings(BaseSettings):
    """
    Logging configuration for structured logging.

    Architectural Decision: structlog for production-grade logging
    """

    LOG_LEVEL: str = Field(default="INFO", description="Logging level")
    LOG_FORMAT: Literal["json", "console"] = Field(default="json", description="Log output format")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    Usage:
        from tiercache.core.config.settings import get_settings

        settings = get_settings()
        redis_url = settings.redis.REDIS_URL
        ttl = settings.cache.CACHE_DEFAULT_TTL

    CACHE_MODE is derived from REDIS_URL when not set explicitly:
    a URL means "tiered", no URL means "memory".
    """

    # Redis settings
    REDIS_URL: str | None = Field(default=None, description="Redis connection URL")
    REDIS_MAX_CONNECTIONS: int = Field(default=50, description="Maximum pooled connections")
    REDIS_SOCKET_TIMEOUT: float = Field(default=2.0, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: float = Field(default=2.0, description="Connect timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")
    REDIS_CONNECT_ATTEMPTS: int = Field(default=CONNECT_ATTEMPTS, description="Connect attempts per probe")
    REDIS_RECONNECT_INTERVAL: float = Field(
        default=RECONNECT_INTERVAL_SECONDS,
        description="Minimum seconds between reconnect probes after a failure",
    )

    # Cache settings
    CACHE_MODE: CacheMode | None = Field(default=None, description="memory | tiered (derived if unset)")
    CACHE_DEFAULT_TTL: int = Field(default=DEFAULT_TTL_SECONDS, description="Default TTL in seconds")
    CACHE_CLEANUP_INTERVAL: float = Field(
        default=CLEANUP_INTERVAL_SECONDS, description="Entry store sweep interval in seconds"
    )
    CACHE_REFRESH_THRESHOLD: float = Field(
        default=REFRESH_THRESHOLD, description="TTL fraction after which API responses refresh"
    )
    CACHE_L1_MAX_ENTRIES: int | None = Field(default=None, description="Optional LRU bound for the entry store")
    CACHE_SINGLE_FLIGHT: bool = Field(default=False, description="Coalesce concurrent memoize misses")
    CACHE_COMPRESSION: Literal["none", "zlib"] = Field(default="none", description="Payload codec")

    # Logging settings
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

    @field_validator("CACHE_REFRESH_THRESHOLD")
    @classmethod
    def validate_refresh_threshold(cls, v):
        """Refresh threshold is a fraction of the TTL."""
        if not 0.0 < v <= 1.0:
            raise ValueError("CACHE_REFRESH_THRESHOLD must be in (0, 1]")
        return v

    @field_validator("CACHE_DEFAULT_TTL", "CACHE_CLEANUP_INTERVAL", "REDIS_CONNECT_ATTEMPTS")
    @classmethod
    def validate_positive(cls, v, info):
        if v <= 0:
            raise ValueError(f"{info.field_name} must be positive")
        return v

    @field_validator("REDIS_URL", mode="before")
    @classmethod
    def blank_url_is_none(cls, v):
        """An empty REDIS_URL in the environment means 'not configured'."""
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @model_validator(mode="after")
    def resolve_cache_mode(self):
        """Derive CACHE_MODE from REDIS_URL and reject tiered mode without a URL."""
        if self.CACHE_MODE is None:
            self.CACHE_MODE = CacheMode.TIERED if self.REDIS_URL else CacheMode.MEMORY
        elif self.CACHE_MODE == CacheMode.TIERED and not self.REDIS_URL:
            raise ValueError("CACHE_MODE=tiered requires REDIS_URL")
        return self

    # Nested configuration views
    @property
    def redis(self) -> RedisSettings:
        """Get Redis settings."""
        return RedisSettings(
            REDIS_URL=self.REDIS_URL,
            REDIS_MAX_CONNECTIONS=self.REDIS_MAX_CONNECTIONS,
            REDIS_SOCKET_TIMEOUT=self.REDIS_SOCKET_TIMEOUT,
            REDIS_SOCKET_CONNECT_TIMEOUT=self.REDIS_SOCKET_CONNECT_TIMEOUT,
            REDIS_HEALTH_CHECK_INTERVAL=self.REDIS_HEALTH_CHECK_INTERVAL,
            REDIS_CONNECT_ATTEMPTS=self.REDIS_CONNECT_ATTEMPTS,
            REDIS_RECONNECT_INTERVAL=self.REDIS_RECONNECT_INTERVAL,
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_MODE=self.CACHE_MODE,
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_CLEANUP_INTERVAL=self.CACHE_CLEANUP_INTERVAL,
            CACHE_REFRESH_THRESHOLD=self.CACHE_REFRESH_THRESHOLD,
            CACHE_L1_MAX_ENTRIES=self.CACHE_L1_MAX_ENTRIES,
            CACHE_SINGLE_FLIGHT=self.CACHE_SINGLE_FLIGHT,
            CACHE_COMPRESSION=self.CACHE_COMPRESSION,
        )

    @property
    def logging(self) -> LoggingSettings:
        """Get logging settings."""
        return LoggingSettings(LOG_LEVEL=self.LOG_LEVEL, LOG_FORMAT=self.LOG_FORMAT)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",  # Ignore extra environment variables
    )


# Global settings instance (singleton pattern)
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the global settings instance (singleton).

    Settings are process configuration; cache managers themselves are never
    global and are built explicitly from settings.

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
