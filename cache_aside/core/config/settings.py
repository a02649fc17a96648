#!/usr/bin/env python3
"""
Centralized Configuration Module using Pydantic Settings

This module provides type-safe, environment-based configuration for the
cache-aside engine. Redis connection details, cache TTLs and the stampede
protection knobs (lock TTL, poll interval, wait budget) all live here.

Architectural Decision: Pydantic Settings for type safety and validation
- Environment variable loading with .env support
- Type validation at startup (fail fast on misconfiguration)
- Easy testing with override mechanisms
"""

from typing import Literal

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class RedisSettings(BaseSettings):
    """
    Redis configuration for the shared key-value store.

    STAGE-0.1: Redis connection configuration
    """

    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")

    REDIS_MAX_CONNECTIONS: int = Field(default=100, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=True)


class CacheSettings(BaseSettings):
    """
    Cache-aside configuration.

    STAGE-2: Cache TTL and stampede protection configuration

    Durations map an operation name to a TTL in seconds. Operations without
    an entry fall back to CACHE_DEFAULT_TTL.
    """

    CACHE_KEY_PREFIX: str = Field(default="cache:", description="Prefix for every store key")
    CACHE_DEFAULT_TTL: int = Field(default=300, description="Default entry TTL (5 minutes)")
    CACHE_DURATIONS: dict[str, int] = Field(
        default_factory=dict, description="Per-operation TTL overrides in seconds"
    )

    CACHE_LOCK_TTL: int = Field(default=30, description="Lock expiry in seconds")
    CACHE_LOCK_POLL_INTERVAL: float = Field(default=0.05, description="Wait-loop poll interval in seconds")
    CACHE_LOCK_MAX_WAIT_ATTEMPTS: int = Field(default=100, description="Wait-loop attempts before fallback")
    CACHE_LOCK_BACKOFF: Literal["fixed", "exponential"] = Field(
        default="fixed", description="Wait-loop delay strategy"
    )
    CACHE_LOCK_MAX_POLL_INTERVAL: float = Field(
        default=1.0, description="Upper bound for exponential poll delays"
    )

    @field_validator("CACHE_LOCK_TTL", "CACHE_LOCK_MAX_WAIT_ATTEMPTS")
    @classmethod
    def validate_positive_int(cls, v):
        """Lock TTL and wait budget must be positive."""
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("CACHE_LOCK_POLL_INTERVAL", "CACHE_LOCK_MAX_POLL_INTERVAL")
    @classmethod
    def validate_positive_interval(cls, v):
        """Poll intervals must be positive."""
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("CACHE_DEFAULT_TTL")
    @classmethod
    def validate_default_ttl(cls, v):
        """Default TTL must be positive."""
        if v <= 0:
            raise ValueError("CACHE_DEFAULT_TTL must be greater than zero")
        return v

    @field_validator("CACHE_DURATIONS")
    @classmethod
    def validate_durations(cls, v):
        """Reject non-positive named durations."""
        invalid = [name for name, seconds in v.items() if seconds <= 0]
        if invalid:
            raise ValueError(f"CACHE_DURATIONS must be positive, got invalid entries for {invalid}")
        return v

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


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration sections.

    STAGE-0: Centralized configuration initialization

    Usage:
        from cache_aside.core.config.settings import get_settings

        settings = get_settings()
        prefix = settings.cache.CACHE_KEY_PREFIX
        redis_host = settings.redis.REDIS_HOST
    """

    # Redis settings
    REDIS_HOST: str = Field(default="localhost", description="Redis server host")
    REDIS_PORT: int = Field(default=6379, description="Redis server port")
    REDIS_DB: int = Field(default=0, description="Redis database number")
    REDIS_PASSWORD: str | None = Field(default=None, description="Redis password (if required)")
    REDIS_MAX_CONNECTIONS: int = Field(default=100, description="Maximum total connections")
    REDIS_SOCKET_TIMEOUT: int = Field(default=5, description="Socket timeout in seconds")
    REDIS_SOCKET_CONNECT_TIMEOUT: int = Field(default=5, description="Connection timeout in seconds")
    REDIS_HEALTH_CHECK_INTERVAL: int = Field(default=30, description="Health check interval in seconds")

    # Cache settings
    CACHE_KEY_PREFIX: str = Field(default="cache:", description="Prefix for every store key")
    CACHE_DEFAULT_TTL: int = Field(default=300, description="Default entry TTL (5 minutes)")
    CACHE_DURATIONS: dict[str, int] = Field(
        default_factory=dict, description="Per-operation TTL overrides in seconds"
    )
    CACHE_LOCK_TTL: int = Field(default=30, description="Lock expiry in seconds")
    CACHE_LOCK_POLL_INTERVAL: float = Field(default=0.05, description="Wait-loop poll interval in seconds")
    CACHE_LOCK_MAX_WAIT_ATTEMPTS: int = Field(default=100, description="Wait-loop attempts before fallback")
    CACHE_LOCK_BACKOFF: Literal["fixed", "exponential"] = Field(
        default="fixed", description="Wait-loop delay strategy"
    )
    CACHE_LOCK_MAX_POLL_INTERVAL: float = Field(
        default=1.0, description="Upper bound for exponential poll delays"
    )

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

    @model_validator(mode="after")
    def validate_cache_section(self):
        """Fail fast on invalid cache settings instead of on first access."""
        CacheSettings.model_validate(
            {name: getattr(self, name) for name in CacheSettings.model_fields}
        )
        return self

    # Nested configuration objects; section classes re-run their own validators
    @property
    def redis(self) -> RedisSettings:
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
        )

    @property
    def cache(self) -> CacheSettings:
        """Get cache settings."""
        return CacheSettings(
            CACHE_KEY_PREFIX=self.CACHE_KEY_PREFIX,
            CACHE_DEFAULT_TTL=self.CACHE_DEFAULT_TTL,
            CACHE_DURATIONS=self.CACHE_DURATIONS,
            CACHE_LOCK_TTL=self.CACHE_LOCK_TTL,
            CACHE_LOCK_POLL_INTERVAL=self.CACHE_LOCK_POLL_INTERVAL,
            CACHE_LOCK_MAX_WAIT_ATTEMPTS=self.CACHE_LOCK_MAX_WAIT_ATTEMPTS,
            CACHE_LOCK_BACKOFF=self.CACHE_LOCK_BACKOFF,
            CACHE_LOCK_MAX_POLL_INTERVAL=self.CACHE_LOCK_MAX_POLL_INTERVAL,
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
