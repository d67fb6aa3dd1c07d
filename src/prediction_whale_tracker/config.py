"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
Prediction Whale Tracker, loading and validating environment variables
at startup.
"""

from __future__ import annotations

import logging
from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from prediction_whale_tracker.analytics.view import THRESHOLD_TIERS

_ENV_FILE = ".env"
_ENV_FILE_ENCODING = "utf-8"


def _validate_http_url(v: str, name: str) -> str:
    if not v.startswith(("http://", "https://")):
        raise ValueError(f"{name} must be an HTTP(S) endpoint")
    return v.rstrip("/")


class RedisSettings(BaseSettings):
    """Redis connection settings."""

    model_config = SettingsConfigDict(env_prefix="", extra="ignore")

    url: str = Field(
        default="redis://localhost:6379",
        alias="REDIS_URL",
        description="Redis connection string",
    )
    key_prefix: str = Field(
        default="",
        alias="REDIS_KEY_PREFIX",
        description="Namespace prepended to the trade history slots",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("REDIS_URL must start with redis:// or rediss://")
        return v


class PolymarketSettings(BaseSettings):
    """Polymarket data API settings."""

    model_config = SettingsConfigDict(env_prefix="POLYMARKET_", extra="ignore")

    data_api_url: str = Field(
        default="https://data-api.polymarket.com",
        alias="POLYMARKET_DATA_API_URL",
        description="Polymarket data API host (public /trades endpoint)",
    )
    trades_limit: int = Field(
        default=200,
        alias="POLYMARKET_TRADES_LIMIT",
        ge=1,
        le=1000,
        description="Number of recent trades requested per poll",
    )

    @field_validator("data_api_url")
    @classmethod
    def validate_data_api_url(cls, v: str) -> str:
        return _validate_http_url(v, "POLYMARKET_DATA_API_URL")


class KalshiSettings(BaseSettings):
    """Kalshi public API settings."""

    model_config = SettingsConfigDict(env_prefix="KALSHI_", extra="ignore")

    enabled: bool = Field(
        default=True,
        alias="KALSHI_ENABLED",
        description="Poll Kalshi markets in addition to Polymarket trades",
    )
    api_url: str = Field(
        default="https://api.elections.kalshi.com/trade-api/v2",
        alias="KALSHI_API_URL",
        description="Kalshi public trade API base URL",
    )
    markets_limit: int = Field(
        default=200,
        alias="KALSHI_MARKETS_LIMIT",
        ge=1,
        le=1000,
        description="Number of markets requested per poll",
    )
    market_status: str = Field(
        default="open",
        alias="KALSHI_MARKET_STATUS",
        description="Market status filter passed to the markets endpoint",
    )

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        return _validate_http_url(v, "KALSHI_API_URL")


class PollerSettings(BaseSettings):
    """Polling cadence and accumulation settings."""

    model_config = SettingsConfigDict(env_prefix="POLLER_", extra="ignore")

    interval_seconds: int = Field(
        default=30,
        alias="POLLER_INTERVAL_SECONDS",
        ge=5,
        le=3600,
        description="Seconds between polls of each platform",
    )
    max_trades_per_poll: int = Field(
        default=50,
        alias="POLLER_MAX_TRADES_PER_POLL",
        ge=1,
        le=1000,
        description="Maximum whale trades accumulated from a single poll",
    )
    min_amount_usd: Decimal = Field(
        default=Decimal("1000"),
        alias="POLLER_MIN_AMOUNT_USD",
        description="Whale threshold applied before accumulation (one of the tiers)",
    )

    @field_validator("min_amount_usd")
    @classmethod
    def validate_min_amount_usd(cls, v: Decimal) -> Decimal:
        if v not in THRESHOLD_TIERS:
            raise ValueError(f"POLLER_MIN_AMOUNT_USD must be one of {THRESHOLD_TIERS}")
        return v


class HttpSettings(BaseSettings):
    """Outbound HTTP client settings."""

    model_config = SettingsConfigDict(env_prefix="HTTP_", extra="ignore")

    timeout_seconds: float = Field(
        default=30.0,
        alias="HTTP_TIMEOUT_SECONDS",
        gt=0.0,
        le=300.0,
        description="Per-request timeout",
    )
    max_retries: int = Field(
        default=3,
        alias="HTTP_MAX_RETRIES",
        ge=0,
        le=10,
        description="Retry attempts for transient failures (429/5xx/network)",
    )
    requests_per_second: float = Field(
        default=5.0,
        alias="HTTP_REQUESTS_PER_SECOND",
        gt=0.0,
        le=100.0,
        description="Client-side rate limit across both APIs",
    )


class ViewSettings(BaseSettings):
    """Query surface defaults."""

    model_config = SettingsConfigDict(env_prefix="VIEW_", extra="ignore")

    page_size: int = Field(
        default=20,
        alias="VIEW_PAGE_SIZE",
        ge=1,
        le=200,
        description="Trades per page",
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files.

    Example:
        ```python
        from prediction_whale_tracker.config import get_settings

        settings = get_settings()
        print(settings.redis.url)
        print(settings.poller.interval_seconds)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=_ENV_FILE,
        env_file_encoding=_ENV_FILE_ENCODING,
        extra="ignore",
    )

    # Nested configuration groups
    #
    # NOTE: Each nested BaseSettings must be given the same env_file, otherwise it
    # will only read from the process environment (and ignore `.env`).
    redis: RedisSettings = Field(
        default_factory=lambda: RedisSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    polymarket: PolymarketSettings = Field(
        default_factory=lambda: PolymarketSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    kalshi: KalshiSettings = Field(
        default_factory=lambda: KalshiSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    poller: PollerSettings = Field(
        default_factory=lambda: PollerSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    http: HttpSettings = Field(
        default_factory=lambda: HttpSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )
    view: ViewSettings = Field(
        default_factory=lambda: ViewSettings(
            _env_file=_ENV_FILE,
            _env_file_encoding=_ENV_FILE_ENCODING,
        )
    )

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )

    def get_logging_level(self) -> int:
        """Get the numeric logging level."""
        level: int = getattr(logging, self.log_level)
        return level

    def redacted_summary(self) -> dict[str, str | dict[str, str]]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "redis_url": self._redact_url(self.redis.url),
            "polymarket": {
                "data_api_url": self.polymarket.data_api_url,
                "trades_limit": str(self.polymarket.trades_limit),
            },
            "kalshi": {
                "enabled": str(self.kalshi.enabled),
                "api_url": self.kalshi.api_url,
                "markets_limit": str(self.kalshi.markets_limit),
            },
            "poller": {
                "interval_seconds": str(self.poller.interval_seconds),
                "max_trades_per_poll": str(self.poller.max_trades_per_poll),
                "min_amount_usd": str(self.poller.min_amount_usd),
            },
            "http": {
                "timeout_seconds": str(self.http.timeout_seconds),
                "max_retries": str(self.http.max_retries),
                "requests_per_second": str(self.http.requests_per_second),
            },
            "view_page_size": str(self.view.page_size),
            "log_level": self.log_level,
        }

    @staticmethod
    def _redact_url(url: str) -> str:
        """Redact password from URL if present."""
        if "@" in url and "://" in url:
            protocol_end = url.index("://") + 3
            at_pos = url.index("@")
            creds_part = url[protocol_end:at_pos]
            if ":" in creds_part:
                username = creds_part.split(":")[0]
                return f"{url[:protocol_end]}{username}:***@{url[at_pos + 1 :]}"
        return url


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the application settings singleton.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If environment variables have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
