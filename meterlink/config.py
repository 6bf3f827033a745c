"""
Service configuration loaded from environment variables.

Uses Pydantic BaseSettings for automatic env var loading and validation.
Every value has a default so the service starts against a local SQLite
file with no environment at all; production deployments point
DATABASE_URL at PostgreSQL (asyncpg) and optionally set REDIS_URL.

CHANGELOG:
- 2026-10-18: Validate UI_TIMEZONE at startup
- 2026-10-14: Initial creation

TODO:
- None
"""

from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings

from meterlink.timeutil import resolve_timezone


class Settings(BaseSettings):
    """Service configuration.

    Attributes:
        database_url: Async SQLAlchemy URL (``sqlite+aiosqlite`` or
            ``postgresql+asyncpg``).
        redis_url: Redis URL for the latest-uplink cache. ``None`` disables
            caching entirely.
        cache_ttl_s: TTL in seconds for cached latest-uplink entries.
        ui_timezone: Default timezone for daily consumption series.
        ui_days: Default window length in days for daily consumption.
        uplink_list_limit: Default row limit for uplink listings.
        recent_events: Capacity of the in-memory recent-events buffer.
        auto_create_schema: Create missing tables/columns at startup.
        log_level: Root logger level name.
        max_request_bytes: Webhook body size limit; larger deliveries are
            acknowledged but not processed.
    """

    database_url: str = "sqlite+aiosqlite:///./data.db"
    redis_url: str | None = None
    cache_ttl_s: int = 5
    ui_timezone: str = "Europe/Berlin"
    ui_days: int = 30
    uplink_list_limit: int = 500
    recent_events: int = 50
    auto_create_schema: bool = True
    log_level: str = "INFO"
    max_request_bytes: int = 2 * 1024 * 1024

    @field_validator("ui_timezone")
    @classmethod
    def ui_timezone_must_resolve(cls, v: str) -> str:
        """Reject timezone names the aggregator could not use."""
        resolve_timezone(v)
        return v

    @field_validator("ui_days")
    @classmethod
    def ui_days_must_be_valid(cls, v: int) -> int:
        """Validate the default window is between 1 day and ~10 years."""
        if v < 1 or v > 3660:
            raise ValueError("UI_DAYS must be >= 1 and <= 3660")
        return v

    @field_validator("cache_ttl_s", "uplink_list_limit", "recent_events")
    @classmethod
    def must_be_positive(cls, v: int) -> int:
        """Validate counters and TTLs are at least 1."""
        if v < 1:
            raise ValueError("value must be >= 1")
        return v

    @field_validator("log_level")
    @classmethod
    def log_level_must_be_known(cls, v: str) -> str:
        """Normalise and validate the log level name."""
        level = v.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"LOG_LEVEL must be a standard level name (got: '{v}')")
        return level

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
