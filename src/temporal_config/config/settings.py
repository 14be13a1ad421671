"""Runtime configuration settings for temporal-config.

This module uses Pydantic Settings for configuration that can be
overridden via environment variables. This provides:
- Type validation
- Environment variable support (TCFG_ prefix)
- Default values
- Easy testing via dependency injection
"""

from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class StoreSettings(BaseSettings):
    """Durable store settings.

    Can be overridden via environment variables with TCFG_STORE_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="TCFG_STORE_")

    db_path: Path = Field(
        default=Path(".tcfg/config.db"),
        description="SQLite database file",
    )
    busy_timeout_seconds: float = Field(
        default=60.0,
        description="How long a write waits for the database lock",
    )


class CacheSettings(BaseSettings):
    """Resolution cache settings.

    Can be overridden via environment variables with TCFG_CACHE_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="TCFG_CACHE_")

    ttl_seconds: float = Field(
        default=300.0,
        description="Lifetime of cached current-time resolutions",
    )
    historical_ttl_seconds: float = Field(
        default=30.0,
        description="Lifetime of cached point-in-time resolutions",
    )
    max_entries: int = Field(
        default=1000,
        description="Entry count above which expired entries are pruned",
    )
    current_window_seconds: float = Field(
        default=1.0,
        description="An as_of within this distance of now is treated as 'current'",
    )


class RollbackSettings(BaseSettings):
    """Rollback and restore settings.

    Can be overridden via environment variables with TCFG_ROLLBACK_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="TCFG_ROLLBACK_")

    large_operation_threshold: int = Field(
        default=10,
        description="Bulk rollbacks touching more keys than this get a warning",
    )
    stale_target_days: int = Field(
        default=30,
        description="Rollback targets older than this get a warning",
    )
    write_retries: int = Field(
        default=1,
        description="Retries after a concurrent write conflict",
    )


class ApiSettings(BaseSettings):
    """HTTP API settings.

    Can be overridden via environment variables with TCFG_API_ prefix.
    """

    model_config = SettingsConfigDict(env_prefix="TCFG_API_")

    host: str = Field(default="127.0.0.1", description="Bind address")
    port: int = Field(default=8765, description="Bind port")
    admin_role: str = Field(
        default="admin",
        description="Value of the actor-role header required for writes",
    )
    log_level: str = Field(default="INFO", description="Server log level")
    log_file: Path | None = Field(default=None, description="Optional rotating log file")
    log_max_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Log file size before rotation",
    )
    log_backup_count: int = Field(default=3, description="Rotated log files to keep")


# Singleton instances for easy import
store_settings = StoreSettings()
cache_settings = CacheSettings()
rollback_settings = RollbackSettings()
api_settings = ApiSettings()
