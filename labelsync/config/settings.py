"""Configuration management using Pydantic Settings.

This module provides type-safe configuration management with automatic
environment variable loading and validation.

The configuration is organized into logical groups:
- DatabaseConfig: Database connection and pooling settings
- LoggingConfig: Logging levels, files, and debugging options
- CredentialsConfig: Spotify client-credentials
- APIConfig: Catalog search paging, market and rate-limit defaults
- TimeoutConfig: One timeout per call class (auth, search, detail, db write)
- RetryConfig: The shared retry policy for the catalog client and the writer
- ReconcileConfig: Placeholder artist names used by the cleanup pass
"""

from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """Database connection and pooling configuration."""

    url: str = "sqlite+aiosqlite:///data/db/labelsync.db"
    echo: bool = False
    pool_size: int = 5
    max_overflow: int = 10
    pool_timeout: int = 30
    pool_recycle: int = 1800


class LoggingConfig(BaseModel):
    """Logging configuration for console and file output."""

    console_level: str = "INFO"
    file_level: str = "DEBUG"
    log_file: Path = Path("data/logs/labelsync.log")
    real_time_debug: bool = True


class CredentialsConfig(BaseModel):
    """API credentials for the client-credentials flow."""

    spotify_client_id: str = ""
    spotify_client_secret: str = ""


class APIConfig(BaseModel):
    """Catalog API paging and rate limiting."""

    spotify_market: str = "US"
    spotify_page_size: int = Field(default=50, ge=1, le=50)
    # Hard stop for label searches regardless of what `total` claims
    spotify_max_albums: int = 500
    spotify_album_tracks_page_size: int = Field(default=50, ge=1, le=50)
    spotify_default_retry_after: float = 1.0


class TimeoutConfig(BaseModel):
    """Timeouts in seconds, one per call class."""

    auth: float = 15.0
    search: float = 20.0
    detail: float = 15.0
    db_write: float = 30.0


class RetryConfig(BaseModel):
    """Retry policy shared by the catalog client and the writer."""

    max_attempts: int = Field(default=3, ge=1)
    base_delay: float = 0.5
    max_delay: float = 30.0
    jitter: bool = True


class ReconcileConfig(BaseModel):
    """Reconciliation pass settings."""

    placeholder_artists: list[str] = Field(
        default_factory=lambda: ["Label 3 Artist", "BURNTECH"]
    )


class Settings(BaseSettings):
    """Main application settings with environment variable support.

    Environment variables can be set using flat naming or nested naming:
    - Flat: DATABASE_URL, CONSOLE_LOG_LEVEL, SPOTIFY_CLIENT_ID
    - Nested: DATABASE__URL, LOGGING__CONSOLE_LEVEL, TIMEOUTS__SEARCH

    The .env file is automatically loaded for development convenience.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    # Nested configuration groups
    database: DatabaseConfig = DatabaseConfig()
    logging: LoggingConfig = LoggingConfig()
    credentials: CredentialsConfig = CredentialsConfig()
    api: APIConfig = APIConfig()
    timeouts: TimeoutConfig = TimeoutConfig()
    retry: RetryConfig = RetryConfig()
    reconcile: ReconcileConfig = ReconcileConfig()

    # Top-level settings
    data_dir: Path = Path("data")

    @model_validator(mode="before")
    @classmethod
    def transform_flat_env_vars(cls, data: Any) -> Any:
        """Transform flat environment variables to nested structure.

        Handles flat env vars (DATABASE_URL) and maps them to the
        nested structure expected by the models (database.url).
        """
        if not isinstance(data, dict):
            return data

        mappings = {
            "database": {
                "database_url": "url",
                "database_echo": "echo",
            },
            "logging": {
                "console_log_level": "console_level",
                "file_log_level": "file_level",
                "log_file": "log_file",
            },
            "credentials": {
                "spotify_client_id": "spotify_client_id",
                "spotify_client_secret": "spotify_client_secret",
            },
            "api": {
                "spotify_market": "spotify_market",
                "spotify_page_size": "spotify_page_size",
                "spotify_max_albums": "spotify_max_albums",
            },
        }

        for group, group_mapping in mappings.items():
            for env_key, field_key in group_mapping.items():
                if env_key in data:
                    data.setdefault(group, {})
                    if isinstance(data[group], dict):
                        data[group][field_key] = data.pop(env_key)

        return data


# Singleton instance for application use
settings = Settings()


_KEY_MAP = {
    "DATABASE_URL": lambda: settings.database.url,
    "DATABASE_ECHO": lambda: settings.database.echo,
    "CONSOLE_LOG_LEVEL": lambda: settings.logging.console_level,
    "FILE_LOG_LEVEL": lambda: settings.logging.file_level,
    "LOG_FILE": lambda: settings.logging.log_file,
    "DATA_DIR": lambda: settings.data_dir,
    "SPOTIFY_CLIENT_ID": lambda: settings.credentials.spotify_client_id,
    "SPOTIFY_CLIENT_SECRET": lambda: settings.credentials.spotify_client_secret,
    "SPOTIFY_MARKET": lambda: settings.api.spotify_market,
    "SPOTIFY_PAGE_SIZE": lambda: settings.api.spotify_page_size,
    "SPOTIFY_MAX_ALBUMS": lambda: settings.api.spotify_max_albums,
    "SPOTIFY_DEFAULT_RETRY_AFTER": lambda: settings.api.spotify_default_retry_after,
    "AUTH_TIMEOUT": lambda: settings.timeouts.auth,
    "SEARCH_TIMEOUT": lambda: settings.timeouts.search,
    "DETAIL_TIMEOUT": lambda: settings.timeouts.detail,
    "DB_WRITE_TIMEOUT": lambda: settings.timeouts.db_write,
    "RETRY_MAX_ATTEMPTS": lambda: settings.retry.max_attempts,
    "RETRY_BASE_DELAY": lambda: settings.retry.base_delay,
    "RETRY_MAX_DELAY": lambda: settings.retry.max_delay,
    "PLACEHOLDER_ARTISTS": lambda: settings.reconcile.placeholder_artists,
}


def get_config(key: str, default=None):
    """Get configuration value by flat key with optional default.

    Example:
        >>> page_size = get_config("SPOTIFY_PAGE_SIZE", 50)
        >>> db_url = get_config("DATABASE_URL")
    """
    if key in _KEY_MAP:
        return _KEY_MAP[key]()
    return default
