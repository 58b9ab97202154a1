"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


# Determine which environment to load (default: development)
APP_ENV = os.getenv("APP_ENV", "development")

# Project root (so .env resolution doesn't depend on current working directory)
PROJECT_ROOT = Path(__file__).resolve().parents[2]

# Map environments to their respective .env files (relative to PROJECT_ROOT)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}

# Select the .env file for the current environment
_env_filename = ENV_FILE_MAP.get(APP_ENV, ".env.development")
_env_path = PROJECT_ROOT / _env_filename

# Only load from file if it exists (production might inject via env vars only)
_env_file = str(_env_path) if _env_path.is_file() else None


# Load .env file early to populate os.environ before creating nested settings
# This is necessary because Pydantic nested BaseSettings don't inherit env_file
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field(
        "INFO",
        description="Root log level (DEBUG, INFO, WARNING, ERROR)",
    )
    format: str = Field(
        "json",
        description="Log format: 'json' for structured logs or 'plain' for humans",
    )
    output: str = Field(
        "stdout",
        description="Log destination: 'stdout' or 'file'",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is 'file' (defaults to logs/app.log)",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(
        5,
        description="Number of rotated log files to keep",
        ge=0,
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to accept and propagate request correlation ids",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    version: str = Field(
        "1.0.0",
        description="Version reported by the health endpoint",
    )
    cron_secret: str | None = Field(
        None,
        validation_alias=AliasChoices("APP_CRON_SECRET", "CRON_SECRET"),
        description="Bearer secret required by scheduled maintenance endpoints",
    )
    metrics_api_key: str | None = Field(
        None,
        validation_alias=AliasChoices("APP_METRICS_API_KEY", "METRICS_API_KEY"),
        description="API key required by the metrics endpoint (X-API-Key header)",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
        populate_by_name=True,
    )


class RateLimitSettings(BaseSettings):
    """Request admission configuration.

    Each named policy is a fixed window (seconds) and a maximum request count.
    Values are validated at startup; non-positive values abort the process.
    """

    enabled: bool = Field(
        True,
        description="Enable request rate limiting",
    )
    include_headers: bool = Field(
        True,
        description="Attach X-RateLimit-* headers to responses",
    )
    cleanup_interval_seconds: int = Field(
        300,
        description="Interval between sweeps of expired rate limit counters",
        ge=1,
    )

    video_generation_max_requests: int = Field(5, ge=1)
    video_generation_window_seconds: int = Field(60 * 60, ge=1)

    image_upload_max_requests: int = Field(20, ge=1)
    image_upload_window_seconds: int = Field(60 * 60, ge=1)

    auth_max_requests: int = Field(10, ge=1)
    auth_window_seconds: int = Field(15 * 60, ge=1)

    payment_max_requests: int = Field(5, ge=1)
    payment_window_seconds: int = Field(60 * 60, ge=1)

    general_max_requests: int = Field(100, ge=1)
    general_window_seconds: int = Field(60 * 60, ge=1)

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


def _build_log_settings() -> LogSettings:
    return LogSettings()


def _build_app_settings() -> AppSettings:
    """Build app settings from environment.

    Nested BaseSettings are created through default factories so that each
    one reads its own env prefix after the .env file has been loaded.
    """

    return AppSettings()


def _build_rate_limit_settings() -> RateLimitSettings:
    return RateLimitSettings()


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.

    Environments:
    - development: Local development (DEBUG=true)
    - testing: Automated tests (uses .env.testing)
    - staging: Pre-production (uses .env.staging)
    - production: Production deployment (uses .env.production)
    """

    app_env: str = APP_ENV
    log: LogSettings = Field(default_factory=_build_log_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
