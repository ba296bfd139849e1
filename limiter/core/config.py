"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import Field
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
if _env_file:
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


DEFAULT_KEY_PREFIX = "limiter"
DEFAULT_KEY_DELIMITER = "-"
DEFAULT_REQUEST_ID_HEADER = "X-Request-ID"


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment.

    Pydantic Settings (v2) can populate values from environment variables.
    However, static type checkers often treat required fields as required
    constructor arguments, which is not how BaseSettings is intended to be used.
    """

    return LimiterSettings()  # type: ignore[call-arg]


def _build_store_settings() -> "StoreSettings":
    """Build counter store settings from environment."""

    return StoreSettings()  # type: ignore[call-arg]


def _build_log_settings() -> "LogSettings":
    """Build logging settings from environment."""

    return LogSettings()  # type: ignore[call-arg]


class LimiterSettings(BaseSettings):
    """Quota, key and identity configuration for the admission layer."""

    enabled: bool = Field(
        True,
        description="Enable rate limiting for every request",
    )
    limit: int = Field(
        60,
        description="Maximum number of requests allowed per window (per identity)",
        ge=0,
    )
    within_seconds: int = Field(
        60,
        description="Fixed window size in seconds (windows are epoch-aligned)",
        ge=1,
    )
    key_prefix: str = Field(
        DEFAULT_KEY_PREFIX,
        description="Namespace prefix for counter keys",
    )
    key_delimiter: str = Field(
        DEFAULT_KEY_DELIMITER,
        description="Delimiter between prefix, window slot and identity",
        min_length=1,
    )
    identity_strategy: Literal["ip", "header", "state"] = Field(
        "ip",
        description="How the caller identity is extracted from the request",
    )
    identity_header: str = Field(
        "Authorization",
        description="Header read when identity_strategy is 'header'",
    )
    identity_state_attribute: str = Field(
        "user_id",
        description="request.state attribute read when identity_strategy is 'state'",
    )
    forwarded_for_header: str = Field(
        "X-Forwarded-For",
        description="Proxy header consulted first by the IP identity strategy",
    )
    exempt_paths: list[str] = Field(
        default_factory=lambda: ["/health"],
        description="Paths never counted (resolved to an empty identity)",
    )
    mode: Literal["middleware", "dependency"] = Field(
        "middleware",
        description="Wrap every request (middleware) or only /v1 routes (dependency)",
    )

    model_config = SettingsConfigDict(
        env_prefix="LIMITER_",
        case_sensitive=False,
    )


class StoreSettings(BaseSettings):
    """Counter store backend configuration."""

    backend: Literal["memory", "redis", "redis_two_step"] = Field(
        "memory",
        description="Counter store backend (memory is per-process only)",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float | None = Field(
        5.0,
        description="Socket connect/read timeout for the Redis client",
    )
    operation_timeout_seconds: float | None = Field(
        None,
        description="Upper bound for a single counter operation (None disables)",
    )

    model_config = SettingsConfigDict(
        env_prefix="STORE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log record format",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log records are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output is 'file'",
    )
    max_bytes: int = Field(
        10_485_760,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Rotated log files to keep", ge=0)
    request_id_header: str = Field(
        DEFAULT_REQUEST_ID_HEADER,
        description="Header carrying the request correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main application settings container.

    Automatically loads from the appropriate .env.{APP_ENV} file.
    Raises validation errors on startup if settings are invalid.
    """

    app_env: str = APP_ENV
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
