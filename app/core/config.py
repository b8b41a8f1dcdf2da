"""Application configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file
"""

from __future__ import annotations

import os
from pathlib import Path

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
if _env_file and os.getenv("TESTING") != "true":
    from dotenv import load_dotenv
    load_dotenv(_env_file, override=True)


class AppSettings(BaseSettings):
    """Application-wide configuration."""

    name: str = Field(
        "Car Rental API",
        description="Human-readable service name",
    )
    version: str = Field(
        "1.0.0",
        description="Service version reported by the status route",
    )
    debug: bool = Field(
        False,
        description="Enable debug mode with verbose logging",
    )
    allowed_origins: str = Field(
        "http://localhost:3000",
        description="Comma-separated list of origins allowed by CORS",
    )
    allowed_origin_regex: str | None = Field(
        None,
        description="Optional regex for additional allowed origins (e.g. preview deployments)",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field(
        "INFO",
        description="Root log level",
    )
    format: str = Field(
        "json",
        description="Log format: json or plain",
    )
    output: str = Field(
        "stdout",
        description="Log destination: stdout, file or both",
    )
    directory: str = Field(
        "logs",
        description="Directory for app.log when output includes file",
    )
    retention_days: int = Field(
        14,
        description="Daily log files kept after midnight rotation",
        ge=0,
    )
    masking: bool = Field(
        True,
        description="Redact credentials, OTPs and bearer tokens from log records",
    )
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and propagate the correlation id",
    )

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Abuse-aware rate limiter configuration.

    Durations are in milliseconds to match the limiter's internal clock.
    """

    enabled: bool = Field(
        True,
        description="Enable the global rate limiting middleware",
    )
    window_ms: int = Field(
        10_000,
        description="Sliding window length in milliseconds",
        ge=1,
    )
    max_requests: int = Field(
        10,
        description="Maximum accepted requests per key within the window",
        ge=1,
    )
    offense_reset_window_ms: int = Field(
        120_000,
        description="Silence gap after which the offense counter starts over",
        ge=1,
    )
    cleanup_interval_ms: int = Field(
        300_000,
        description="Interval between background cleanup sweeps",
        ge=1,
    )
    base_cooldown_ms: int = Field(
        10_000,
        description="Cooldown applied on the first offense; doubles per consecutive offense",
        ge=1,
    )
    alert_threshold: int = Field(
        5,
        description="Offense count at which an abuse alert is emitted",
        ge=1,
    )
    abuse_log_enabled: bool = Field(
        True,
        description="Append offenses to the abuse log file",
    )
    abuse_log_path: str = Field(
        "logs/abuse.log",
        description="Path of the append-only abuse log",
    )
    include_headers: bool = Field(
        True,
        description="Include Retry-After and X-RateLimit-Limit headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )


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
    app: AppSettings = Field(default_factory=AppSettings)
    log: LogSettings = Field(default_factory=LogSettings)
    rate_limit: RateLimitSettings = Field(default_factory=RateLimitSettings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )

    @property
    def is_production(self) -> bool:
        return self.app_env.lower() == "production"


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
