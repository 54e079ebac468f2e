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

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from app.schemas.rate_limit import RateLimit, RateLimitConfig


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


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment."""

    return LogSettings()


def _build_app_settings() -> "AppSettings":
    """Build app settings from environment."""

    return AppSettings()


def _build_auth_settings() -> "AuthSettings":
    """Build bearer token settings from environment."""

    return AuthSettings()


def _build_redis_settings() -> "RedisSettings":
    """Build Redis connection settings from environment."""

    return RedisSettings()


def _build_rate_limit_settings() -> "RateLimitSettings":
    """Build rate limiting settings from environment.

    Pydantic Settings (v2) populates values from environment variables, so
    static type checkers treating fields as constructor arguments is expected.
    """

    return RateLimitSettings()  # type: ignore[call-arg]


def _default_endpoint_limits() -> dict[str, RateLimit]:
    return {"/api/special": RateLimit(limit=3, window_ms=30_000)}


class LogSettings(BaseSettings):
    """Logging output configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field(
        "json",
        description="Log line format: machine-friendly JSON or plain text",
    )
    output: Literal["stdout", "file"] = Field(
        "stdout",
        description="Where log records are written",
    )
    file_path: str | None = Field(
        None,
        description="Log file path when output=file (default logs/app.log)",
    )
    max_bytes: int = Field(
        10 * 1024 * 1024,
        description="Rotate the log file after this many bytes (0 disables rotation)",
        ge=0,
    )
    backup_count: int = Field(5, description="Number of rotated files kept", ge=0)
    request_id_header: str = Field(
        "X-Request-ID",
        description="Header used to read and echo the request correlation id",
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
    admin_api_key_required: bool = Field(
        False,
        description="Require X-API-Key on the administrative override endpoint",
    )
    admin_api_keys: str | None = Field(
        None,
        description="Comma-separated list of valid admin API keys",
    )

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        case_sensitive=False,
    )


class AuthSettings(BaseSettings):
    """Bearer token verification settings.

    When no secret is configured every request is treated as unauthenticated.
    """

    jwt_secret_key: str | None = Field(
        None,
        description="Shared secret used to verify bearer tokens",
    )
    jwt_algorithms: str = Field(
        "HS256",
        description="Comma-separated list of accepted signing algorithms",
    )

    model_config = SettingsConfigDict(
        env_prefix="AUTH_",
        case_sensitive=False,
    )

    @property
    def algorithms(self) -> list[str]:
        return [alg.strip() for alg in self.jwt_algorithms.split(",") if alg.strip()]


class RedisSettings(BaseSettings):
    """Connection settings for the shared counting store."""

    url: str | None = Field(
        None,
        description="Full redis:// or rediss:// URL; takes precedence over host/port",
    )
    host: str = Field("localhost", description="Redis host")
    port: int = Field(6379, description="Redis port")
    db: int = Field(0, description="Redis logical database", ge=0)
    password: str | None = Field(None, description="Redis password")
    socket_timeout_seconds: float = Field(
        2.0,
        description="Socket connect/read timeout for store calls",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="REDIS_",
        case_sensitive=False,
    )


class RateLimitSettings(BaseSettings):
    """Rate limiting policy and backend selection.

    Endpoint limits are read from RATE_LIMIT_ENDPOINTS as a JSON object, e.g.
    ``{"/api/special": {"limit": 3, "window_ms": 30000}}``.
    """

    enabled: bool = Field(True, description="Enable request throttling")
    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Counting store: shared Redis or process-local memory",
    )
    authenticated_limit: int = Field(
        10,
        description="Requests per window for authenticated clients",
        ge=1,
    )
    authenticated_window_ms: int = Field(
        60_000,
        description="Sliding window length for authenticated clients",
        ge=1,
    )
    unauthenticated_limit: int = Field(
        5,
        description="Requests per window for unauthenticated clients",
        ge=1,
    )
    unauthenticated_window_ms: int = Field(
        60_000,
        description="Sliding window length for unauthenticated clients",
        ge=1,
    )
    endpoints: dict[str, RateLimit] = Field(
        default_factory=_default_endpoint_limits,
        description="Per-path limits that take precedence over the global ones",
    )
    identity_source: Literal["address", "subject"] = Field(
        "address",
        description="Key authenticated clients by network address or token subject",
    )
    key_prefix: str = Field("rate-limiter", description="Prefix of window counter keys")
    override_key_prefix: str = Field(
        "rate_limit_override",
        description="Prefix of override keys",
    )
    expiry_grace_ms: int = Field(
        1_000,
        description="Extra lifetime of idle counters beyond their window",
        ge=0,
    )
    fail_open: bool = Field(
        False,
        description="Admit requests when the store is unavailable instead of failing",
    )
    include_headers: bool = Field(
        True,
        description="Include X-RateLimit-* and Retry-After headers when throttling",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @field_validator("key_prefix", "override_key_prefix")
    @classmethod
    def _strip_trailing_colon(cls, value: str) -> str:
        value = value.strip().rstrip(":")
        if not value:
            raise ValueError("key prefix must not be empty")
        return value

    def to_config(self) -> RateLimitConfig:
        """Freeze the configured limits into an immutable RateLimitConfig."""

        return RateLimitConfig(
            global_authenticated=RateLimit(
                limit=self.authenticated_limit,
                window_ms=self.authenticated_window_ms,
            ),
            global_unauthenticated=RateLimit(
                limit=self.unauthenticated_limit,
                window_ms=self.unauthenticated_window_ms,
            ),
            endpoints=dict(self.endpoints),
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
    log: LogSettings = Field(default_factory=_build_log_settings)
    app: AppSettings = Field(default_factory=_build_app_settings)
    auth: AuthSettings = Field(default_factory=_build_auth_settings)
    redis: RedisSettings = Field(default_factory=_build_redis_settings)
    rate_limit: RateLimitSettings = Field(default_factory=_build_rate_limit_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


# Global settings instance - composed from domain-specific settings
# Nested settings are created via default_factory so env loading works.
settings = Settings()
