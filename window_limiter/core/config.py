"""Limiter configuration using Pydantic Settings.

Configuration is environment-aware:
- APP_ENV determines which .env file to load and which environment the
  limiter believes it is running in
- Supports: development, testing, staging, production
- Each environment has its own .env.{environment} file, looked up in the
  current working directory

Importing this module has no side effects. ``get_settings()`` reads the
.env file and the environment once, on first call. The accounting engine
never calls it; it is handed a ``LimiterSettings`` instance at construction
time, and only the HTTP integration layer reaches for the cached settings.
"""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Annotated, Any, Callable, Literal

from dotenv import load_dotenv
from pydantic import Field, ImportString, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from window_limiter.schemas.limits import Limit


# Map environments to their respective .env files (relative to the working directory)
ENV_FILE_MAP = {
    "development": ".env.development",
    "testing": ".env.testing",
    "staging": ".env.staging",
    "production": ".env.production",
}


def current_app_env() -> str:
    """Runtime environment name (default: development)."""

    return os.getenv("APP_ENV", "development")


def env_file_for(app_env: str, base_dir: Path | None = None) -> Path | None:
    """Return the .env file for ``app_env`` if it exists.

    Production might inject via env vars only, so a missing file is fine.
    """

    path = (base_dir or Path.cwd()) / ENV_FILE_MAP.get(app_env, ".env.development")
    return path if path.is_file() else None


def _build_limiter_settings() -> "LimiterSettings":
    """Build limiter settings from environment."""

    return LimiterSettings()


def _build_store_settings() -> "StoreSettings":
    """Build event store settings from environment."""

    return StoreSettings()


def _build_log_settings() -> "LogSettings":
    """Build log settings from environment."""

    return LogSettings()


class LimiterSettings(BaseSettings):
    """Rate limiter configuration.

    This is the explicit configuration struct consumed by
    ``window_limiter.services.limiter.RateLimiter``.
    """

    enabled: bool = Field(
        False,
        description="Master switch for rate limit enforcement",
    )
    environments: list[str] = Field(
        default_factory=lambda: ["production"],
        description="Runtime environments in which enforcement is active",
    )
    environment: str = Field(
        default_factory=current_app_env,
        description="Current runtime environment name",
    )
    default_limits: Annotated[list[Limit], NoDecode] = Field(
        default_factory=list,
        description="Limits used when a call site supplies none (e.g. '10/60,100/3600')",
    )
    error_status_code: int = Field(
        429,
        description="HTTP status returned when a limit is exceeded",
        ge=400,
        le=599,
    )
    error_template: str | None = Field(
        None,
        description="str.format template for the error body (requests, seconds, try_again)",
    )
    error_media_type: str = Field(
        "text/plain",
        description="Media type of the error body",
    )
    send_headers: bool = Field(
        True,
        description="Emit <prefix>-Limit/Remaining/Reset and Retry-After headers",
    )
    header_prefix: str = Field(
        "Rate-Limit",
        description="Prefix for quota response headers",
    )
    identifier: ImportString[Callable[..., Any]] | None = Field(
        None,
        description="Dotted path to a callable mapping a request to a client identity",
    )
    namespace: str = Field(
        "rate_limit",
        description="Key prefix isolating limiter data in the shared store",
        min_length=1,
    )
    retention_seconds: int = Field(
        24 * 60 * 60,
        description="Event lifetime in the store; must exceed the longest limit window",
        ge=1,
    )
    atomic: bool = Field(
        True,
        description="Use the store's atomic check-and-record primitive when available",
    )
    store_failure_policy: Literal["raise", "open", "closed"] = Field(
        "raise",
        description="What the HTTP integration does when the store is unavailable",
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_",
        case_sensitive=False,
    )

    @field_validator("default_limits", mode="before")
    @classmethod
    def _parse_compact_limits(cls, value: Any) -> Any:
        """Accept the compact ``"10/60,100/3600"`` form alongside JSON lists."""

        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                return []
            if stripped.startswith("["):
                return json.loads(stripped)
            return [Limit.parse(part) for part in stripped.split(",") if part.strip()]
        return value

    @model_validator(mode="after")
    def _check_retention(self) -> "LimiterSettings":
        longest = max((limit.seconds for limit in self.default_limits), default=0)
        if longest >= self.retention_seconds:
            raise ValueError(
                f"retention_seconds ({self.retention_seconds}) must exceed the "
                f"longest default limit window ({longest})"
            )
        return self

    @property
    def active(self) -> bool:
        """Whether enforcement is on for the current environment."""

        return self.enabled and self.environment in self.environments


class StoreSettings(BaseSettings):
    """Shared event store connection configuration."""

    backend: Literal["redis", "memory"] = Field(
        "redis",
        description="Event store implementation",
    )
    redis_url: str = Field(
        "redis://localhost:6379/0",
        description="Redis connection URL",
    )
    socket_timeout_seconds: float = Field(
        1.0,
        description="Timeout for individual Redis commands",
        gt=0,
    )
    connect_timeout_seconds: float = Field(
        1.0,
        description="Timeout for establishing a Redis connection",
        gt=0,
    )

    model_config = SettingsConfigDict(
        env_prefix="RATE_LIMIT_STORE_",
        case_sensitive=False,
    )


class LogSettings(BaseSettings):
    """Logging configuration."""

    level: str = Field("INFO", description="Root log level")
    format: Literal["json", "plain"] = Field("json", description="Log line format")
    output: Literal["stdout", "file"] = Field("stdout", description="Log destination")
    file_path: str | None = Field(None, description="Log file path when output=file")
    max_bytes: int = Field(10_485_760, description="Rotate file after this many bytes (0 disables)")
    backup_count: int = Field(5, description="Number of rotated files to keep")

    model_config = SettingsConfigDict(
        env_prefix="LOG_",
        case_sensitive=False,
    )


class Settings(BaseSettings):
    """Main settings container.

    Built by ``get_settings()``, which loads the .env.{APP_ENV} file first.
    Raises validation errors if settings are malformed.
    """

    app_env: str = Field(default_factory=current_app_env)
    limiter: LimiterSettings = Field(default_factory=_build_limiter_settings)
    store: StoreSettings = Field(default_factory=_build_store_settings)
    log: LogSettings = Field(default_factory=_build_log_settings)

    model_config = SettingsConfigDict(
        case_sensitive=False,
    )


@lru_cache
def get_settings() -> Settings:
    """Load and cache settings, reading .env.{APP_ENV} on first call.

    Nested BaseSettings don't inherit env_file, so os.environ is populated
    first. Variables already set in the environment take precedence over
    the file.
    """

    env_file = env_file_for(current_app_env())
    if env_file and not os.getenv("TESTING"):
        load_dotenv(env_file, override=False)
    return Settings()
