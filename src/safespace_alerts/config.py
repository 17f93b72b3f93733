"""Configuration management service with Pydantic Settings.

This module provides centralized configuration management for the
SafeSpace alert service, loading and validating environment variables
at startup.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from safespace_alerts.notifier.gateway import (
    DEFAULT_API_URL,
    DEFAULT_FROM_ADDRESS,
    DEFAULT_TIMEOUT,
)


class DatabaseSettings(BaseSettings):
    """Database connection settings."""

    model_config = SettingsConfigDict(env_prefix="")

    url: str = Field(
        alias="DATABASE_URL",
        description="PostgreSQL connection string",
    )

    @field_validator("url")
    @classmethod
    def validate_url(cls, v: str) -> str:
        """Validate database URL format."""
        if not v.startswith(("postgresql://", "postgresql+asyncpg://", "sqlite+aiosqlite://")):
            raise ValueError(
                "DATABASE_URL must be a PostgreSQL or sqlite+aiosqlite connection string"
            )
        return v


class ResendSettings(BaseSettings):
    """Resend email delivery settings."""

    model_config = SettingsConfigDict(env_prefix="RESEND_")

    api_key: SecretStr | None = Field(
        default=None,
        alias="RESEND_API_KEY",
        description="Resend API key; notifications are skipped without it",
    )
    from_address: str = Field(
        default=DEFAULT_FROM_ADDRESS,
        alias="RESEND_FROM_ADDRESS",
        description="Sender address for alert emails",
    )
    api_url: str = Field(
        default=DEFAULT_API_URL,
        alias="RESEND_API_URL",
        description="Resend API base URL",
    )
    timeout_seconds: float = Field(
        default=DEFAULT_TIMEOUT,
        alias="RESEND_TIMEOUT_SECONDS",
        description="HTTP timeout for Resend requests",
        gt=0,
    )

    @field_validator("api_url")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Validate API URL format."""
        if not v.startswith(("http://", "https://")):
            raise ValueError("RESEND_API_URL must be an HTTP(S) endpoint")
        return v

    @property
    def enabled(self) -> bool:
        """Check if email delivery is configured."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class DetectorSettings(BaseSettings):
    """Settings for the alert-producing detectors."""

    model_config = SettingsConfigDict(env_prefix="AUDIO_")

    audio_threshold: int = Field(
        default=70,
        alias="AUDIO_ALERT_THRESHOLD",
        description="Audio level (0-100) above which sounds are classified",
        ge=0,
        le=100,
    )
    audio_cooldown_seconds: float = Field(
        default=10.0,
        alias="AUDIO_ALERT_COOLDOWN_SECONDS",
        description="Minimum seconds between automatic audio alerts per user",
        ge=0,
    )


class Settings(BaseSettings):
    """Main application settings.

    Loads configuration from environment variables with support for
    .env files via python-dotenv.

    Example:
        ```python
        from safespace_alerts.config import get_settings

        settings = get_settings()
        print(settings.database.url)
        print(settings.resend.enabled)
        ```
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Nested configuration groups
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    resend: ResendSettings = Field(default_factory=ResendSettings)
    detector: DetectorSettings = Field(default_factory=DetectorSettings)

    # Application settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        alias="LOG_LEVEL",
        description="Logging level",
    )
    http_host: str = Field(
        default="0.0.0.0",
        alias="HTTP_HOST",
        description="Interface the HTTP API binds to",
    )
    http_port: int = Field(
        default=8080,
        alias="HTTP_PORT",
        description="HTTP port for the alert and health endpoints",
        ge=1,
        le=65535,
    )
    dry_run: bool = Field(
        default=False,
        alias="DRY_RUN",
        description="Render and record notifications without sending email",
    )
    probe_before_send: bool = Field(
        default=False,
        alias="PROBE_BEFORE_SEND",
        description="Skip sending while the cached gateway health is unavailable",
    )
    health_cache_seconds: float = Field(
        default=60.0,
        alias="HEALTH_CACHE_SECONDS",
        description="How long a gateway health check result is reused",
        ge=0,
    )

    def redacted_summary(self) -> dict[str, str]:
        """Get a summary of settings with secrets redacted.

        Returns:
            Dictionary of settings with sensitive values masked.
        """
        return {
            "database_url": self._redact_url(self.database.url),
            "resend_api_key": "(set)" if self.resend.enabled else "(not set)",
            "resend_from_address": self.resend.from_address,
            "log_level": self.log_level,
            "http_port": str(self.http_port),
            "dry_run": str(self.dry_run),
            "probe_before_send": str(self.probe_before_send),
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

    Uses LRU cache to ensure settings are loaded only once and
    reused across the application.

    Returns:
        The Settings instance.

    Raises:
        ValidationError: If required environment variables are missing
            or have invalid values.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Useful for testing when you need to reload settings with
    different environment variables.
    """
    get_settings.cache_clear()
