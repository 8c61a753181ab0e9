# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Application configuration settings using Pydantic Settings.

This module provides centralized configuration management for the
GameLearn analytics orchestrator. Settings are loaded from environment
variables with sensible defaults.

The Settings class is the main entry point and aggregates all subsettings.
A singleton instance is provided via get_settings() for dependency injection.

Example:
    >>> from src.core.config.settings import get_settings
    >>> settings = get_settings()
    >>> print(settings.export.poll_interval_seconds)
    1.0
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal, Self

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AnalyticsAPISettings(BaseSettings):
    """Backend API configuration.

    The backend mints embed tokens, runs export jobs and reports payment
    status. This package only talks to it over HTTP.

    Attributes:
        base_url: Base URL of the GameLearn web backend.
        api_token: Optional bearer token sent with every request.
        timeout: Request timeout in seconds.
    """

    model_config = SettingsConfigDict(
        env_prefix="ANALYTICS_API_",
        extra="ignore",
    )

    base_url: str = "http://localhost:3000"
    api_token: SecretStr | None = None
    timeout: float = 30.0

    @property
    def auth_headers(self) -> dict[str, str]:
        """Build authentication headers for API requests."""
        if self.api_token is None or not self.api_token.get_secret_value():
            return {}
        return {"Authorization": f"Bearer {self.api_token.get_secret_value()}"}


class EmbedCacheSettings(BaseSettings):
    """Signed embed URL cache configuration.

    Attributes:
        ttl_seconds: Lifetime used when the backend omits expiresAt.
        early_expiry_seconds: Entries are treated as expired this long
            before their real expiry.
        sweep_threshold: Cache size above which expired entries are swept.
        default_height: Default iframe height in pixels.
    """

    model_config = SettingsConfigDict(
        env_prefix="EMBED_CACHE_",
        extra="ignore",
    )

    ttl_seconds: int = 300
    early_expiry_seconds: int = 60
    sweep_threshold: int = 50
    default_height: int = 600


class ExportSettings(BaseSettings):
    """Export job polling configuration.

    Attributes:
        poll_interval_seconds: Delay between status checks.
        max_poll_attempts: Status checks before giving up on a job.
    """

    model_config = SettingsConfigDict(
        env_prefix="EXPORT_",
        extra="ignore",
    )

    poll_interval_seconds: float = 1.0
    max_poll_attempts: int = Field(default=300, ge=1)


class PaymentSettings(BaseSettings):
    """Payment confirmation polling configuration.

    Attributes:
        poll_interval_seconds: Delay between status checks.
        max_attempts: Poll ticks before settling on "processing".
        pending_store_path: JSON file holding the pending payment record.
    """

    model_config = SettingsConfigDict(
        env_prefix="PAYMENT_",
        extra="ignore",
    )

    poll_interval_seconds: float = 3.0
    max_attempts: int = Field(default=5, ge=1)
    pending_store_path: Path = Path(".gamelearn/local_storage.json")


class SessionSettings(BaseSettings):
    """Session tracking configuration.

    Attributes:
        enabled: Whether session tracking is active.
        activity_interval_seconds: Interval between activity pings.
        inactivity_threshold_seconds: Idle time that closes a session.
        inactivity_check_seconds: How often the watchdog checks idle time.
    """

    model_config = SettingsConfigDict(
        env_prefix="SESSION_",
        extra="ignore",
    )

    enabled: bool = True
    activity_interval_seconds: float = 300.0
    inactivity_threshold_seconds: float = 1800.0
    inactivity_check_seconds: float = 60.0


class PostHogSettings(BaseSettings):
    """PostHog product analytics configuration.

    Attributes:
        api_key: Project API key. Session events are only logged when unset.
        host: PostHog ingestion host.
    """

    model_config = SettingsConfigDict(
        env_prefix="POSTHOG_",
        extra="ignore",
    )

    api_key: SecretStr | None = None
    host: str = "https://us.i.posthog.com"

    @property
    def is_configured(self) -> bool:
        """Check whether an API key is present."""
        return self.api_key is not None and bool(self.api_key.get_secret_value())


class Settings(BaseSettings):
    """Main application settings aggregating all subsettings.

    Use get_settings() to obtain a cached singleton instance.

    Attributes:
        environment: Current environment (development, staging, production).
        debug: Enable debug mode.
        log_level: Logging level.
        analytics_api: Backend API settings.
        embed_cache: Embed cache settings.
        export: Export polling settings.
        payment: Payment polling settings.
        session: Session tracking settings.
        posthog: PostHog settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    # Environment
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = True
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "DEBUG"

    # Subsettings - loaded with their own env prefixes
    analytics_api: AnalyticsAPISettings = Field(default_factory=AnalyticsAPISettings)
    embed_cache: EmbedCacheSettings = Field(default_factory=EmbedCacheSettings)
    export: ExportSettings = Field(default_factory=ExportSettings)
    payment: PaymentSettings = Field(default_factory=PaymentSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    posthog: PostHogSettings = Field(default_factory=PostHogSettings)

    @model_validator(mode="after")
    def validate_production_settings(self) -> Self:
        """Validate that production settings are properly configured.

        Raises:
            ValueError: If running in production against a plain HTTP backend.
        """
        if self.environment == "production":
            if not self.analytics_api.base_url.startswith("https://"):
                raise ValueError(
                    "Analytics API must be served over HTTPS in production. "
                    "Set ANALYTICS_API_BASE_URL environment variable."
                )
        return self

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    Call clear_settings_cache() if you need to reload settings.

    Returns:
        Cached Settings instance.
    """
    return Settings()


def clear_settings_cache() -> None:
    """Clear the settings cache.

    Call this if you need to reload settings from environment.
    Useful for testing or dynamic configuration updates.
    """
    get_settings.cache_clear()
