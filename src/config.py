"""
Centralized configuration management for the rewrite service.

This module provides a Pydantic Settings-based configuration system that:
- Validates environment variables at startup
- Provides type coercion (strings to ints, bools, etc.)
- Groups related settings for better organization
- Exposes methods to check if collaborators are configured
- Supports .env file loading

Quota thresholds are product constants
(see src.types.accounts), not deployment configuration.

Usage:
    from src.config import get_settings

    settings = get_settings()
    if settings.is_stripe_configured:
        ...
"""

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import AliasChoices, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


# =============================================================================
# LLM Provider Settings
# =============================================================================


class LLMSettings(BaseSettings):
    """Configuration for the Anthropic rewrite model."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    anthropic_api_key: Optional[SecretStr] = Field(
        default=None,
        description="Anthropic API key for Claude models",
    )
    anthropic_model: str = Field(
        default="claude-3-5-haiku-20241022",
        description="Anthropic model used for rewrites",
    )
    rewrite_max_tokens: int = Field(
        default=512,
        ge=16,
        le=4096,
        description="Maximum tokens generated per rewrite",
    )
    llm_api_timeout: int = Field(
        default=30,
        ge=1,
        le=600,
        description="Timeout in seconds for LLM API requests",
    )

    @property
    def is_configured(self) -> bool:
        """Check if the model API key is present."""
        return bool(self.anthropic_api_key)


# =============================================================================
# Database Settings (Postgres)
# =============================================================================


class DatabaseSettings(BaseSettings):
    """Configuration for the Postgres account store."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    database_url_direct: Optional[str] = Field(
        default=None,
        description="Direct (non-pooler) Postgres URL, preferred for long-lived servers",
    )
    database_url: Optional[str] = Field(
        default=None,
        description="Postgres connection URL",
    )
    database_pool_min_size: int = Field(default=1, ge=1)
    database_pool_max_size: int = Field(default=5, ge=1)

    @property
    def dsn(self) -> Optional[str]:
        """Connection string to use, direct URL first."""
        return self.database_url_direct or self.database_url

    @property
    def is_configured(self) -> bool:
        """Check if a Postgres URL is available."""
        return bool(self.dsn)


# =============================================================================
# Payment Settings (Stripe)
# =============================================================================


class StripeSettings(BaseSettings):
    """Configuration for Stripe payment processing."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    stripe_secret_key: Optional[SecretStr] = Field(
        default=None,
        description="Stripe secret API key",
    )
    stripe_webhook_secret: Optional[SecretStr] = Field(
        default=None,
        description="Stripe webhook signing secret",
    )
    stripe_price_id: Optional[str] = Field(
        default=None,
        description="Stripe price ID for the Pro subscription",
    )
    stripe_trial_days: int = Field(
        default=7,
        ge=0,
        le=90,
        description="Free trial length for new Pro subscriptions",
    )
    site_url: str = Field(
        default="https://rewritemessage.com",
        validation_alias=AliasChoices("site_url", "next_public_site_url"),
        description="Public site URL used for checkout and portal redirects",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Stripe is properly configured for payments."""
        return bool(self.stripe_secret_key)

    @property
    def has_webhook_secret(self) -> bool:
        """Check if webhook verification is enabled."""
        return bool(self.stripe_webhook_secret)

    @property
    def has_price_id(self) -> bool:
        return bool(self.stripe_price_id)


# =============================================================================
# Authentication Settings (Supabase JWT)
# =============================================================================


class AuthSettings(BaseSettings):
    """Configuration for verifying Supabase session tokens."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    supabase_jwt_secret: Optional[SecretStr] = Field(
        default=None,
        description="HS256 secret used by Supabase to sign session JWTs",
    )
    supabase_jwt_audience: str = Field(
        default="authenticated",
        description="Expected `aud` claim on session JWTs",
    )

    @property
    def is_configured(self) -> bool:
        return bool(self.supabase_jwt_secret)


# =============================================================================
# Security Settings
# =============================================================================


class SecuritySettings(BaseSettings):
    """Configuration for security features."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    allowed_origins: str = Field(
        default="http://localhost:5173,http://127.0.0.1:5173",
        description="Comma-separated list of allowed CORS origins",
    )

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == "production"

    @property
    def origins_list(self) -> List[str]:
        """Get parsed list of allowed origins."""
        return [
            origin.strip()
            for origin in self.allowed_origins.split(",")
            if origin.strip()
        ]


# =============================================================================
# Logging Settings
# =============================================================================


class LoggingSettings(BaseSettings):
    """Configuration for logging."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )
    log_format_json: bool = Field(
        default=False,
        description="Force JSON log format in development",
    )
    request_logging_enabled: bool = Field(
        default=True,
        description="Enable request logging middleware",
    )


# =============================================================================
# Monitoring Settings (Sentry)
# =============================================================================


class SentrySettings(BaseSettings):
    """Configuration for Sentry error tracking."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    sentry_dsn: Optional[str] = Field(
        default=None,
        description="Sentry DSN for error tracking",
    )
    sentry_environment: str = Field(
        default="development",
        description="Sentry environment name",
    )
    sentry_traces_sample_rate: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Sentry transaction sample rate (0.0 to 1.0)",
    )
    sentry_release: Optional[str] = Field(
        default="rewrite-message@1.0.0",
        description="Sentry release version",
    )
    server_name: str = Field(
        default="rewrite-message-api",
        description="Server name for Sentry",
    )

    @property
    def is_configured(self) -> bool:
        """Check if Sentry is configured."""
        return bool(self.sentry_dsn)


# =============================================================================
# Main Settings Class
# =============================================================================


class Settings(BaseSettings):
    """
    Main settings class that aggregates all configuration groups.

    This class provides a single entry point for all application configuration
    with validation, type coercion, and collaborator detection.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    llm: LLMSettings = Field(default_factory=LLMSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    stripe: StripeSettings = Field(default_factory=StripeSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    sentry: SentrySettings = Field(default_factory=SentrySettings)

    @property
    def is_stripe_configured(self) -> bool:
        """Check if Stripe payment processing is available."""
        return self.stripe.is_configured

    @property
    def is_database_configured(self) -> bool:
        """Check if the Postgres store is available."""
        return self.database.is_configured

    @property
    def is_sentry_configured(self) -> bool:
        """Check if Sentry error tracking is available."""
        return self.sentry.is_configured

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.security.is_production

    def get_config_summary(self) -> dict:
        """
        Get a summary of configuration status for logging.

        This method returns a dictionary with configuration status
        WITHOUT exposing any secrets.
        """
        return {
            "environment": self.security.environment,
            "anthropic_configured": self.llm.is_configured,
            "anthropic_model": self.llm.anthropic_model,
            "database_configured": self.is_database_configured,
            "stripe_configured": self.is_stripe_configured,
            "stripe_webhooks_enabled": self.stripe.has_webhook_secret,
            "stripe_price_configured": self.stripe.has_price_id,
            "auth_configured": self.auth.is_configured,
            "sentry_configured": self.is_sentry_configured,
            "allowed_origins": self.security.origins_list,
            "log_level": self.logging.log_level,
        }


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache()
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses lru_cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload settings.

    Raises:
        ValidationError: If configuration is present but invalid
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Reload settings from environment.

    This clears the cache and returns fresh settings.
    Useful for testing or after environment changes.
    """
    get_settings.cache_clear()
    return get_settings()
