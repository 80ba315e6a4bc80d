"""
Configuration Management
========================

Centralized configuration using Pydantic Settings with validation,
environment variable loading, and type safety.
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache
from typing import Annotated

from pydantic import AliasChoices, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


# Only for local development; refused in production
DEFAULT_JWT_SECRET = "dev-secret-change-me"


class Environment(str, Enum):
    """Application environment enumeration."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


def _split_csv(v: object) -> object:
    """Accept comma separated strings for list settings."""
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class DatabaseSettings(BaseSettings):
    """Relational store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="DATABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        default="sqlite:///letimail.db",
        description="SQLAlchemy database URL"
    )
    pool_timeout: int = Field(
        default=10,
        ge=1,
        description="Seconds to wait for a pooled connection"
    )
    echo: bool = Field(
        default=False,
        description="Log emitted SQL"
    )

    @field_validator("url", mode="before")
    @classmethod
    def normalize_url(cls, v: str) -> str:
        """Normalize postgres:// URLs for SQLAlchemy."""
        if isinstance(v, str) and v.startswith("postgres://"):
            return "postgresql://" + v[len("postgres://"):]
        return v


class AuthSettings(BaseSettings):
    """Session token and admin configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True
    )

    jwt_secret: str = Field(
        default=DEFAULT_JWT_SECRET,
        alias="JWT_SECRET",
        description="HMAC secret for session tokens"
    )
    jwt_algorithm: str = Field(
        default="HS256",
        alias="JWT_ALGORITHM",
        description="Signing algorithm for session tokens"
    )
    token_ttl_days: int = Field(
        default=7,
        ge=1,
        alias="AUTH_TOKEN_TTL_DAYS",
        description="Session token lifetime in days"
    )
    admin_emails: Annotated[list[str], NoDecode] = Field(
        default_factory=list,
        alias="ADMIN_EMAILS",
        description="Emails allowed to read admin statistics"
    )

    @field_validator("admin_emails", mode="before")
    @classmethod
    def split_admin_emails(cls, v):
        return _split_csv(v)


class QuotaSettings(BaseSettings):
    """Free plan quota configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True
    )

    free_email_limit: int = Field(
        default=10,
        ge=0,
        alias="FREE_EMAIL_LIMIT",
        description="Lifetime generations allowed on the free plan"
    )


class OTPSettings(BaseSettings):
    """One-time passcode configuration."""

    model_config = SettingsConfigDict(
        env_prefix="OTP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    ttl_minutes: int = Field(default=15, ge=1)
    max_attempts: int = Field(default=5, ge=1)
    length: int = Field(default=6, ge=4, le=10)


class LLMSettings(BaseSettings):
    """LLM completion API configuration."""

    model_config = SettingsConfigDict(
        env_prefix="LLM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True
    )

    api_key: str = Field(
        default="",
        validation_alias=AliasChoices("LLM_API_KEY", "GROQ_API_KEY"),
        description="Bearer key for the completion API"
    )
    model: str = Field(
        default="llama-3.1-8b-instant",
        validation_alias=AliasChoices("LLM_MODEL", "GROQ_MODEL"),
    )
    base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="OpenAI-compatible API base URL"
    )
    timeout_seconds: float = Field(default=30.0, gt=0)
    max_tokens: int = Field(default=600, ge=1)
    temperature: float = Field(default=0.7, ge=0, le=2)


class MailSettings(BaseSettings):
    """Transactional email provider configuration."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True
    )

    sendgrid_api_key: str = Field(
        default="",
        alias="SENDGRID_API_KEY",
        description="SendGrid API key; empty disables dispatch"
    )
    from_email: str = Field(
        default="",
        alias="FROM_EMAIL",
        description="Verified sender address"
    )
    from_name: str = Field(
        default="LetiMail",
        alias="FROM_NAME"
    )
    api_url: str = Field(
        default="https://api.sendgrid.com/v3/mail/send",
        alias="SENDGRID_API_URL"
    )
    timeout_seconds: float = Field(
        default=10.0,
        gt=0,
        alias="MAIL_TIMEOUT_SECONDS"
    )

    @property
    def enabled(self) -> bool:
        """Check if outbound mail is configured."""
        return bool(self.sendgrid_api_key and self.from_email)


class AppSettings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False
    )

    # Core settings
    environment: Environment = Field(
        default=Environment.DEVELOPMENT,
        description="Current environment"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    port: int = Field(
        default=3000,
        ge=1,
        le=65535,
        description="Server port"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum log level"
    )
    cors_origins: Annotated[list[str], NoDecode] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the API from a browser"
    )

    # Nested settings
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    auth: AuthSettings = Field(default_factory=AuthSettings)
    quota: QuotaSettings = Field(default_factory=QuotaSettings)
    otp: OTPSettings = Field(default_factory=OTPSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    mail: MailSettings = Field(default_factory=MailSettings)

    @field_validator("environment", mode="before")
    @classmethod
    def validate_environment(cls, v: str) -> Environment:
        """Validate and convert environment string to enum."""
        if isinstance(v, Environment):
            return v
        return Environment(v.lower())

    @field_validator("cors_origins", mode="before")
    @classmethod
    def split_cors_origins(cls, v):
        return _split_csv(v)

    @model_validator(mode="after")
    def check_production_secret(self) -> AppSettings:
        """Refuse to start production with an empty or well-known token secret."""
        if self.is_production and self.auth.jwt_secret in ("", DEFAULT_JWT_SECRET):
            raise ValueError("JWT_SECRET must be set to a private value in production")
        return self

    @property
    def is_production(self) -> bool:
        """Check if running in production."""
        return self.environment == Environment.PRODUCTION

    @property
    def is_development(self) -> bool:
        """Check if running in development."""
        return self.environment == Environment.DEVELOPMENT


@lru_cache()
def get_settings() -> AppSettings:
    """
    Get cached application settings.

    Uses LRU cache to ensure settings are loaded only once
    and reused across the application lifecycle.

    Returns:
        AppSettings: The application settings instance.
    """
    return AppSettings()
