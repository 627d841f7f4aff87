"""
Shared configuration management for the guest gateway.

The configuration is resolved once at startup into a snapshot and handed to
each component explicitly. There is no hot reload; restart the process to
pick up new settings.
"""

from typing import Any, Optional

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_TOKEN_MINUTES = 30
MAX_TOKEN_MINUTES = 240
DEFAULT_RATE_LIMIT_PER_MINUTE = 30
MAX_CLOCK_SKEW_SECONDS = 120


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    env: str = Field(default="local")
    log_level: str = Field(default="info")
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8000)

    # Diagnostics endpoints echo (non-secret) configuration as plain text
    enable_diagnostics: bool = Field(default=True)


class GatewayConfig(BaseConfig):
    """Gateway configuration: token signing, upstream relay and rate limiting."""

    # Token signing
    jwt_signing_secret: Optional[SecretStr] = Field(default=None)
    jwt_issuer: str = Field(default="echo-backend")
    jwt_audience: str = Field(default="echo-api")
    jwt_minutes: int = Field(default=DEFAULT_TOKEN_MINUTES)
    jwt_clock_skew_seconds: int = Field(default=30)

    # Upstream Responses API
    openai_api_base: str = Field(default="https://api.openai.com")
    openai_api_key: Optional[SecretStr] = Field(default=None)
    upstream_path: str = Field(default="/v1/responses")
    upstream_timeout_seconds: float = Field(default=60.0)

    # Rate limiting
    rate_limit_per_minute: int = Field(default=DEFAULT_RATE_LIMIT_PER_MINUTE)
    rate_limit_window_seconds: float = Field(default=60.0)
    rate_limit_backend: str = Field(default="memory")
    redis_url: str = Field(default="redis://localhost:6379/0")

    @field_validator("jwt_minutes", mode="before")
    @classmethod
    def _clamp_token_minutes(cls, value: Any) -> int:
        try:
            minutes = int(value)
        except (TypeError, ValueError):
            return DEFAULT_TOKEN_MINUTES
        if minutes <= 0 or minutes > MAX_TOKEN_MINUTES:
            return DEFAULT_TOKEN_MINUTES
        return minutes

    @field_validator("jwt_clock_skew_seconds", mode="before")
    @classmethod
    def _clamp_clock_skew(cls, value: Any) -> int:
        try:
            seconds = int(value)
        except (TypeError, ValueError):
            return 30
        return max(0, min(seconds, MAX_CLOCK_SKEW_SECONDS))

    @field_validator("rate_limit_per_minute", mode="before")
    @classmethod
    def _default_rate_limit(cls, value: Any) -> int:
        try:
            limit = int(value)
        except (TypeError, ValueError):
            return DEFAULT_RATE_LIMIT_PER_MINUTE
        return limit if limit > 0 else DEFAULT_RATE_LIMIT_PER_MINUTE

    @field_validator("rate_limit_backend")
    @classmethod
    def _check_backend(cls, value: str) -> str:
        backend = value.strip().lower()
        if backend not in ("memory", "redis"):
            raise ValueError("rate_limit_backend must be 'memory' or 'redis'")
        return backend

    @field_validator("openai_api_base")
    @classmethod
    def _trim_api_base(cls, value: str) -> str:
        return value.rstrip("/")

    @property
    def signing_secret(self) -> str:
        """Plain signing secret, or an empty string when unset."""
        if self.jwt_signing_secret is None:
            return ""
        return self.jwt_signing_secret.get_secret_value()

    @property
    def upstream_api_key(self) -> str:
        if self.openai_api_key is None:
            return ""
        return self.openai_api_key.get_secret_value()


def get_config(**overrides: Any) -> GatewayConfig:
    """Resolve the configuration snapshot from the environment."""
    return GatewayConfig(**overrides)
