"""
Pydantic configuration models for pagewalk.

These models provide type-safe configuration with validation for:
- API connection settings
- Throttling and rate-limit backoff
- Response caching
- Pagination
- Logging
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel, Field, field_validator

from ..fetch.throttling import BackoffPolicy


# =============================================================================
# API Configuration
# =============================================================================


class ApiConfig(BaseModel):
    """Target API connection settings."""

    base_url: str = Field(
        default="",
        description="Base URL relative endpoints are resolved against",
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Request timeout in seconds",
    )
    default_headers: dict[str, str] = Field(
        default_factory=dict,
        description="Headers sent with every request",
    )
    max_connections: int = Field(
        default=20,
        ge=1,
        le=200,
        description="HTTP connection pool size",
    )

    @field_validator("base_url")
    @classmethod
    def base_url_scheme(cls, v: str) -> str:
        """Require an http(s) scheme when a base URL is set."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v


# =============================================================================
# Throttle Configuration
# =============================================================================


class ThrottleConfig(BaseModel):
    """Concurrency limit and rate-limit backoff settings."""

    max_concurrency: int = Field(
        default=0,
        ge=0,
        le=100,
        description="Max simultaneous outbound requests (0 = unbounded)",
    )
    default_retry_after_seconds: float = Field(
        default=60.0,
        ge=0.0,
        le=3600.0,
        description="Backoff applied when a 429 carries no Retry-After header",
    )
    backoff_policy: BackoffPolicy = Field(
        default=BackoffPolicy.OVERWRITE,
        description="How a new 429 combines with an active backoff window",
    )
    max_rate_limit_retries: int | None = Field(
        default=None,
        ge=1,
        description="Give up after this many 429 responses for one request (unset = never)",
    )


# =============================================================================
# Cache / Pagination / Logging
# =============================================================================


class CacheConfig(BaseModel):
    """Response cache settings."""

    ttl_minutes: float = Field(
        default=60.0,
        gt=0.0,
        description="Lifetime of cached successful responses",
    )


class PaginationConfig(BaseModel):
    """Cursor pagination settings."""

    page_size: int = Field(
        default=100,
        ge=1,
        le=1000,
        description="Value of the limit query parameter",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(
        default="INFO",
        description="Log level",
    )
    file: Path | None = Field(
        default=None,
        description="Log file path",
    )
    json_format: bool = Field(
        default=True,
        description="Use JSON format for file logs",
    )

    @field_validator("level")
    @classmethod
    def valid_level(cls, v: str) -> str:
        """Validate log level."""
        valid = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid:
            raise ValueError(f"level must be one of: {', '.join(sorted(valid))}")
        return v.upper()


# =============================================================================
# Root Configuration
# =============================================================================


class AppConfig(BaseModel):
    """Root application configuration.

    This is the main configuration object loaded from pagewalk.yaml.
    """

    api: ApiConfig = Field(default_factory=ApiConfig)
    throttle: ThrottleConfig = Field(default_factory=ThrottleConfig)
    cache: CacheConfig = Field(default_factory=CacheConfig)
    pagination: PaginationConfig = Field(default_factory=PaginationConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
