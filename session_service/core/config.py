"""
Core configuration module for the Session Service.

This module provides centralized configuration management using Pydantic Settings.
All configuration is loaded from environment variables with the SESSION_SERVICE_ prefix.

Example:
    SESSION_SERVICE_REDIS_URL=redis://cache:6379/0
    SESSION_SERVICE_SESSION_TYPES='["main_session", "virtual_cohort", "settings"]'
"""

from functools import lru_cache
from typing import Literal, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings


DEFAULT_SESSION_TYPES = ["main_session", "virtual_cohort"]


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All fields use the SESSION_SERVICE_ prefix for environment variables.
    Example: SESSION_SERVICE_PORT=8080
    """

    # =========================================================================
    # Service Configuration
    # =========================================================================
    service_name: str = Field(
        default="session-service",
        description="Name of the service for logging and identification",
    )
    version: str = Field(
        default="1.0.0",
        description="Service version reported by /info",
    )
    port: int = Field(
        default=8080,
        ge=1,
        le=65535,
        description="Port the service listens on",
    )
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment",
    )
    log_level: str = Field(
        default="INFO",
        description="Log level (DEBUG, INFO, WARNING, ERROR)",
    )
    cors_origins: list[str] = Field(
        default_factory=list,
        description="Allowed CORS origins outside development",
    )

    # =========================================================================
    # Redis Configuration
    # =========================================================================
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL for the document store",
    )
    redis_key_prefix: str = Field(
        default="session_service:",
        description="Prefix for every key the document store writes",
    )

    # =========================================================================
    # Session Configuration
    # =========================================================================
    session_types: list[str] = Field(
        default_factory=lambda: list(DEFAULT_SESSION_TYPES),
        min_length=1,
        description="Recognized session types, one collection per type",
    )
    source_min_length: int = Field(
        default=3,
        ge=1,
        description="Minimum length of a session source",
    )

    # =========================================================================
    # Tracing Configuration
    # =========================================================================
    otlp_endpoint: Optional[str] = Field(
        default=None,
        description="OTLP exporter endpoint; console exporter when unset",
    )

    model_config = {
        "env_prefix": "SESSION_SERVICE_",
        "case_sensitive": False,
        "extra": "ignore",
    }

    # =========================================================================
    # Field Validators
    # =========================================================================
    @field_validator("redis_url")
    @classmethod
    def validate_redis_url(cls, v: str) -> str:
        """Validate Redis URL format."""
        if not v.startswith(("redis://", "rediss://")):
            raise ValueError("Redis URL must start with redis:// or rediss://")
        return v

    @field_validator("session_types")
    @classmethod
    def validate_session_types(cls, v: list[str]) -> list[str]:
        """Session types become collection names, so they must be plain identifiers."""
        for session_type in v:
            if not session_type or not session_type.replace("_", "").isalnum():
                raise ValueError(
                    f"Session type must be alphanumeric with underscores: {session_type!r}"
                )
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Normalize and validate the log level."""
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


# =============================================================================
# Settings Singleton
# =============================================================================


@lru_cache
def get_settings() -> Settings:
    """
    Get the application settings singleton.

    Uses functools.lru_cache to ensure only one Settings instance is created.
    Tests that need different values call ``get_settings.cache_clear()``.

    Returns:
        Settings: The application settings instance.
    """
    return Settings()
