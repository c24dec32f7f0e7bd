"""Application settings using Pydantic Settings.

Centralized configuration for the recruitment back office authorization
engine. Everything can be overridden through environment variables:

- APP_*: application-level settings (environment, logging, identity header)
- RBAC_*: permission cache and seed bootstrap settings
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class RBACSettings(BaseSettings):
    """Authorization engine settings."""

    model_config = SettingsConfigDict(
        env_prefix="RBAC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Permission cache. Off by default so every check re-reads the store.
    cache_enabled: bool = Field(default=False, description="Enable the process-level permission cache")
    cache_size: int = Field(default=1000, ge=1, description="Max cached users")
    cache_ttl_seconds: int = Field(default=300, ge=1, description="Cache entry lifetime in seconds")

    # Seed bootstrap
    seed_admin_email: str = Field(default="admin@trivens.com", description="Seeded administrator email")
    seed_admin_password: str = Field(default="Admin@123", description="Seeded administrator password")
    seed_admin_first_name: str = Field(default="System", description="Seeded administrator first name")
    seed_admin_last_name: str = Field(default="Administrator", description="Seeded administrator last name")


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    name: str = Field(default="Recruitment Back Office", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=False, description="Emit JSON log lines")
    log_file: str = Field(default="", description="Optional log file path")

    # Identity resolution. An upstream authenticator sets this header.
    identity_header: str = Field(default="X-User-ID", description="Header carrying the caller's user id")
    request_id_header: str = Field(default="X-Request-ID", description="Header carrying the request id")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        level = value.upper()
        if level not in logging.getLevelNamesMapping():
            raise ValueError(f"Unknown log level: {value}")
        return level

    @property
    def rbac(self) -> RBACSettings:
        return RBACSettings()


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()
