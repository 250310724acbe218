"""
Centralized configuration for the Chatflow session core.

All settings are loaded from environment variables with sensible defaults.
Module-specific settings are namespaced (e.g., BACKEND_*, CACHE_*, PLAN_*).
"""

from functools import lru_cache
from pathlib import Path
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Chatflow Session Core"
    app_version: str = "0.1.0"
    debug: bool = False
    log_level: str = "INFO"

    # Backend of record
    backend_url: str = "http://localhost:3001"
    backend_timeout: float = 10.0  # seconds

    # Retry policy for backend calls: one retry, fixed backoff
    retry_attempts: int = Field(default=2, ge=1, le=5)
    retry_backoff_seconds: float = Field(default=0.5, ge=0.0)

    # Local session cache
    cache_dir: Path = Path(".chatflow")
    cache_key: str = "chatflow_user"

    # Message limits per plan
    plan_limit_free: int = Field(default=20, gt=0)
    plan_limit_standard: int = Field(default=2000, gt=0)
    plan_limit_premium: int = Field(default=10000, gt=0)


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()
