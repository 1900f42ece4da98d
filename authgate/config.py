"""
Application configuration.

Loads settings from environment variables with sensible defaults.
Provider options win over these for base path and trusted origins.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Settings loaded from environment."""

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = False

    # ==========================================================================
    # Auth wiring
    # ==========================================================================

    # Where the provider's own endpoints are mounted when it sets none
    auth_base_path: str = "/api/auth"

    # Comma-separated; used when the provider declares no trusted origins
    trusted_origins: str = ""

    disable_trusted_origins_cors: bool = False
    disable_exception_filter: bool = False

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def trusted_origins_list(self) -> list[str]:
        return [o.strip() for o in self.trusted_origins.split(",") if o.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
