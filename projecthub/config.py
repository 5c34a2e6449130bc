"""
Application configuration.

Loads settings from environment variables with sensible defaults.
"""

from __future__ import annotations

from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ==========================================================================
    # Environment
    # ==========================================================================

    environment: str = "development"
    debug: bool = True
    log_level: str = "INFO"

    # ==========================================================================
    # API Server
    # ==========================================================================

    api_host: str = "0.0.0.0"
    api_port: int = 8000
    cors_origins: str = "http://localhost:3000"

    # ==========================================================================
    # Identity provider / data store
    # ==========================================================================

    # Base URL of the hosted backend (auth at /auth/v1, rows at /rest/v1)
    identity_url: str = "http://localhost:54321"
    # Public key, safe to hand to browsers
    identity_anon_key: str = ""
    # Service key - server only, never serialized into a response
    identity_service_key: str = Field(default="", repr=False)
    # Upper bound on any single identity/store round-trip
    identity_timeout_seconds: float = 5.0

    # ==========================================================================
    # Session cookies
    # ==========================================================================

    access_cookie_name: str = "ph-access-token"
    refresh_cookie_name: str = "ph-refresh-token"
    cookie_secure: bool = False
    cookie_max_age_seconds: int = 60 * 60 * 24 * 7
    # Refresh when the access token has less than this left
    session_refresh_margin_seconds: int = 60

    # ==========================================================================
    # Route guard
    # ==========================================================================

    protected_prefixes: str = "/projects,/templates,/settings"
    login_path: str = "/login"
    register_path: str = "/register"
    landing_path: str = "/projects"
    # "public": "/" always passes; "redirect": "/" goes to landing or login
    root_policy: str = "public"

    # ==========================================================================
    # Optional Services
    # ==========================================================================

    sentry_dsn: str = ""

    # ==========================================================================
    # Helpers
    # ==========================================================================

    @property
    def cors_origins_list(self) -> list[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    @property
    def protected_prefixes_list(self) -> list[str]:
        return [p.strip().rstrip("/") for p in self.protected_prefixes.split(",") if p.strip()]

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    @property
    def auth_url(self) -> str:
        return f"{self.identity_url.rstrip('/')}/auth/v1"

    @property
    def rest_url(self) -> str:
        return f"{self.identity_url.rstrip('/')}/rest/v1"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
