"""Application configuration using pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the project root directory (two levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Supabase configuration (durable credential store)
    supabase_url: str
    supabase_service_role_key: str

    # Session tokens issued by the sign-in layer
    session_secret: str | None = None
    session_algorithm: str = "HS256"

    # Google OAuth configuration
    google_client_id: str | None = None
    google_client_secret: str | None = None
    google_token_endpoint: str = "https://oauth2.googleapis.com/token"

    # Microsoft OAuth configuration
    microsoft_client_id: str | None = None
    microsoft_client_secret: str | None = None
    microsoft_tenant_id: str = "common"
    microsoft_token_endpoint: str = (
        "https://login.microsoftonline.com/{tenant}/oauth2/v2.0/token"
    )

    # Upstream request behaviour
    http_timeout_seconds: float = 15.0
    # Delay between sequential event fetches (upstream rate-limit politeness)
    event_fetch_delay_seconds: float = 1.0
    rate_limit_max_retries: int = 3
    rate_limit_base_delay_seconds: float = 2.0
    token_refresh_leeway_seconds: int = 60

    log_level: str = "INFO"

    @property
    def microsoft_token_endpoint_resolved(self) -> str:
        """Get the tenant-scoped Microsoft token endpoint."""
        return self.microsoft_token_endpoint.format(tenant=self.microsoft_tenant_id)

    model_config = SettingsConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),  # Load from project root .env file
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings."""
    return Settings()
