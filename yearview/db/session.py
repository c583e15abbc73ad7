"""Supabase client factory for the durable credential store."""

from __future__ import annotations

from functools import lru_cache

from supabase import Client, ClientOptions, create_client

from yearview.core.config import get_settings


@lru_cache
def get_service_client() -> Client:
    """
    Get the cached service-role client.

    The service role bypasses row level security, so every repository query
    must filter on user_id itself.
    """
    settings = get_settings()
    options = ClientOptions(
        postgrest_client_timeout=settings.http_timeout_seconds,
        auto_refresh_token=False,
        persist_session=False,
    )
    return create_client(
        settings.supabase_url, settings.supabase_service_role_key, options=options
    )
