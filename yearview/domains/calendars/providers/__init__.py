"""Calendar provider adapters, one per supported provider."""

from __future__ import annotations

from typing import Dict, Type

import httpx

from yearview.domains.accounts.schemas import Provider
from yearview.domains.calendars.providers.base import CalendarProvider, ProviderResult
from yearview.domains.calendars.providers.google import GoogleCalendarProvider
from yearview.domains.calendars.providers.microsoft import MicrosoftCalendarProvider

PROVIDERS: Dict[Provider, Type[CalendarProvider]] = {
    Provider.GOOGLE: GoogleCalendarProvider,
    Provider.MICROSOFT: MicrosoftCalendarProvider,
}


def get_provider(provider: Provider, http_client: httpx.AsyncClient) -> CalendarProvider:
    """Build the adapter for `provider`."""
    return PROVIDERS[provider](http_client)


__all__ = [
    "CalendarProvider",
    "GoogleCalendarProvider",
    "MicrosoftCalendarProvider",
    "ProviderResult",
    "get_provider",
]
