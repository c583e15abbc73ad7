"""Base calendar provider interface."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date
from typing import Any, Dict, Optional, Type, TypeVar, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from yearview.domains.accounts.schemas import Provider
from yearview.domains.calendars.schemas import ProviderFailure, ProviderSuccess

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)

ProviderResult = Union[ProviderSuccess[Any], ProviderFailure]


def _encode_path_segment(segment: str) -> str:
    """Encode a URL path segment."""
    return quote(segment, safe="")


def _safe_json(response: httpx.Response) -> Any:
    """Safely parse JSON from response."""
    try:
        return response.json()
    except ValueError:
        return None


class CalendarProvider(ABC):
    """
    Abstract base class for calendar providers.

    Adapters translate canonical requests into provider HTTP calls and return
    tagged results: expected failures (non-2xx statuses, transport errors,
    unexpected payloads) come back as `ProviderFailure` instead of raising.
    """

    provider: Provider
    display_name: str
    base_url: str
    # Retry HTTP 429 responses with exponential backoff
    backoff_on_rate_limit: bool = False
    # False for read-only adapters; writes return 501 without calling upstream
    supports_writes: bool = True

    def __init__(self, http_client: httpx.AsyncClient) -> None:
        self.http_client = http_client

    @abstractmethod
    def extract_error_message(self, payload: Any) -> Optional[str]:
        """Pull the human-readable message out of the provider error envelope."""
        ...

    async def _request(
        self,
        method: str,
        url: str,
        *,
        access_token: str,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> ProviderResult:
        if not url.startswith("http"):
            url = f"{self.base_url}{url}"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }
        try:
            response = await self.http_client.request(
                method, url, headers=headers, params=params, json=json
            )
        except httpx.HTTPError as exc:
            logger.warning("%s request failed method=%s: %s", self.display_name, method, exc)
            return ProviderFailure(status=None, error=f"{self.display_name} request failed: {exc}")

        payload = _safe_json(response)
        if not response.is_success:
            message = self.extract_error_message(payload) if payload is not None else None
            return ProviderFailure(
                status=response.status_code,
                error=message
                or f"{self.display_name} request failed with status {response.status_code}",
            )
        return ProviderSuccess(data=payload, status=response.status_code)

    def _parse(self, model: Type[M], payload: Any) -> M | ProviderFailure:
        """Validate a provider payload against its response schema."""
        try:
            return model.model_validate(payload if payload is not None else {})
        except SchemaError as exc:
            logger.warning("Unexpected %s payload for %s: %s", self.display_name, model.__name__, exc)
            return ProviderFailure(
                status=502, error=f"Unexpected response from {self.display_name}"
            )

    @abstractmethod
    async def list_calendars(self, access_token: str) -> ProviderResult:
        """List calendars readable by the account as `CalendarEntry` items."""
        ...

    @abstractmethod
    async def list_all_day_events(
        self,
        access_token: str,
        calendar_id: str,
        year: int,
    ) -> ProviderResult:
        """List all-day `AllDayEvent` items starting in `year`."""
        ...

    @abstractmethod
    async def create_event(
        self,
        access_token: str,
        calendar_id: str,
        *,
        title: str,
        start_date: date,
        end_date: date,
    ) -> ProviderResult:
        """Create an all-day event; `end_date` is exclusive."""
        ...

    @abstractmethod
    async def update_event(
        self,
        access_token: str,
        calendar_id: str,
        event_id: str,
        *,
        title: str,
        start_date: date,
        end_date: date,
    ) -> ProviderResult:
        """Replace an all-day event; `end_date` is exclusive."""
        ...

    @abstractmethod
    async def delete_event(
        self,
        access_token: str,
        calendar_id: str,
        event_id: str,
    ) -> ProviderResult:
        """Delete an event."""
        ...
