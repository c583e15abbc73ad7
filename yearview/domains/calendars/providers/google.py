"""Google Calendar provider implementation."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from yearview.domains.accounts.schemas import Provider
from yearview.domains.calendars.dates import format_utc, year_window
from yearview.domains.calendars.providers.base import (
    CalendarProvider,
    ProviderResult,
    _encode_path_segment,
)
from yearview.domains.calendars.schemas import (
    UNTITLED,
    AllDayEvent,
    CalendarEntry,
    ProviderFailure,
    ProviderSuccess,
)

logger = logging.getLogger(__name__)

API_BASE_URL = "https://www.googleapis.com/calendar/v3"
MAX_EVENT_RESULTS = 2500

ACCESS_ROLES = {
    "owner": "owner",
    "writer": "writer",
    "reader": "reader",
    "freeBusyReader": "reader",
}


# Google Calendar API response schemas
class GoogleModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GoogleCalendarListEntry(GoogleModel):
    id: str
    summary: Optional[str] = None
    summary_override: Optional[str] = Field(None, alias="summaryOverride")
    primary: bool = False
    background_color: Optional[str] = Field(None, alias="backgroundColor")
    access_role: Optional[str] = Field(None, alias="accessRole")


class GoogleCalendarList(GoogleModel):
    items: List[GoogleCalendarListEntry] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


class GoogleEventTime(GoogleModel):
    date: Optional[str] = None
    date_time: Optional[str] = Field(None, alias="dateTime")


class GoogleEvent(GoogleModel):
    id: str
    summary: Optional[str] = None
    status: Optional[str] = None
    start: GoogleEventTime = Field(default_factory=GoogleEventTime)
    end: GoogleEventTime = Field(default_factory=GoogleEventTime)


class GoogleEventList(GoogleModel):
    items: List[GoogleEvent] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


def _to_calendar_entry(entry: GoogleCalendarListEntry) -> CalendarEntry:
    return CalendarEntry(
        calendar_id=entry.id,
        title=entry.summary_override or entry.summary or UNTITLED,
        is_primary=entry.primary,
        color=entry.background_color,
        access_role=ACCESS_ROLES.get(entry.access_role or "", "reader"),
    )


def _to_all_day_event(event: GoogleEvent) -> AllDayEvent | None:
    """Normalize an event; returns None for timed, cancelled or malformed events."""
    if event.status == "cancelled":
        return None
    if not event.start.date or not event.end.date:
        return None
    try:
        start_date = date.fromisoformat(event.start.date)
        end_date = date.fromisoformat(event.end.date)
    except ValueError:
        return None
    if end_date <= start_date:
        return None
    return AllDayEvent(
        event_id=event.id,
        title=event.summary or UNTITLED,
        start_date=start_date,
        end_date=end_date,
    )


def _event_body(title: str, start_date: date, end_date: date) -> Dict[str, Any]:
    return {
        "summary": title,
        "start": {"date": start_date.isoformat()},
        "end": {"date": end_date.isoformat()},
    }


class GoogleCalendarProvider(CalendarProvider):
    """Google Calendar REST API adapter."""

    provider = Provider.GOOGLE
    display_name = "Google Calendar"
    base_url = API_BASE_URL

    def extract_error_message(self, payload: Any) -> Optional[str]:
        # {"error": {"code": 401, "message": "..."}} or OAuth style
        # {"error": "invalid_grant", "error_description": "..."}
        if not isinstance(payload, dict):
            return None
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if payload.get("error_description"):
            return str(payload["error_description"])
        return None

    async def list_calendars(self, access_token: str) -> ProviderResult:
        params: Dict[str, Any] = {"minAccessRole": "reader", "maxResults": 250}
        calendars: List[CalendarEntry] = []
        status = 200
        while True:
            result = await self._request(
                "GET", "/users/me/calendarList", access_token=access_token, params=params
            )
            if isinstance(result, ProviderFailure):
                return result
            page = self._parse(GoogleCalendarList, result.data)
            if isinstance(page, ProviderFailure):
                return page
            status = result.status
            calendars.extend(_to_calendar_entry(entry) for entry in page.items)
            if not page.next_page_token:
                break
            params["pageToken"] = page.next_page_token
        return ProviderSuccess(data=calendars, status=status)

    async def list_all_day_events(
        self,
        access_token: str,
        calendar_id: str,
        year: int,
    ) -> ProviderResult:
        time_min, time_max = year_window(year)
        path = f"/calendars/{_encode_path_segment(calendar_id)}/events"
        # singleEvents expands recurring events server-side
        params: Dict[str, Any] = {
            "singleEvents": "true",
            "orderBy": "startTime",
            "timeMin": format_utc(time_min),
            "timeMax": format_utc(time_max),
            "maxResults": MAX_EVENT_RESULTS,
        }
        events: List[AllDayEvent] = []
        status = 200
        while True:
            result = await self._request("GET", path, access_token=access_token, params=params)
            if isinstance(result, ProviderFailure):
                return result
            page = self._parse(GoogleEventList, result.data)
            if isinstance(page, ProviderFailure):
                return page
            status = result.status
            for item in page.items:
                event = _to_all_day_event(item)
                if event is not None:
                    events.append(event)
            if not page.next_page_token:
                break
            params["pageToken"] = page.next_page_token
        logger.debug(
            "Google events calendar_id=%s year=%s all_day=%s", calendar_id, year, len(events)
        )
        return ProviderSuccess(data=events, status=status)

    async def _write(
        self,
        method: str,
        path: str,
        access_token: str,
        *,
        title: str,
        start_date: date,
        end_date: date,
    ) -> ProviderResult:
        result = await self._request(
            method,
            path,
            access_token=access_token,
            json=_event_body(title, start_date, end_date),
        )
        if isinstance(result, ProviderFailure):
            return result
        event = self._parse(GoogleEvent, result.data)
        if isinstance(event, ProviderFailure):
            return event
        return ProviderSuccess(
            data=AllDayEvent(
                event_id=event.id,
                title=event.summary or title,
                start_date=start_date,
                end_date=end_date,
            ),
            status=result.status,
        )

    async def create_event(
        self,
        access_token: str,
        calendar_id: str,
        *,
        title: str,
        start_date: date,
        end_date: date,
    ) -> ProviderResult:
        path = f"/calendars/{_encode_path_segment(calendar_id)}/events"
        return await self._write(
            "POST", path, access_token, title=title, start_date=start_date, end_date=end_date
        )

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
        path = (
            f"/calendars/{_encode_path_segment(calendar_id)}"
            f"/events/{_encode_path_segment(event_id)}"
        )
        return await self._write(
            "PUT", path, access_token, title=title, start_date=start_date, end_date=end_date
        )

    async def delete_event(
        self,
        access_token: str,
        calendar_id: str,
        event_id: str,
    ) -> ProviderResult:
        path = (
            f"/calendars/{_encode_path_segment(calendar_id)}"
            f"/events/{_encode_path_segment(event_id)}"
        )
        # Google answers 204 with an empty body; 200 is accepted too
        result = await self._request("DELETE", path, access_token=access_token)
        if isinstance(result, ProviderFailure):
            return result
        return ProviderSuccess(data=None, status=result.status)
