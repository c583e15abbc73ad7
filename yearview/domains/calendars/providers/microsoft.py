"""Microsoft Graph calendar provider implementation (read-only)."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from yearview.domains.accounts.schemas import Provider
from yearview.domains.calendars.dates import extended_year_window, format_utc
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

API_BASE_URL = "https://graph.microsoft.com/v1.0"
DEFAULT_CALENDAR_COLOR = "#3174ad"
PAGE_SIZE = 1000
READ_ONLY_MESSAGE = "Microsoft calendars are read-only; events cannot be changed here."


# Microsoft Graph response schemas
class GraphModel(BaseModel):
    model_config = ConfigDict(extra="ignore")


class GraphCalendar(GraphModel):
    id: str
    name: Optional[str] = None
    can_edit: bool = Field(False, alias="canEdit")
    is_default_calendar: bool = Field(False, alias="isDefaultCalendar")
    hex_color: Optional[str] = Field(None, alias="hexColor")


class GraphCalendarList(GraphModel):
    value: List[GraphCalendar] = Field(default_factory=list)
    next_link: Optional[str] = Field(None, alias="@odata.nextLink")


class GraphDateTime(GraphModel):
    date_time: Optional[str] = Field(None, alias="dateTime")
    time_zone: Optional[str] = Field(None, alias="timeZone")


class GraphEvent(GraphModel):
    id: str
    subject: Optional[str] = None
    is_cancelled: bool = Field(False, alias="isCancelled")
    start: GraphDateTime = Field(default_factory=GraphDateTime)
    end: GraphDateTime = Field(default_factory=GraphDateTime)


class GraphEventList(GraphModel):
    value: List[GraphEvent] = Field(default_factory=list)
    next_link: Optional[str] = Field(None, alias="@odata.nextLink")


def _split_date_time(value: Optional[str]) -> tuple[str, str] | None:
    """Split ``2025-03-01T00:00:00.0000000`` into its date and time-of-day parts."""
    if not value or "T" not in value:
        return None
    day, _, time_of_day = value.partition("T")
    return day, time_of_day


def _to_calendar_entry(calendar: GraphCalendar) -> CalendarEntry:
    return CalendarEntry(
        calendar_id=calendar.id,
        title=calendar.name or UNTITLED,
        is_primary=calendar.is_default_calendar,
        color=calendar.hex_color or DEFAULT_CALENDAR_COLOR,
        access_role="writer" if calendar.can_edit else "reader",
    )


def _to_all_day_event(event: GraphEvent, year: int) -> AllDayEvent | None:
    """
    Normalize a calendar-view item.

    An item is all-day when its start and end share the same time-of-day.
    Cancelled items, timed items and items starting outside `year` are
    dropped.
    """
    if event.is_cancelled:
        return None
    start = _split_date_time(event.start.date_time)
    end = _split_date_time(event.end.date_time)
    if start is None or end is None:
        return None
    if start[1] != end[1]:
        return None
    if not start[0].startswith(f"{year}-"):
        return None
    try:
        start_date = date.fromisoformat(start[0])
        end_date = date.fromisoformat(end[0])
    except ValueError:
        return None
    if end_date <= start_date:
        return None
    return AllDayEvent(
        event_id=event.id,
        title=event.subject or UNTITLED,
        start_date=start_date,
        end_date=end_date,
    )


class MicrosoftCalendarProvider(CalendarProvider):
    """Microsoft Graph calendar adapter. Write operations are not supported."""

    provider = Provider.MICROSOFT
    display_name = "Microsoft Graph"
    base_url = API_BASE_URL
    backoff_on_rate_limit = True
    supports_writes = False

    def extract_error_message(self, payload: Any) -> Optional[str]:
        # {"error": {"code": "InvalidAuthenticationToken", "message": "..."}}
        if not isinstance(payload, dict):
            return None
        error = payload.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if payload.get("message"):
            return str(payload["message"])
        if payload.get("error_description"):
            return str(payload["error_description"])
        return None

    async def list_calendars(self, access_token: str) -> ProviderResult:
        url: Optional[str] = "/me/calendars"
        calendars: List[CalendarEntry] = []
        status = 200
        while url:
            result = await self._request("GET", url, access_token=access_token)
            if isinstance(result, ProviderFailure):
                return result
            page = self._parse(GraphCalendarList, result.data)
            if isinstance(page, ProviderFailure):
                return page
            status = result.status
            calendars.extend(_to_calendar_entry(calendar) for calendar in page.value)
            url = page.next_link
        return ProviderSuccess(data=calendars, status=status)

    async def list_all_day_events(
        self,
        access_token: str,
        calendar_id: str,
        year: int,
    ) -> ProviderResult:
        # calendarView expands recurring events but has no all-day filter,
        # so a wider window is fetched and narrowed client-side.
        window_start, window_end = extended_year_window(year)
        if calendar_id == "primary":
            url: Optional[str] = "/me/calendar/calendarView"
        else:
            url = f"/me/calendars/{_encode_path_segment(calendar_id)}/calendarView"
        params: Optional[Dict[str, Any]] = {
            "startDateTime": format_utc(window_start),
            "endDateTime": format_utc(window_end),
            "$orderby": "start/dateTime",
            "$top": PAGE_SIZE,
        }
        events: List[AllDayEvent] = []
        raw_count = 0
        status = 200
        while url:
            result = await self._request("GET", url, access_token=access_token, params=params)
            if isinstance(result, ProviderFailure):
                return result
            page = self._parse(GraphEventList, result.data)
            if isinstance(page, ProviderFailure):
                return page
            status = result.status
            raw_count += len(page.value)
            for item in page.value:
                event = _to_all_day_event(item, year)
                if event is not None:
                    events.append(event)
            # nextLink already carries the query string
            url = page.next_link
            params = None
        logger.debug(
            "Microsoft events calendar_id=%s year=%s raw=%s all_day=%s",
            calendar_id,
            year,
            raw_count,
            len(events),
        )
        return ProviderSuccess(data=events, status=status)

    # TODO: implement Graph event writes once Microsoft calendars are editable in the grid
    async def create_event(
        self,
        access_token: str,
        calendar_id: str,
        *,
        title: str,
        start_date: date,
        end_date: date,
    ) -> ProviderResult:
        return ProviderFailure(status=501, error=READ_ONLY_MESSAGE)

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
        return ProviderFailure(status=501, error=READ_ONLY_MESSAGE)

    async def delete_event(
        self,
        access_token: str,
        calendar_id: str,
        event_id: str,
    ) -> ProviderResult:
        return ProviderFailure(status=501, error=READ_ONLY_MESSAGE)
