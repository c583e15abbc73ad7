"""All-day event routes."""

from __future__ import annotations

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from yearview.core.dependencies import (
    get_calendar_service,
    get_current_session,
    get_optional_session,
)
from yearview.domains.accounts.schemas import SessionContext
from yearview.domains.calendars.schemas import (
    CreateEventRequest,
    DeleteEventRequest,
    EventResponse,
    EventsResponse,
    OkResponse,
    UpdateEventRequest,
)
from yearview.domains.calendars.service import CalendarService
from yearview.utils.errors import CalendarServiceError

router = APIRouter(prefix="/events", tags=["events"])
logger = logging.getLogger(__name__)


def _split_ids(raw: Optional[str]) -> list[str]:
    if not raw:
        return []
    return [part.strip() for part in raw.split(",") if part.strip()]


def _to_http_error(exc: CalendarServiceError) -> HTTPException:
    if exc.status_code >= 500:
        logger.warning("Event write failed status=%s: %s", exc.status_code, exc)
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.get(
    "",
    response_model=EventsResponse,
    response_model_by_alias=True,
    response_model_exclude_unset=True,
)
async def list_events(
    year: Optional[int] = Query(None, ge=1, le=9998),
    calendar_ids: Optional[str] = Query(None, alias="calendarIds"),
    debug: bool = Query(False),
    session: SessionContext | None = Depends(get_optional_session),
    service: CalendarService = Depends(get_calendar_service),
) -> EventsResponse:
    """List all-day events of a year for comma-separated composite calendar ids."""
    if session is None:
        return EventsResponse(events=[])

    result = await service.list_events(
        session,
        year=year or date.today().year,
        calendar_ids=_split_ids(calendar_ids),
        debug=debug,
    )
    return EventsResponse(**result)


@router.post("", response_model=EventResponse, response_model_by_alias=True)
async def create_event(
    payload: CreateEventRequest,
    session: SessionContext = Depends(get_current_session),
    service: CalendarService = Depends(get_calendar_service),
) -> EventResponse:
    """Create an all-day event. The returned endDate is exclusive."""
    try:
        event = await service.create_event(
            session,
            calendar_id=payload.calendar_id,
            title=payload.title,
            start_date=payload.start,
            end_date=payload.inclusive_end,
        )
    except CalendarServiceError as exc:
        raise _to_http_error(exc) from exc
    return EventResponse(event=event)


@router.put("", response_model=EventResponse, response_model_by_alias=True)
async def update_event(
    payload: UpdateEventRequest,
    session: SessionContext = Depends(get_current_session),
    service: CalendarService = Depends(get_calendar_service),
) -> EventResponse:
    """Update an event, moving it when calendarId names another calendar."""
    try:
        event = await service.update_event(
            session,
            event_id=payload.id,
            calendar_id=payload.calendar_id,
            title=payload.title,
            start_date=payload.start,
            end_date=payload.inclusive_end,
        )
    except CalendarServiceError as exc:
        raise _to_http_error(exc) from exc
    return EventResponse(event=event)


@router.delete("", response_model=OkResponse)
async def delete_event(
    payload: DeleteEventRequest,
    session: SessionContext = Depends(get_current_session),
    service: CalendarService = Depends(get_calendar_service),
) -> OkResponse:
    """Delete an event addressed by its composite id."""
    try:
        await service.delete_event(session, event_id=payload.id)
    except CalendarServiceError as exc:
        raise _to_http_error(exc) from exc
    return OkResponse()
