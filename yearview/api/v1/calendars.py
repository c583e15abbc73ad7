"""Calendar listing routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from yearview.core.dependencies import get_calendar_service, get_optional_session
from yearview.domains.accounts.schemas import SessionContext
from yearview.domains.calendars.schemas import CalendarsResponse
from yearview.domains.calendars.service import CalendarService

router = APIRouter(prefix="/calendars", tags=["calendars"])


@router.get(
    "",
    response_model=CalendarsResponse,
    response_model_by_alias=True,
    response_model_exclude_unset=True,
)
async def list_calendars(
    debug: bool = Query(False),
    session: SessionContext | None = Depends(get_optional_session),
    service: CalendarService = Depends(get_calendar_service),
) -> CalendarsResponse:
    """
    List every calendar of the user's linked accounts.

    Anonymous callers receive an empty list. Accounts that fail are reported
    in `accounts` with their status and error while the others still load.
    """
    if session is None:
        return CalendarsResponse(calendars=[])

    result = await service.list_calendars(session, debug=debug)
    return CalendarsResponse(**result)
