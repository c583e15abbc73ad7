"""Calendar domain schemas."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Generic, List, Literal, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictStr,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from yearview.domains.accounts.schemas import Provider
from yearview.domains.calendars.dates import is_iso_date

AccessRole = Literal["reader", "writer", "owner"]

UNTITLED = "(Untitled)"

T = TypeVar("T")


# Provider-neutral shapes returned by the adapters
class CalendarEntry(BaseModel):
    calendar_id: str
    title: str = UNTITLED
    is_primary: bool = False
    color: Optional[str] = None
    access_role: AccessRole = "reader"


class AllDayEvent(BaseModel):
    event_id: str
    title: str = UNTITLED
    start_date: date
    # Exclusive: the first day not covered by the event
    end_date: date


@dataclass(frozen=True)
class ProviderSuccess(Generic[T]):
    data: T
    status: int = 200
    ok: Literal[True] = True


@dataclass(frozen=True)
class ProviderFailure:
    """A provider call that did not succeed. `status` is None on transport errors."""

    status: Optional[int]
    error: str
    ok: Literal[False] = False

    @property
    def unauthorized(self) -> bool:
        return self.status == 401

    @property
    def rate_limited(self) -> bool:
        return self.status == 429


@dataclass
class FetchOutcome:
    """Result of one unit of fan-out work for an account (and calendar)."""

    account_id: str
    provider: Provider
    email: Optional[str] = None
    calendar_id: Optional[str] = None
    items: List[Any] = field(default_factory=list)
    status: Optional[int] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


# Canonical (UI-facing) models
class CanonicalModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CanonicalCalendar(CanonicalModel):
    composite_id: str = Field(..., alias="id")
    calendar_id: str = Field(..., alias="originalId")
    account_id: str
    account_email: Optional[str] = None
    provider: Provider
    title: str
    is_primary: bool = Field(False, alias="primary")
    color: Optional[str] = None
    access_role: AccessRole = "reader"


class CanonicalEvent(CanonicalModel):
    composite_id: str = Field(..., alias="id")
    calendar_composite_id: str = Field(..., alias="calendarId")
    title: str
    start_date: date
    # Exclusive end date
    end_date: date

    @model_validator(mode="after")
    def _check_span(self) -> "CanonicalEvent":
        if self.end_date <= self.start_date:
            raise ValueError("endDate must be after startDate")
        return self


class AccountStatus(CanonicalModel):
    account_id: str
    email: Optional[str] = None
    provider: Provider
    status: Optional[int] = None
    error: Optional[str] = None


class CalendarsResponse(CanonicalModel):
    calendars: List[CanonicalCalendar] = Field(default_factory=list)
    accounts: List[AccountStatus] = Field(default_factory=list)
    debug: Optional[List[Dict[str, Any]]] = None


class EventsResponse(CanonicalModel):
    events: List[CanonicalEvent] = Field(default_factory=list)
    debug: Optional[List[Dict[str, Any]]] = None


# Request bodies. End dates on the wire are inclusive.
class EventWriteRequest(CanonicalModel):
    title: StrictStr
    calendar_id: StrictStr
    start_date: StrictStr
    end_date: Optional[StrictStr] = None

    @field_validator("title")
    @classmethod
    def _title_required(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Title is required")
        return value

    @field_validator("calendar_id")
    @classmethod
    def _calendar_required(cls, value: str) -> str:
        value = value.strip()
        if "|" not in value:
            raise ValueError("calendarId is required")
        return value

    @field_validator("start_date")
    @classmethod
    def _start_is_date(cls, value: str) -> str:
        if not is_iso_date(value):
            raise ValueError("startDate must be YYYY-MM-DD")
        return value

    @field_validator("end_date")
    @classmethod
    def _end_is_date(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_iso_date(value):
            raise ValueError("endDate must be YYYY-MM-DD")
        return value

    @model_validator(mode="after")
    def _end_not_before_start(self) -> "EventWriteRequest":
        if self.end_date is not None and self.end_date < self.start_date:
            raise ValueError("endDate must be on/after startDate")
        return self

    @property
    def start(self) -> date:
        return date.fromisoformat(self.start_date)

    @property
    def inclusive_end(self) -> date:
        return date.fromisoformat(self.end_date or self.start_date)


class CreateEventRequest(EventWriteRequest):
    pass


class UpdateEventRequest(EventWriteRequest):
    id: StrictStr


class DeleteEventRequest(CanonicalModel):
    id: StrictStr


class EventResponse(CanonicalModel):
    event: CanonicalEvent


class OkResponse(BaseModel):
    ok: bool = True
