"""Composite identifiers routing an entity to its account and calendar.

A calendar is addressed as ``accountId|calendarId`` and an event as
``accountId|calendarId:eventId``. The account id ends at the first ``|`` and
the event id starts after the last ``:``, so calendar ids may contain either
separator while account ids may not contain ``|`` and event ids may not
contain ``:``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from yearview.utils.errors import ValidationError

ACCOUNT_SEPARATOR = "|"
EVENT_SEPARATOR = ":"


@dataclass(frozen=True)
class CompositeId:
    account_id: str
    calendar_id: str
    event_id: Optional[str] = None

    @property
    def calendar_key(self) -> str:
        """Composite id of the calendar holding this entity."""
        return encode(self.account_id, self.calendar_id)

    def __str__(self) -> str:
        return encode(self.account_id, self.calendar_id, self.event_id)


def encode(account_id: str, calendar_id: str, event_id: str | None = None) -> str:
    """Build a composite id for a calendar, or for an event when `event_id` is given."""
    if not account_id or not calendar_id:
        raise ValidationError("Composite ids need a non-empty account and calendar id.")
    if ACCOUNT_SEPARATOR in account_id:
        raise ValidationError(f"Account id must not contain '{ACCOUNT_SEPARATOR}'.")
    composite = f"{account_id}{ACCOUNT_SEPARATOR}{calendar_id}"
    if event_id is None:
        return composite
    if not event_id:
        raise ValidationError("Event id must not be empty.")
    if EVENT_SEPARATOR in event_id:
        raise ValidationError(f"Event id must not contain '{EVENT_SEPARATOR}'.")
    return f"{composite}{EVENT_SEPARATOR}{event_id}"


def decode_calendar_id(composite_id: str) -> CompositeId:
    """Parse ``accountId|calendarId``."""
    if not isinstance(composite_id, str):
        raise ValidationError("Invalid calendarId")
    account_id, separator, calendar_id = composite_id.strip().partition(ACCOUNT_SEPARATOR)
    if not separator or not account_id or not calendar_id:
        raise ValidationError("Invalid calendarId")
    return CompositeId(account_id=account_id, calendar_id=calendar_id)


def decode(composite_id: str) -> CompositeId:
    """Parse ``accountId|calendarId:eventId``."""
    if not isinstance(composite_id, str):
        raise ValidationError("Invalid id")
    account_id, separator, remainder = composite_id.partition(ACCOUNT_SEPARATOR)
    if not separator or not account_id:
        raise ValidationError("Invalid id")
    calendar_id, separator, event_id = remainder.rpartition(EVENT_SEPARATOR)
    if not separator or not calendar_id or not event_id:
        raise ValidationError("Invalid id")
    return CompositeId(account_id=account_id, calendar_id=calendar_id, event_id=event_id)
