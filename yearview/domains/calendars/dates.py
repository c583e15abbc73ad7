"""All-day date helpers.

Events keep an exclusive end date (the first day not included). The UI sends
inclusive end dates, so conversion happens at the request boundary.
"""

from __future__ import annotations

import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Tuple

ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")


def is_iso_date(value: Any) -> bool:
    """Whether `value` is a valid YYYY-MM-DD string."""
    if not isinstance(value, str) or not ISO_DATE_PATTERN.match(value):
        return False
    try:
        date.fromisoformat(value)
    except ValueError:
        return False
    return True


def to_exclusive_end(inclusive_end: date) -> date:
    return inclusive_end + timedelta(days=1)


def to_inclusive_end(exclusive_end: date) -> date:
    return exclusive_end - timedelta(days=1)


def year_window(year: int) -> Tuple[datetime, datetime]:
    """UTC bounds ``[startOfYear, startOfNextYear)``."""
    return (
        datetime(year, 1, 1, tzinfo=timezone.utc),
        datetime(year + 1, 1, 1, tzinfo=timezone.utc),
    )


def extended_year_window(year: int) -> Tuple[datetime, datetime]:
    """UTC bounds ``[year-1, year+2)`` used for calendar-view queries."""
    return (
        datetime(year - 1, 1, 1, tzinfo=timezone.utc),
        datetime(year + 2, 1, 1, tzinfo=timezone.utc),
    )


def format_utc(value: datetime) -> str:
    """Format as ``YYYY-MM-DDTHH:MM:SSZ``."""
    return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")
