"""Tests for composite calendar and event identifiers."""

import pytest

from yearview.domains.calendars import composite
from yearview.utils.errors import ValidationError


class TestEncode:
    def test_calendar_id(self):
        assert composite.encode("acc", "primary") == "acc|primary"

    def test_event_id(self):
        assert composite.encode("acc", "primary", "evt1") == "acc|primary:evt1"

    def test_account_with_pipe_rejected(self):
        with pytest.raises(ValidationError):
            composite.encode("a|b", "primary")

    def test_event_with_colon_rejected(self):
        with pytest.raises(ValidationError):
            composite.encode("acc", "primary", "a:b")

    def test_empty_segments_rejected(self):
        with pytest.raises(ValidationError):
            composite.encode("", "primary")
        with pytest.raises(ValidationError):
            composite.encode("acc", "")


class TestDecode:
    def test_calendar_id_with_separators_in_calendar(self):
        """The account ends at the first pipe; the rest belongs to the calendar."""
        parsed = composite.decode_calendar_id("acc|team|cal:2024")

        assert parsed.account_id == "acc"
        assert parsed.calendar_id == "team|cal:2024"
        assert parsed.event_id is None

    def test_event_id_splits_on_last_colon(self):
        parsed = composite.decode("acc|AAMk:calendar==:evt-9")

        assert parsed.account_id == "acc"
        assert parsed.calendar_id == "AAMk:calendar=="
        assert parsed.event_id == "evt-9"
        assert parsed.calendar_key == "acc|AAMk:calendar=="

    def test_round_trip_of_opaque_ids(self):
        encoded = composite.encode("acc", "c@group.calendar.google.com", "abc_20250101")
        parsed = composite.decode(encoded)

        assert str(parsed) == encoded

    @pytest.mark.parametrize("value", ["", "nopipe", "|cal", "acc|"])
    def test_malformed_calendar_ids(self, value):
        with pytest.raises(ValidationError, match="Invalid calendarId"):
            composite.decode_calendar_id(value)

    @pytest.mark.parametrize("value", ["", "acc|cal", "acc|:evt", "acc|cal:", "|cal:evt"])
    def test_malformed_event_ids(self, value):
        with pytest.raises(ValidationError, match="Invalid id"):
            composite.decode(value)

    def test_non_string_rejected(self):
        with pytest.raises(ValidationError):
            composite.decode(123)
