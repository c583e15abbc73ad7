"""Tests for the Google and Microsoft calendar adapters."""

from datetime import date

import httpx
import pytest

from tests.conftest import GOOGLE_API, GRAPH_API, bearer, json_response
from yearview.domains.calendars.providers import get_provider
from yearview.domains.accounts.schemas import Provider
from yearview.domains.calendars.providers.microsoft import DEFAULT_CALENDAR_COLOR
from yearview.domains.calendars.schemas import ProviderFailure, ProviderSuccess


def graph_item(item_id, start, end, **extra):
    return {
        "id": item_id,
        "subject": extra.pop("subject", item_id),
        "start": {"dateTime": start, "timeZone": "UTC"},
        "end": {"dateTime": end, "timeZone": "UTC"},
        **extra,
    }


class TestGoogleProvider:
    """Tests for the Google Calendar adapter."""

    @pytest.mark.asyncio
    async def test_list_calendars_follows_pages(self, upstream):
        upstream.add(
            "GET",
            f"{GOOGLE_API}/users/me/calendarList",
            json_response(
                200,
                {
                    "items": [
                        {"id": "primary-id", "summary": "Ada", "primary": True,
                         "backgroundColor": "#9fe1e7", "accessRole": "owner"},
                    ],
                    "nextPageToken": "page-2",
                },
            ),
            json_response(
                200,
                {"items": [{"id": "holidays", "accessRole": "freeBusyReader"}]},
            ),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.GOOGLE, client).list_calendars("token")

        assert isinstance(result, ProviderSuccess)
        primary, holidays = result.data
        assert primary.is_primary is True
        assert primary.color == "#9fe1e7"
        assert primary.access_role == "owner"
        assert holidays.title == "(Untitled)"
        assert holidays.access_role == "reader"
        second = upstream.requests[1]
        assert second.url.params["pageToken"] == "page-2"
        assert bearer(second) == "token"

    @pytest.mark.asyncio
    async def test_list_all_day_events_keeps_exclusive_end(self, upstream):
        upstream.add(
            "GET",
            f"{GOOGLE_API}/calendars/primary/events",
            json_response(
                200,
                {
                    "items": [
                        {"id": "e1", "summary": "Holiday",
                         "start": {"date": "2025-07-04"}, "end": {"date": "2025-07-05"}},
                        {"id": "e2", "summary": "Standup",
                         "start": {"dateTime": "2025-07-07T09:00:00Z"},
                         "end": {"dateTime": "2025-07-07T09:15:00Z"}},
                        {"id": "e3", "status": "cancelled",
                         "start": {"date": "2025-08-01"}, "end": {"date": "2025-08-02"}},
                    ]
                },
            ),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.GOOGLE, client).list_all_day_events(
                "token", "primary", 2025
            )

        assert isinstance(result, ProviderSuccess)
        assert [event.event_id for event in result.data] == ["e1"]
        assert result.data[0].end_date == date(2025, 7, 5)
        params = upstream.requests[0].url.params
        assert params["singleEvents"] == "true"
        assert params["timeMin"] == "2025-01-01T00:00:00Z"
        assert params["timeMax"] == "2026-01-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_error_message_is_extracted(self, upstream):
        upstream.add(
            "GET",
            f"{GOOGLE_API}/users/me/calendarList",
            json_response(403, {"error": {"code": 403, "message": "Calendar usage limits exceeded."}}),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.GOOGLE, client).list_calendars("token")

        assert isinstance(result, ProviderFailure)
        assert result.status == 403
        assert result.error == "Calendar usage limits exceeded."

    @pytest.mark.asyncio
    async def test_network_error_is_a_failure_result(self, upstream):
        upstream.add(
            "GET",
            f"{GOOGLE_API}/users/me/calendarList",
            httpx.ConnectError("connection refused"),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.GOOGLE, client).list_calendars("token")

        assert isinstance(result, ProviderFailure)
        assert result.status is None
        assert "connection refused" in result.error

    @pytest.mark.asyncio
    async def test_unexpected_payload_is_a_failure_result(self, upstream):
        upstream.add(
            "GET",
            f"{GOOGLE_API}/users/me/calendarList",
            json_response(200, {"items": "not-a-list"}),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.GOOGLE, client).list_calendars("token")

        assert isinstance(result, ProviderFailure)
        assert result.status == 502

    @pytest.mark.asyncio
    async def test_create_event_sends_all_day_body(self, upstream):
        upstream.add(
            "POST",
            f"{GOOGLE_API}/calendars/work/events",
            json_response(200, {"id": "new-1", "summary": "Offsite"}),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.GOOGLE, client).create_event(
                "token",
                "work",
                title="Offsite",
                start_date=date(2025, 9, 1),
                end_date=date(2025, 9, 3),
            )

        assert isinstance(result, ProviderSuccess)
        assert result.data.event_id == "new-1"
        body = upstream.requests[0].read()
        assert b'"start":{"date":"2025-09-01"}' in body.replace(b" ", b"")
        assert b'"end":{"date":"2025-09-03"}' in body.replace(b" ", b"")

    @pytest.mark.asyncio
    async def test_delete_accepts_empty_204(self, upstream):
        upstream.add("DELETE", f"{GOOGLE_API}/calendars/work/events/e1", json_response(204))
        async with upstream.client() as client:
            result = await get_provider(Provider.GOOGLE, client).delete_event("token", "work", "e1")

        assert isinstance(result, ProviderSuccess)


class TestMicrosoftProvider:
    """Tests for the Microsoft Graph adapter."""

    @pytest.mark.asyncio
    async def test_list_calendars_maps_graph_fields(self, upstream):
        upstream.add(
            "GET",
            f"{GRAPH_API}/me/calendars",
            json_response(
                200,
                {
                    "value": [
                        {"id": "AAMk1", "name": "Calendar", "isDefaultCalendar": True,
                         "canEdit": True, "hexColor": ""},
                        {"id": "AAMk2", "name": "Birthdays", "canEdit": False,
                         "hexColor": "#ff0000"},
                    ]
                },
            ),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.MICROSOFT, client).list_calendars("token")

        assert isinstance(result, ProviderSuccess)
        default, birthdays = result.data
        assert default.is_primary is True
        assert default.color == DEFAULT_CALENDAR_COLOR
        assert default.access_role == "writer"
        assert birthdays.is_primary is False
        assert birthdays.access_role == "reader"

    @pytest.mark.asyncio
    async def test_all_day_detection_and_year_filter(self, upstream):
        upstream.add(
            "GET",
            f"{GRAPH_API}/me/calendar/calendarView",
            json_response(
                200,
                {
                    "value": [
                        graph_item("all-day", "2025-03-01T00:00:00.0000000",
                                   "2025-03-02T00:00:00.0000000"),
                        graph_item("multi-day", "2025-05-10T00:00:00.0000000",
                                   "2025-05-13T00:00:00.0000000"),
                        graph_item("timed", "2025-03-01T09:00:00.0000000",
                                   "2025-03-01T10:00:00.0000000"),
                        graph_item("last-year", "2024-12-31T00:00:00.0000000",
                                   "2025-01-01T00:00:00.0000000"),
                        graph_item("cancelled", "2025-06-01T00:00:00.0000000",
                                   "2025-06-02T00:00:00.0000000", isCancelled=True),
                    ],
                },
            ),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.MICROSOFT, client).list_all_day_events(
                "token", "primary", 2025
            )

        assert isinstance(result, ProviderSuccess)
        assert [event.event_id for event in result.data] == ["all-day", "multi-day"]
        assert result.data[1].end_date == date(2025, 5, 13)
        params = upstream.requests[0].url.params
        assert params["startDateTime"] == "2024-01-01T00:00:00Z"
        assert params["endDateTime"] == "2027-01-01T00:00:00Z"

    @pytest.mark.asyncio
    async def test_calendar_view_follows_next_link(self, upstream):
        next_link = f"{GRAPH_API}/me/calendars/AAMk1/calendarView?$skip=1000"
        upstream.add(
            "GET",
            f"{GRAPH_API}/me/calendars/AAMk1/calendarView",
            json_response(
                200,
                {
                    "value": [graph_item("a", "2025-01-02T00:00:00", "2025-01-03T00:00:00")],
                    "@odata.nextLink": next_link,
                },
            ),
            json_response(
                200,
                {"value": [graph_item("b", "2025-02-02T00:00:00", "2025-02-03T00:00:00")]},
            ),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.MICROSOFT, client).list_all_day_events(
                "token", "AAMk1", 2025
            )

        assert [event.event_id for event in result.data] == ["a", "b"]
        assert "startDateTime" not in upstream.requests[1].url.params

    @pytest.mark.asyncio
    async def test_writes_are_not_supported(self, upstream):
        async with upstream.client() as client:
            result = await get_provider(Provider.MICROSOFT, client).create_event(
                "token",
                "AAMk1",
                title="Trip",
                start_date=date(2025, 1, 1),
                end_date=date(2025, 1, 2),
            )

        assert isinstance(result, ProviderFailure)
        assert result.status == 501
        assert upstream.requests == []

    @pytest.mark.asyncio
    async def test_graph_error_envelope(self, upstream):
        upstream.add(
            "GET",
            f"{GRAPH_API}/me/calendars",
            json_response(
                401,
                {"error": {"code": "InvalidAuthenticationToken", "message": "Access token has expired."}},
            ),
        )
        async with upstream.client() as client:
            result = await get_provider(Provider.MICROSOFT, client).list_calendars("token")

        assert isinstance(result, ProviderFailure)
        assert result.unauthorized
        assert result.error == "Access token has expired."
