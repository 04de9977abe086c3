"""Tests for the Google Calendar collaborator against a mocked HTTP transport"""

import json
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from care_booking.domain.scheduling.service import SlotService
from care_booking.exceptions import CalendarSyncError
from care_booking.models_google_calendar import CalendarIntegration
from care_booking.services.google_calendar_service import (
    GOOGLE_TOKEN_URL,
    GoogleCalendarService,
    decrypt_token,
    encrypt_token,
)

UTC = timezone.utc


@pytest.fixture
def google(monkeypatch):
    """Route every httpx.AsyncClient through a recorded handler"""
    calls = []
    responses = {}
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        key = (request.method, request.url.path)
        if str(request.url).startswith(GOOGLE_TOKEN_URL):
            key = ("POST", "token")
        status, body = responses.get(key, (404, {}))
        if isinstance(body, str):
            return httpx.Response(status, text=body)
        return httpx.Response(status, json=body)

    monkeypatch.setattr(
        httpx, "AsyncClient", lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs)
    )
    return calls, responses


@pytest.fixture
def integration(db, expert):
    row = CalendarIntegration(
        expert_id=expert.id,
        access_token=encrypt_token("access-1"),
        refresh_token=encrypt_token("refresh-1"),
        token_expires_at=datetime(2100, 1, 1),
        is_active=True,
    )
    db.add(row)
    db.commit()
    return row


def test_tokens_are_encrypted_at_rest():
    stored = encrypt_token("secret-token")
    assert stored != "secret-token"
    assert decrypt_token(stored) == "secret-token"


async def test_no_integration_means_nothing_to_sync(db, expert, make_appointment):
    service = GoogleCalendarService(db)
    appointment = make_appointment(expert)
    assert await service.create_event(expert.id, appointment) is None
    assert await service.delete_event(expert.id, "evt") is False
    assert await service.get_busy_times(expert.id, datetime(2030, 1, 7, tzinfo=UTC), datetime(2030, 1, 8, tzinfo=UTC)) == []


async def test_create_event_requests_meet_link(db, expert, integration, make_appointment, google):
    calls, responses = google
    responses[("POST", "/calendar/v3/calendars/primary/events")] = (
        200,
        {"id": "evt_123", "hangoutLink": "https://meet.google.com/abc-defg-hij"},
    )
    appointment = make_appointment(expert)

    event = await GoogleCalendarService(db).create_event(expert.id, appointment)

    assert event == {"event_id": "evt_123", "meeting_link": "https://meet.google.com/abc-defg-hij"}
    request = calls[0]
    assert request.headers["Authorization"] == "Bearer access-1"
    assert request.url.params["conferenceDataVersion"] == "1"
    body = json.loads(request.content)
    assert body["conferenceData"]["createRequest"]["conferenceSolutionKey"] == {"type": "hangoutsMeet"}
    assert body["start"]["timeZone"] == "America/New_York"


async def test_expiring_token_is_refreshed_first(db, expert, integration, make_appointment, google):
    calls, responses = google
    integration.token_expires_at = datetime.now(UTC).replace(tzinfo=None) + timedelta(minutes=1)
    db.commit()
    responses[("POST", "token")] = (200, {"access_token": "access-2", "expires_in": 3600})
    responses[("POST", "/calendar/v3/calendars/primary/events")] = (200, {"id": "evt_9"})

    event = await GoogleCalendarService(db).create_event(expert.id, make_appointment(expert))

    assert event["event_id"] == "evt_9"
    assert event["meeting_link"] is None
    assert calls[1].headers["Authorization"] == "Bearer access-2"
    db.refresh(integration)
    assert decrypt_token(integration.access_token) == "access-2"


async def test_provider_error_is_recorded(db, expert, integration, make_appointment, google):
    _, responses = google
    responses[("POST", "/calendar/v3/calendars/primary/events")] = (500, {"error": "backend"})

    with pytest.raises(CalendarSyncError):
        await GoogleCalendarService(db).create_event(expert.id, make_appointment(expert))

    db.refresh(integration)
    assert "Create event failed" in integration.sync_errors


async def test_already_deleted_event_is_fine(db, expert, integration, google):
    _, responses = google
    responses[("DELETE", "/calendar/v3/calendars/primary/events/evt_1")] = (410, {})
    assert await GoogleCalendarService(db).delete_event(expert.id, "evt_1") is True


async def test_busy_times_are_parsed_as_utc(db, expert, integration, google):
    _, responses = google
    responses[("POST", "/calendar/v3/freeBusy")] = (
        200,
        {"calendars": {"primary": {"busy": [{"start": "2030-01-07T15:00:00Z", "end": "2030-01-07T15:30:00Z"}]}}},
    )
    busy = await GoogleCalendarService(db).get_busy_times(
        expert.id, datetime(2030, 1, 7, tzinfo=UTC), datetime(2030, 1, 8, tzinfo=UTC)
    )
    assert busy == [(datetime(2030, 1, 7, 15, 0, tzinfo=UTC), datetime(2030, 1, 7, 15, 30, tzinfo=UTC))]


async def test_non_json_event_response_is_a_sync_error(db, expert, integration, make_appointment, google):
    _, responses = google
    responses[("POST", "/calendar/v3/calendars/primary/events")] = (200, "<html>proxy error</html>")

    with pytest.raises(CalendarSyncError):
        await GoogleCalendarService(db).create_event(expert.id, make_appointment(expert))

    db.refresh(integration)
    assert "non-JSON" in integration.sync_errors


async def test_non_json_busy_times_degrade_to_free_slots(db, expert, integration, monday_window, google):
    _, responses = google
    responses[("POST", "/calendar/v3/freeBusy")] = (200, "<html>proxy error</html>")
    calendar = GoogleCalendarService(db)

    with pytest.raises(CalendarSyncError):
        await calendar.get_busy_times(expert.id, datetime(2030, 1, 7, tzinfo=UTC), datetime(2030, 1, 8, tzinfo=UTC))

    slots = await SlotService(db, calendar).get_available_slots(
        expert.id, date(2030, 1, 7), "America/New_York", 30, 30, now=datetime(2030, 1, 1, tzinfo=UTC)
    )
    assert len(slots) == 6
