"""
Google Calendar Service
Creates and deletes appointment events (with Meet links) and reads busy times
"""
import base64
import hashlib
import logging
from datetime import datetime, timedelta
from typing import Optional

import httpx
from cryptography.fernet import Fernet, InvalidToken
from sqlalchemy.orm import Session

from ..config import GOOGLE_CLIENT_ID, GOOGLE_CLIENT_SECRET, SECRET_KEY
from ..domain.scheduling.timezones import as_utc, from_db, utcnow
from ..exceptions import CalendarSyncError
from ..models import Appointment
from ..models_google_calendar import CalendarIntegration

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API = "https://www.googleapis.com/calendar/v3"
REFRESH_MARGIN = timedelta(minutes=5)


def _cipher() -> Fernet:
    """Fernet cipher keyed from SECRET_KEY"""
    key = base64.urlsafe_b64encode(hashlib.sha256(SECRET_KEY.encode()).digest())
    return Fernet(key)


def encrypt_token(token: str) -> str:
    return _cipher().encrypt(token.encode()).decode()


def decrypt_token(token: str) -> str:
    return _cipher().decrypt(token.encode()).decode()


class GoogleCalendarService:
    """
    Calendar collaborator backed by Google Calendar v3.

    Every method raises CalendarSyncError on provider failure; callers in
    the booking engine treat those as non-fatal.
    """

    def __init__(self, db: Session, timeout: float = 10.0):
        self.db = db
        self.timeout = timeout

    def _get_integration(self, expert_id: int) -> Optional[CalendarIntegration]:
        return (
            self.db.query(CalendarIntegration)
            .filter(CalendarIntegration.expert_id == expert_id, CalendarIntegration.is_active.is_(True))
            .first()
        )

    def _record_error(self, integration: CalendarIntegration, message: str) -> None:
        integration.sync_errors = message[:1000]
        self.db.commit()

    def _json(self, integration: CalendarIntegration, response: httpx.Response, action: str) -> dict:
        try:
            body = response.json()
        except ValueError as e:
            self._record_error(integration, f"{action} returned a non-JSON body: {response.text}")
            raise CalendarSyncError(f"{action} returned an unreadable response") from e
        if not isinstance(body, dict):
            self._record_error(integration, f"{action} returned unexpected JSON: {response.text}")
            raise CalendarSyncError(f"{action} returned an unreadable response")
        return body

    async def get_valid_access_token(self, integration: CalendarIntegration) -> str:
        """Decrypted access token, refreshed first when it expires within five minutes"""
        try:
            if integration.token_expires_at > (utcnow() + REFRESH_MARGIN).replace(tzinfo=None):
                return decrypt_token(integration.access_token)

            logger.info(f"🔄 Google Calendar token expiring for expert {integration.expert_id}, refreshing...")
            refresh_token = decrypt_token(integration.refresh_token)
        except InvalidToken as e:
            raise CalendarSyncError("Stored calendar token could not be decrypted") from e

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    GOOGLE_TOKEN_URL,
                    data={
                        "client_id": GOOGLE_CLIENT_ID,
                        "client_secret": GOOGLE_CLIENT_SECRET,
                        "refresh_token": refresh_token,
                        "grant_type": "refresh_token",
                    },
                )
        except httpx.HTTPError as e:
            raise CalendarSyncError(f"Token refresh request failed: {e}") from e

        if response.status_code != 200:
            self._record_error(integration, f"Token refresh failed: {response.text}")
            raise CalendarSyncError(f"Token refresh failed: HTTP {response.status_code}")

        tokens = self._json(integration, response, "Token refresh")
        access_token = tokens.get("access_token")
        if not access_token:
            raise CalendarSyncError("No access token in refresh response")

        integration.access_token = encrypt_token(access_token)
        integration.token_expires_at = (utcnow() + timedelta(seconds=tokens.get("expires_in", 3600))).replace(
            tzinfo=None
        )
        self.db.commit()
        logger.info("✅ Google Calendar token refreshed successfully")
        return access_token

    async def _request(self, integration: CalendarIntegration, method: str, path: str, **kwargs) -> httpx.Response:
        access_token = await self.get_valid_access_token(integration)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                return await client.request(
                    method,
                    f"{GOOGLE_CALENDAR_API}{path}",
                    headers={"Authorization": f"Bearer {access_token}"},
                    **kwargs,
                )
        except httpx.HTTPError as e:
            raise CalendarSyncError(f"Google Calendar request failed: {e}") from e

    async def create_event(self, expert_id: int, appointment: Appointment) -> Optional[dict]:
        """
        Create the appointment event with a Google Meet conference.

        Returns {"event_id", "meeting_link"} or None when the expert has no
        active calendar integration.
        """
        integration = self._get_integration(expert_id)
        if not integration:
            logger.info(f"ℹ️ Google Calendar not connected for expert {expert_id}")
            return None

        start = from_db(appointment.scheduled_at)
        end = start + timedelta(minutes=appointment.duration)
        event_data = {
            "summary": f"Consultation with {appointment.client_name}",
            "description": appointment.notes or f"Appointment #{appointment.id}",
            "start": {"dateTime": start.isoformat(), "timeZone": appointment.scheduled_at_timezone or "UTC"},
            "end": {"dateTime": end.isoformat(), "timeZone": appointment.scheduled_at_timezone or "UTC"},
            "attendees": [{"email": appointment.client_email}],
            "conferenceData": {
                "createRequest": {
                    "requestId": f"appointment-{appointment.id}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            },
            "reminders": {
                "useDefault": False,
                "overrides": [{"method": "email", "minutes": 24 * 60}, {"method": "popup", "minutes": 15}],
            },
        }

        calendar_id = integration.calendar_id or "primary"
        response = await self._request(
            integration,
            "POST",
            f"/calendars/{calendar_id}/events",
            params={"conferenceDataVersion": 1, "sendUpdates": "all"},
            json=event_data,
        )
        if response.status_code not in (200, 201):
            self._record_error(integration, f"Create event failed: {response.text}")
            raise CalendarSyncError(f"Failed to create calendar event: HTTP {response.status_code}")

        event = self._json(integration, response, "Create event")
        meeting_link = event.get("hangoutLink")
        if not meeting_link:
            for entry in event.get("conferenceData", {}).get("entryPoints", []):
                if entry.get("entryPointType") == "video":
                    meeting_link = entry.get("uri")
                    break

        integration.last_sync_at = utcnow().replace(tzinfo=None)
        self.db.commit()
        logger.info(f"✅ Google Calendar event created: {event.get('id')}")
        return {"event_id": event.get("id"), "meeting_link": meeting_link}

    async def delete_event(self, expert_id: int, event_id: str) -> bool:
        """Delete an event; False when the expert has no active integration"""
        integration = self._get_integration(expert_id)
        if not integration:
            return False

        calendar_id = integration.calendar_id or "primary"
        response = await self._request(
            integration, "DELETE", f"/calendars/{calendar_id}/events/{event_id}", params={"sendUpdates": "all"}
        )
        # 410: already deleted on the Google side
        if response.status_code not in (200, 204, 410):
            self._record_error(integration, f"Delete event failed: {response.text}")
            raise CalendarSyncError(f"Failed to delete calendar event: HTTP {response.status_code}")

        logger.info(f"✅ Google Calendar event deleted: {event_id}")
        return True

    async def get_busy_times(self, expert_id: int, start: datetime, end: datetime) -> list[tuple[datetime, datetime]]:
        """Busy intervals in [start, end) from the freeBusy API, as aware UTC pairs"""
        integration = self._get_integration(expert_id)
        if not integration:
            return []

        calendar_id = integration.calendar_id or "primary"
        response = await self._request(
            integration,
            "POST",
            "/freeBusy",
            json={
                "timeMin": as_utc(start).isoformat(),
                "timeMax": as_utc(end).isoformat(),
                "items": [{"id": calendar_id}],
            },
        )
        if response.status_code != 200:
            raise CalendarSyncError(f"freeBusy query failed: HTTP {response.status_code}")

        body = self._json(integration, response, "freeBusy query")
        try:
            busy = body.get("calendars", {}).get(calendar_id, {}).get("busy", [])
            return [
                (
                    as_utc(datetime.fromisoformat(b["start"].replace("Z", "+00:00"))),
                    as_utc(datetime.fromisoformat(b["end"].replace("Z", "+00:00"))),
                )
                for b in busy
            ]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise CalendarSyncError(f"Unexpected freeBusy response: {e}") from e
