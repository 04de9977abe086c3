"""
Booking Notification Service
Confirmation and cancellation emails via Resend. Delivery is best-effort:
failures are logged and never propagate into the booking flow.
"""

import asyncio
import html
import logging
from typing import Optional, Union

import resend

from ..config import EMAIL_FROM_ADDRESS, FRONTEND_URL, RESEND_API_KEY
from ..domain.scheduling.timezones import from_db, get_zone
from ..models import Appointment, User

logger = logging.getLogger(__name__)

resend.api_key = RESEND_API_KEY


def _format_when(appointment: Appointment) -> str:
    """Appointment start in its booking timezone, e.g. 'Monday, March 4, 2024 at 9:00 AM (America/New_York)'"""
    tz_name = appointment.scheduled_at_timezone or "UTC"
    local = from_db(appointment.scheduled_at).astimezone(get_zone(tz_name))
    hour = local.hour % 12 or 12
    suffix = "AM" if local.hour < 12 else "PM"
    return f"{local.strftime('%A, %B')} {local.day}, {local.year} at {hour}:{local.minute:02d} {suffix} ({tz_name})"


def _layout(title: str, body_lines: list[str]) -> str:
    paragraphs = "".join(f"<p style=\"margin:0 0 12px\">{line}</p>" for line in body_lines)
    return (
        "<div style=\"font-family:Arial,sans-serif;max-width:560px;margin:0 auto;color:#0f172a\">"
        f"<h2 style=\"color:#14b8a6\">{html.escape(title)}</h2>{paragraphs}"
        f"<p style=\"color:#64748b;font-size:12px\"><a href=\"{FRONTEND_URL}/appointments\">Manage your appointments</a></p>"
        "</div>"
    )


def booking_confirmed_template(appointment: Appointment, expert_name: str) -> str:
    lines = [
        f"Hi {html.escape(appointment.client_name)},",
        f"Your {appointment.duration}-minute appointment with {html.escape(expert_name)} is confirmed.",
        f"<strong>When:</strong> {_format_when(appointment)}",
    ]
    if appointment.meeting_link:
        lines.append(f"<strong>Join:</strong> <a href=\"{appointment.meeting_link}\">{appointment.meeting_link}</a>")
    return _layout("Appointment confirmed", lines)


def booking_cancelled_template(appointment: Appointment, recipient_name: str, refunded: bool) -> str:
    lines = [
        f"Hi {html.escape(recipient_name)},",
        f"The appointment on {_format_when(appointment)} has been cancelled.",
        f"<strong>Reason:</strong> {html.escape(appointment.cancel_reason or 'No reason provided')}",
    ]
    if refunded:
        lines.append("A full refund has been issued to the original payment method.")
    return _layout("Appointment cancelled", lines)


class EmailNotifier:
    """Notification collaborator backed by the Resend API"""

    def __init__(self, from_address: Optional[str] = None):
        self.from_address = from_address or EMAIL_FROM_ADDRESS

    async def send_email(self, to: Union[str, list[str]], subject: str, html_content: str) -> bool:
        if not RESEND_API_KEY:
            logger.warning(f"⚠️ RESEND_API_KEY not set, skipping email '{subject}'")
            return False

        recipients = [to] if isinstance(to, str) else to
        email_data = {
            "from": self.from_address,
            "to": recipients,
            "subject": subject,
            "html": html_content,
        }
        try:
            # resend's client is synchronous
            response = await asyncio.to_thread(resend.Emails.send, email_data)
        except Exception as e:
            logger.error(f"❌ Email send error to {recipients}: {e}")
            return False
        logger.info(f"✅ Email sent successfully via Resend: {response}")
        return True

    async def send_booking_confirmed(self, appointment: Appointment, expert: User) -> bool:
        expert_name = expert.full_name or "your expert"
        client_sent = await self.send_email(
            appointment.client_email,
            "Your appointment is confirmed",
            booking_confirmed_template(appointment, expert_name),
        )
        await self.send_email(
            expert.email,
            f"New confirmed appointment with {appointment.client_name}",
            _layout(
                "New appointment",
                [
                    f"{html.escape(appointment.client_name)} booked {appointment.duration} minutes with you.",
                    f"<strong>When:</strong> {_format_when(appointment)}",
                ],
            ),
        )
        return client_sent

    async def send_booking_cancelled(self, appointment: Appointment, expert: User, refunded: bool = False) -> bool:
        client_sent = await self.send_email(
            appointment.client_email,
            "Your appointment was cancelled",
            booking_cancelled_template(appointment, appointment.client_name, refunded),
        )
        await self.send_email(
            expert.email,
            "Appointment cancelled",
            booking_cancelled_template(appointment, expert.full_name or "there", refunded),
        )
        return client_sent
