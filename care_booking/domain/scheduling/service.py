"""Slot service - Gathers generator inputs from persistence and the calendar collaborator"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...config import (
    DEFAULT_APPOINTMENT_DURATION,
    MAX_APPOINTMENT_DURATION,
    MIN_APPOINTMENT_DURATION,
    SLOT_STRIDE_MINUTES,
)
from ...exceptions import CalendarSyncError, NotFoundError, ValidationError
from ..availability.repository import AvailabilityRepository
from ..booking.repository import BookingRepository
from .slot_generator import Interval, Slot, generate_slots
from .timezones import from_db, get_zone, local_day_bounds, to_db, utcnow

logger = logging.getLogger(__name__)


def validate_duration(duration: int) -> int:
    if not isinstance(duration, int) or not MIN_APPOINTMENT_DURATION <= duration <= MAX_APPOINTMENT_DURATION:
        raise ValidationError(
            f"Duration must be between {MIN_APPOINTMENT_DURATION} and {MAX_APPOINTMENT_DURATION} minutes"
        )
    return duration


class SlotService:
    """Service layer for slot discovery"""

    def __init__(self, db: Session, calendar=None):
        self.db = db
        self.calendar = calendar
        self.availability_repo = AvailabilityRepository()
        self.booking_repo = BookingRepository()

    def get_taken_intervals(
        self, expert_id: int, range_start: datetime, range_end: datetime
    ) -> tuple[list[Interval], list[Interval]]:
        """(appointments, blocked) intervals that may overlap [range_start, range_end)"""
        start, end = to_db(range_start), to_db(range_end)
        appointments = [
            (from_db(a.scheduled_at), from_db(a.scheduled_at) + timedelta(minutes=a.duration))
            for a in self.booking_repo.get_live_appointments_in_range(self.db, expert_id, start, end)
        ]
        blocked = [
            (from_db(b.start_datetime), from_db(b.end_datetime))
            for b in self.availability_repo.get_blocked_slots_in_range(self.db, expert_id, start, end)
        ]
        return appointments, blocked

    async def get_busy_times(self, expert_id: int, range_start: datetime, range_end: datetime) -> list[Interval]:
        """Calendar busy times; any failure degrades to none"""
        if self.calendar is None:
            return []
        try:
            return await self.calendar.get_busy_times(expert_id, range_start, range_end)
        except CalendarSyncError as e:
            logger.warning(f"⚠️ Calendar busy times unavailable for expert {expert_id}: {e.message}")
            return []

    async def get_available_slots(
        self,
        expert_id: int,
        day: date,
        viewer_timezone: str,
        duration: Optional[int] = None,
        stride: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> list[Slot]:
        """Ordered bookable slots for a calendar day in the viewer's timezone"""
        duration = validate_duration(duration if duration is not None else DEFAULT_APPOINTMENT_DURATION)
        stride = stride if stride is not None else SLOT_STRIDE_MINUTES
        if stride <= 0:
            raise ValidationError("Slot stride must be a positive number of minutes")
        try:
            viewer_zone = get_zone(viewer_timezone)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        if not self.availability_repo.get_user_by_id(self.db, expert_id):
            raise NotFoundError("Expert not found")

        windows = self.availability_repo.get_windows(self.db, expert_id, active_only=True)
        if not windows:
            return []

        day_start, day_end = local_day_bounds(day, viewer_zone)
        range_end = day_end + timedelta(minutes=duration)
        appointments, blocked = self.get_taken_intervals(expert_id, day_start, range_end)
        busy = await self.get_busy_times(expert_id, day_start, range_end)

        slots = generate_slots(
            windows,
            blocked=blocked,
            appointments=appointments,
            busy=busy,
            day=day,
            viewer_timezone=viewer_timezone,
            stride_minutes=stride,
            duration_minutes=duration,
            now=now or utcnow(),
        )
        logger.debug(f"📅 {len(slots)} slots for expert {expert_id} on {day} ({viewer_timezone})")
        return slots
