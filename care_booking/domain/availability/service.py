"""Availability service - Weekly windows and blocked exceptions"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...exceptions import AuthorizationError, NotFoundError, ValidationError
from ...models import BlockedTimeSlot, ExpertAvailability, ExpertProfile, User
from ...shared.sanitization import clean_text
from ...shared.validators import (
    time_to_minutes,
    validate_day_of_week,
    validate_time_of_day,
    validate_timezone_name,
)
from ..scheduling.timezones import to_db
from .repository import AvailabilityRepository
from .schemas import AvailabilityWindowIn, BlockedSlotCreate

logger = logging.getLogger(__name__)

DEFAULT_BLOCK_REASON = "Blocked time"


class AvailabilityService:
    """Service layer for availability business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = AvailabilityRepository()

    def _require_verified_expert(self, user: User) -> ExpertProfile:
        profile = self.repo.get_expert_profile(self.db, user.id)
        if not profile or not profile.is_verified:
            logger.warning(f"⚠️ User {user.id} tried to edit availability without a verified expert profile")
            raise AuthorizationError("Only verified experts can manage availability")
        return profile

    @staticmethod
    def _normalize_window(window: AvailabilityWindowIn, default_timezone: str) -> dict:
        try:
            day = validate_day_of_week(window.dayOfWeek)
            start = validate_time_of_day(window.startTime)
            end = validate_time_of_day(window.endTime)
            tz = validate_timezone_name(window.timezone or default_timezone)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        if time_to_minutes(start) >= time_to_minutes(end):
            raise ValidationError(f"Window start {start} must be before end {end}")

        return {
            "day_of_week": day,
            "start_time": start,
            "end_time": end,
            "timezone": tz,
            "is_active": window.isActive,
            "is_recurring": True,
        }

    def set_weekly_availability(
        self, user: User, windows: list[AvailabilityWindowIn], timezone: Optional[str] = None
    ) -> list[ExpertAvailability]:
        """Replace the expert's weekly schedule; every window is validated before anything is written"""
        profile = self._require_verified_expert(user)
        default_timezone = timezone or profile.timezone or user.timezone or "UTC"

        rows = [self._normalize_window(w, default_timezone) for w in windows]
        saved = self.repo.replace_windows(self.db, user.id, rows)
        logger.info(f"✅ Saved {len(saved)} availability windows for expert {user.id}")
        return saved

    def list_availability(self, expert_id: int) -> list[ExpertAvailability]:
        return self.repo.get_windows(self.db, expert_id)

    def add_blocked_slot(self, user: User, data: BlockedSlotCreate) -> BlockedTimeSlot:
        """Block an absolute range; aware datetimes are converted to UTC, naive ones are read as UTC"""
        self._require_verified_expert(user)

        start = to_db(data.startDateTime)
        end = to_db(data.endDateTime)
        if end <= start:
            raise ValidationError("Blocked slot end must be after start")
        try:
            reason = clean_text(data.reason, max_length=255)
        except ValueError as e:
            raise ValidationError(str(e)) from e

        slot = self.repo.create_blocked_slot(
            self.db,
            user.id,
            start_datetime=start,
            end_datetime=end,
            reason=reason or DEFAULT_BLOCK_REASON,
            is_all_day=data.isAllDay,
            is_recurring=data.isRecurring,
            recurrence_rule=data.recurrenceRule,
        )
        logger.info(f"✅ Blocked {start} - {end} for expert {user.id} (slot {slot.id})")
        return slot

    def remove_blocked_slot(self, user: User, slot_id: int) -> dict:
        """Only the owning expert can remove a blocked slot"""
        slot = self.repo.get_blocked_slot(self.db, slot_id, user.id)
        if not slot:
            raise NotFoundError("Blocked time slot not found")
        self.repo.delete_blocked_slot(self.db, slot)
        logger.info(f"🗑️ Removed blocked slot {slot_id} for expert {user.id}")
        return {"message": "Blocked time slot removed"}

    def list_blocked_slots(self, expert_id: int, range_start: datetime, range_end: datetime) -> list[BlockedTimeSlot]:
        start = to_db(range_start)
        end = to_db(range_end)
        if end <= start:
            raise ValidationError("Range end must be after range start")
        return self.repo.get_blocked_slots_in_range(self.db, expert_id, start, end)
