"""Availability router - FastAPI endpoints for weekly windows and blocked slots"""

import logging
from datetime import datetime

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import BlockedTimeSlot, ExpertAvailability, User
from ..scheduling.timezones import from_db
from .schemas import (
    AvailabilityWindowResponse,
    BlockedSlotCreate,
    BlockedSlotResponse,
    WeeklyAvailabilityRequest,
)
from .service import AvailabilityService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/experts", tags=["Availability"])


def get_availability_service(db: Session = Depends(get_db)) -> AvailabilityService:
    """Dependency injection for AvailabilityService"""
    return AvailabilityService(db)


def _window_response(w: ExpertAvailability) -> AvailabilityWindowResponse:
    return AvailabilityWindowResponse(
        id=w.id,
        dayOfWeek=w.day_of_week,
        startTime=w.start_time,
        endTime=w.end_time,
        timezone=w.timezone,
        isActive=w.is_active,
    )


def _blocked_response(s: BlockedTimeSlot) -> BlockedSlotResponse:
    return BlockedSlotResponse(
        id=s.id,
        startDateTime=from_db(s.start_datetime),
        endDateTime=from_db(s.end_datetime),
        reason=s.reason,
        isAllDay=s.is_all_day,
        isRecurring=s.is_recurring,
        recurrenceRule=s.recurrence_rule,
    )


# ============================================================================
# WEEKLY AVAILABILITY
# ============================================================================


@router.put("/me/availability", response_model=list[AvailabilityWindowResponse])
async def set_weekly_availability(
    data: WeeklyAvailabilityRequest,
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Replace the current expert's weekly availability"""
    windows = service.set_weekly_availability(current_user, data.windows, data.timezone)
    return [_window_response(w) for w in windows]


@router.get("/{expert_id}/availability", response_model=list[AvailabilityWindowResponse])
async def get_availability(
    expert_id: int,
    service: AvailabilityService = Depends(get_availability_service),
):
    """Public: an expert's weekly windows"""
    return [_window_response(w) for w in service.list_availability(expert_id)]


# ============================================================================
# BLOCKED TIME SLOTS
# ============================================================================


@router.post("/me/blocked-slots", response_model=BlockedSlotResponse)
async def add_blocked_slot(
    data: BlockedSlotCreate,
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
):
    return _blocked_response(service.add_blocked_slot(current_user, data))


@router.get("/me/blocked-slots", response_model=list[BlockedSlotResponse])
async def list_blocked_slots(
    start: datetime = Query(...),
    end: datetime = Query(...),
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
):
    """Blocked slots overlapping [start, end)"""
    return [_blocked_response(s) for s in service.list_blocked_slots(current_user.id, start, end)]


@router.delete("/me/blocked-slots/{slot_id}")
async def remove_blocked_slot(
    slot_id: int,
    current_user: User = Depends(get_current_user),
    service: AvailabilityService = Depends(get_availability_service),
):
    return service.remove_blocked_slot(current_user, slot_id)
