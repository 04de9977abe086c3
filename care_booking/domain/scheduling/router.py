"""Scheduling router - Slot discovery and timezone list"""

import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...database import get_db
from ...dependencies import get_calendar
from .service import SlotService
from .timezones import get_common_timezones

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Scheduling"])


class SlotResponse(BaseModel):
    time: str
    utcTime: str
    displayTime: str


class SlotsResponse(BaseModel):
    slots: list[SlotResponse]
    timezone: str


def get_slot_service(db: Session = Depends(get_db), calendar=Depends(get_calendar)) -> SlotService:
    """Dependency injection for SlotService"""
    return SlotService(db, calendar)


@router.get("/experts/{expert_id}/slots", response_model=SlotsResponse)
async def get_available_slots(
    expert_id: int,
    day: date = Query(..., alias="date", description="Calendar date in the viewer's timezone (YYYY-MM-DD)"),
    timezone: str = Query("UTC", description="Viewer IANA timezone"),
    duration: Optional[int] = Query(None),
    stride: Optional[int] = Query(None),
    service: SlotService = Depends(get_slot_service),
):
    """Public: bookable start times for an expert on a given day"""
    slots = await service.get_available_slots(expert_id, day, timezone, duration=duration, stride=stride)
    return SlotsResponse(
        slots=[
            SlotResponse(
                time=s.local_time,
                utcTime=s.utc_instant.isoformat().replace("+00:00", "Z"),
                displayTime=s.display_time,
            )
            for s in slots
        ],
        timezone=timezone,
    )


@router.get("/timezones")
async def list_timezones():
    """Curated timezones for pickers"""
    return {"timezones": get_common_timezones()}
