"""Availability domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_day_of_week, validate_time_of_day, validate_timezone_name


class AvailabilityWindowIn(BaseModel):
    """One weekly window, expressed in the expert's local wall-clock time"""

    dayOfWeek: int
    startTime: str
    endTime: str
    timezone: Optional[str] = None
    isActive: bool = True

    @field_validator("dayOfWeek")
    @classmethod
    def validate_day(cls, v):
        return validate_day_of_week(v)

    @field_validator("startTime", "endTime")
    @classmethod
    def validate_time(cls, v):
        return validate_time_of_day(v)

    @field_validator("timezone")
    @classmethod
    def validate_tz(cls, v):
        if v:
            return validate_timezone_name(v)
        return v


class WeeklyAvailabilityRequest(BaseModel):
    """Replaces the expert's whole weekly schedule"""

    windows: list[AvailabilityWindowIn]
    timezone: Optional[str] = None  # applied to windows without their own

    @field_validator("timezone")
    @classmethod
    def validate_tz(cls, v):
        if v:
            return validate_timezone_name(v)
        return v


class AvailabilityWindowResponse(BaseModel):
    id: int
    dayOfWeek: int
    startTime: str
    endTime: str
    timezone: str
    isActive: bool


class BlockedSlotCreate(BaseModel):
    startDateTime: datetime
    endDateTime: datetime
    reason: Optional[str] = None
    isAllDay: bool = False
    isRecurring: bool = False
    recurrenceRule: Optional[str] = None


class BlockedSlotResponse(BaseModel):
    id: int
    startDateTime: datetime
    endDateTime: datetime
    reason: Optional[str]
    isAllDay: bool
    isRecurring: bool
    recurrenceRule: Optional[str] = None
