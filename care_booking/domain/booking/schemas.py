"""Booking domain schemas - Pydantic models for validation"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from ...config import DEFAULT_APPOINTMENT_DURATION
from ...models import BookingPath
from ...shared.validators import validate_email, validate_timezone_name


class AppointmentCreate(BaseModel):
    """Schema for booking a slot"""

    expertId: int
    clientName: str
    clientEmail: str
    scheduledAt: datetime  # naive values are read as UTC
    scheduledAtTimezone: Optional[str] = None
    duration: int = DEFAULT_APPOINTMENT_DURATION
    notes: Optional[str] = None
    totalAmount: int  # cents
    bookingPath: str = BookingPath.APPOINTMENT.value

    @field_validator("clientName")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("clientName is required")
        return v.strip()

    @field_validator("clientEmail")
    @classmethod
    def validate_client_email(cls, v):
        if not v:
            raise ValueError("clientEmail is required")
        return validate_email(v)

    @field_validator("scheduledAtTimezone")
    @classmethod
    def validate_tz(cls, v):
        if v:
            return validate_timezone_name(v)
        return v


class CancelRequest(BaseModel):
    reason: Optional[str] = None


class AppointmentResponse(BaseModel):
    id: int
    expertId: int
    clientId: Optional[int] = None
    clientName: str
    clientEmail: str
    scheduledAt: datetime
    scheduledAtTimezone: str
    duration: int
    status: str
    bookingPath: str
    totalAmount: int
    platformFee: int
    expertEarnings: int
    notes: Optional[str] = None
    meetingLink: Optional[str] = None
    calendarEventId: Optional[str] = None
    confirmedAt: Optional[datetime] = None
    completedAt: Optional[datetime] = None
    cancelledAt: Optional[datetime] = None
    cancelReason: Optional[str] = None
    refundRef: Optional[str] = None
    createdAt: Optional[datetime] = None


class BookingCreatedResponse(BaseModel):
    clientSecret: str
    appointmentId: int
    platformFee: int


class AppointmentEnvelope(BaseModel):
    appointment: AppointmentResponse


class ConfirmResponse(BaseModel):
    appointment: AppointmentResponse
    meetingLink: Optional[str] = None
    calendarEventId: Optional[str] = None
