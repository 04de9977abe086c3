"""Booking router - FastAPI endpoints for the appointment lifecycle"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user, get_optional_user
from ...database import get_db
from ...dependencies import get_calendar, get_notifier, get_processor
from ...models import Appointment, User
from ..scheduling.timezones import from_db
from .schemas import (
    AppointmentCreate,
    AppointmentEnvelope,
    AppointmentResponse,
    BookingCreatedResponse,
    CancelRequest,
    ConfirmResponse,
)
from .state_machine import BookingStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/appointments", tags=["Appointments"])


def get_booking_service(
    db: Session = Depends(get_db),
    processor=Depends(get_processor),
    calendar=Depends(get_calendar),
    notifier=Depends(get_notifier),
) -> BookingStateMachine:
    """Dependency injection for BookingStateMachine"""
    return BookingStateMachine(db, processor, calendar=calendar, notifier=notifier)


def appointment_response(a: Appointment) -> AppointmentResponse:
    return AppointmentResponse(
        id=a.id,
        expertId=a.expert_id,
        clientId=a.client_id,
        clientName=a.client_name,
        clientEmail=a.client_email,
        scheduledAt=from_db(a.scheduled_at),
        scheduledAtTimezone=a.scheduled_at_timezone,
        duration=a.duration,
        status=a.status,
        bookingPath=a.booking_path,
        totalAmount=a.total_amount,
        platformFee=a.platform_fee,
        expertEarnings=a.expert_earnings,
        notes=a.notes,
        meetingLink=a.meeting_link,
        calendarEventId=a.calendar_event_id,
        confirmedAt=from_db(a.confirmed_at),
        completedAt=from_db(a.completed_at),
        cancelledAt=from_db(a.cancelled_at),
        cancelReason=a.cancel_reason,
        refundRef=a.refund_ref,
        createdAt=from_db(a.created_at),
    )


@router.post("", response_model=BookingCreatedResponse)
async def create_appointment(
    data: AppointmentCreate,
    current_user: Optional[User] = Depends(get_optional_user),
    service: BookingStateMachine = Depends(get_booking_service),
):
    """Book a slot; anonymous guests may book with name and email"""
    appointment, client_secret = await service.create(data, current_user)
    return BookingCreatedResponse(
        clientSecret=client_secret,
        appointmentId=appointment.id,
        platformFee=appointment.platform_fee,
    )


@router.get("", response_model=list[AppointmentResponse])
async def list_appointments(
    role: str = Query("client", pattern="^(expert|client)$"),
    status: Optional[str] = Query(None),
    current_user: User = Depends(get_current_user),
    service: BookingStateMachine = Depends(get_booking_service),
):
    """Appointments where the current user is the expert or the client"""
    return [appointment_response(a) for a in service.list_for_user(current_user, role, status)]


@router.get("/{appointment_id}", response_model=AppointmentResponse)
async def get_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingStateMachine = Depends(get_booking_service),
):
    return appointment_response(service.get(appointment_id, current_user))


@router.post("/{appointment_id}/confirm", response_model=ConfirmResponse)
async def confirm_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingStateMachine = Depends(get_booking_service),
):
    appointment = await service.confirm(appointment_id, current_user)
    return ConfirmResponse(
        appointment=appointment_response(appointment),
        meetingLink=appointment.meeting_link,
        calendarEventId=appointment.calendar_event_id,
    )


@router.post("/{appointment_id}/cancel", response_model=AppointmentEnvelope)
async def cancel_appointment(
    appointment_id: int,
    data: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: BookingStateMachine = Depends(get_booking_service),
):
    reason = data.reason if data else None
    appointment = await service.cancel(appointment_id, current_user, reason)
    return AppointmentEnvelope(appointment=appointment_response(appointment))


@router.post("/{appointment_id}/complete", response_model=AppointmentEnvelope)
async def complete_appointment(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: BookingStateMachine = Depends(get_booking_service),
):
    appointment = service.complete(appointment_id, current_user)
    return AppointmentEnvelope(appointment=appointment_response(appointment))
