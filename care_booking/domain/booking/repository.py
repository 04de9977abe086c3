"""Booking repository - Database operations for appointments"""

from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...config import MAX_APPOINTMENT_DURATION
from ...models import Appointment, AppointmentStatus


class BookingRepository:
    """Repository for appointment database operations"""

    @staticmethod
    def get_appointment(db: Session, appointment_id: int) -> Optional[Appointment]:
        return db.query(Appointment).filter(Appointment.id == appointment_id).first()

    @staticmethod
    def get_by_hold_ref(db: Session, hold_ref: str) -> Optional[Appointment]:
        """Get the appointment holding a processor payment reference"""
        return db.query(Appointment).filter(Appointment.payment_hold_ref == hold_ref).first()

    @staticmethod
    def get_live_appointments_in_range(
        db: Session, expert_id: int, range_start: datetime, range_end: datetime
    ) -> list[Appointment]:
        """
        Non-cancelled appointments that may overlap [range_start, range_end).

        Bounds are naive UTC. Rows starting up to the longest allowed duration
        before range_start are included; callers apply the exact overlap test.
        """
        earliest = range_start - timedelta(minutes=MAX_APPOINTMENT_DURATION)
        return (
            db.query(Appointment)
            .filter(
                Appointment.expert_id == expert_id,
                Appointment.status != AppointmentStatus.CANCELLED.value,
                Appointment.scheduled_at >= earliest,
                Appointment.scheduled_at < range_end,
            )
            .order_by(Appointment.scheduled_at)
            .all()
        )

    @staticmethod
    def insert_appointment(db: Session, **appointment_data) -> Appointment:
        """
        Insert and commit a new appointment.

        The partial unique index on (expert_id, scheduled_at) raises
        IntegrityError here when a live appointment already holds the slot.
        """
        appointment = Appointment(**appointment_data)
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def save(db: Session, appointment: Appointment) -> Appointment:
        db.commit()
        db.refresh(appointment)
        return appointment

    @staticmethod
    def list_for_expert(db: Session, expert_id: int, status: Optional[str] = None) -> list[Appointment]:
        query = db.query(Appointment).filter(Appointment.expert_id == expert_id)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.scheduled_at.desc()).all()

    @staticmethod
    def list_for_client(db: Session, client_id: int, status: Optional[str] = None) -> list[Appointment]:
        query = db.query(Appointment).filter(Appointment.client_id == client_id)
        if status:
            query = query.filter(Appointment.status == status)
        return query.order_by(Appointment.scheduled_at.desc()).all()

    @staticmethod
    def sum_expert_earnings(db: Session, expert_id: int, status: str) -> int:
        """Sum of expert_earnings (cents) over the expert's appointments in a status"""
        total = (
            db.query(func.coalesce(func.sum(Appointment.expert_earnings), 0))
            .filter(Appointment.expert_id == expert_id, Appointment.status == status)
            .scalar()
        )
        return int(total or 0)

    @staticmethod
    def count_refunded(db: Session, expert_id: int) -> int:
        return (
            db.query(Appointment)
            .filter(Appointment.expert_id == expert_id, Appointment.refund_ref.isnot(None))
            .count()
        )
