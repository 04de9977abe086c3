import enum

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .config import DEFAULT_HOURLY_RATE
from .database import Base


class AppointmentStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingPath(str, enum.Enum):
    """Booking flows that carry their own platform fee rate"""

    APPOINTMENT = "appointment"
    CONSULTATION = "consultation"


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=True)
    role = Column(String(20), default="client", nullable=False)  # client, expert, admin
    timezone = Column(String(64), default="UTC", nullable=False)  # IANA identifier
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    expert_profile = relationship("ExpertProfile", back_populates="user", uselist=False)


class ExpertProfile(Base):
    __tablename__ = "expert_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    verification_status = Column(
        String(20), default="pending", nullable=False, index=True
    )  # pending, verified, rejected
    allow_booking = Column(Boolean, default=False, nullable=False)  # Booking enabled after verification
    hourly_rate = Column(Integer, default=DEFAULT_HOURLY_RATE, nullable=False)  # cents
    # Processor destination account (Stripe Connect account id)
    payout_account_id = Column(String(255), nullable=True)
    timezone = Column(String(64), default="UTC", nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="expert_profile")

    @property
    def is_verified(self) -> bool:
        return self.verification_status == "verified"


class ExpertAvailability(Base):
    __tablename__ = "expert_availability"

    id = Column(Integer, primary_key=True, index=True)
    expert_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    day_of_week = Column(Integer, nullable=False)  # 0=Sunday, 1=Monday, ... in the window's timezone
    start_time = Column(String(5), nullable=False)  # HH:MM local
    end_time = Column(String(5), nullable=False)  # HH:MM local
    timezone = Column(String(64), default="UTC", nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    is_recurring = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class BlockedTimeSlot(Base):
    __tablename__ = "blocked_time_slots"

    id = Column(Integer, primary_key=True, index=True)
    expert_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    start_datetime = Column(DateTime, nullable=False)  # UTC
    end_datetime = Column(DateTime, nullable=False)  # UTC
    reason = Column(String(255), nullable=True)  # vacation, break, meeting
    is_all_day = Column(Boolean, default=False, nullable=False)
    is_recurring = Column(Boolean, default=False, nullable=False)
    recurrence_rule = Column(Text, nullable=True)  # RRULE, stored as given
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())


class Appointment(Base):
    __tablename__ = "appointments"
    __table_args__ = (
        # Slot reservation: one live appointment per expert per start instant.
        # Cancelled rows release the slot.
        Index(
            "uq_appointments_expert_slot",
            "expert_id",
            "scheduled_at",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    expert_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)  # null for guests
    client_name = Column(String(255), nullable=False)
    client_email = Column(String(255), nullable=False)
    scheduled_at = Column(DateTime, nullable=False)  # UTC
    scheduled_at_timezone = Column(String(64), default="UTC", nullable=False)  # display zone
    duration = Column(Integer, nullable=False)  # minutes
    notes = Column(Text, nullable=True)
    status = Column(String(20), default=AppointmentStatus.PENDING.value, nullable=False, index=True)
    booking_path = Column(String(20), default=BookingPath.APPOINTMENT.value, nullable=False)
    # Money in cents
    total_amount = Column(Integer, nullable=False)
    platform_fee = Column(Integer, nullable=False)
    expert_earnings = Column(Integer, nullable=False)
    payment_hold_ref = Column(String(255), nullable=False, index=True)
    payout_destination_ref = Column(String(255), nullable=True)
    refund_ref = Column(String(255), nullable=True)
    # Calendar
    meeting_link = Column(String(500), nullable=True)
    calendar_event_id = Column(String(255), nullable=True)
    # Lifecycle
    confirmed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)
    cancel_reason = Column(Text, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())

    expert = relationship("User", foreign_keys=[expert_id])
    client = relationship("User", foreign_keys=[client_id])
    reviews = relationship("AppointmentReview", back_populates="appointment")


class AppointmentReview(Base):
    __tablename__ = "appointment_reviews"
    __table_args__ = (
        UniqueConstraint("appointment_id", "reviewer_id", name="uq_review_appointment_reviewer"),
    )

    id = Column(Integer, primary_key=True, index=True)
    appointment_id = Column(Integer, ForeignKey("appointments.id"), nullable=False, index=True)
    reviewer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    reviewee_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    rating = Column(Integer, nullable=False)  # 1-5 stars
    review_text = Column(Text, nullable=True)
    is_public = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)  # admin verified review
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    appointment = relationship("Appointment", back_populates="reviews")
