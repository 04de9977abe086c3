"""
Appointment lifecycle.

    pending   -> confirmed, cancelled
    confirmed -> completed, cancelled
    completed, cancelled: terminal

Every status change goes through ``transition``. Processor, calendar and
email calls are awaited with no database transaction open; local status
changes are committed before and independently of those calls.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import (
    AuthorizationError,
    CalendarSyncError,
    InvalidTransitionError,
    NotFoundError,
    PayoutNotConfiguredError,
    ProcessorError,
    SlotConflictError,
    ValidationError,
)
from ...models import Appointment, AppointmentStatus, User
from ...shared.sanitization import clean_text
from ..availability.repository import AvailabilityRepository
from ..payments.fees import FeeSchedule, validate_total
from ..scheduling.service import SlotService, validate_duration
from ..scheduling.slot_generator import first_conflict, fits_availability
from ..scheduling.timezones import as_utc, to_db, utcnow
from .repository import BookingRepository
from .schemas import AppointmentCreate

logger = logging.getLogger(__name__)

TRANSITIONS = {
    AppointmentStatus.PENDING: {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED},
    AppointmentStatus.CONFIRMED: {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED},
    AppointmentStatus.COMPLETED: set(),
    AppointmentStatus.CANCELLED: set(),
}

TIMESTAMP_FIELDS = {
    AppointmentStatus.CONFIRMED: "confirmed_at",
    AppointmentStatus.COMPLETED: "completed_at",
    AppointmentStatus.CANCELLED: "cancelled_at",
}

DEFAULT_CANCEL_REASON = "No reason provided"
PAYMENT_FAILED_REASON = "Payment failed"
DEFAULT_MEETING_LINK = "https://meet.google.com/new"


def can_transition(current: str, target: AppointmentStatus) -> bool:
    return target in TRANSITIONS[AppointmentStatus(current)]


def transition(appointment: Appointment, target: AppointmentStatus, now: Optional[datetime] = None) -> Appointment:
    """Apply a status change in memory; raises InvalidTransitionError when the table forbids it"""
    if not can_transition(appointment.status, target):
        raise InvalidTransitionError(
            f"Cannot move appointment from {appointment.status} to {target.value}",
            appointment_id=appointment.id,
            hold_ref=appointment.payment_hold_ref,
        )
    stamp = to_db(now or utcnow())
    appointment.status = target.value
    setattr(appointment, TIMESTAMP_FIELDS[target], stamp)
    appointment.updated_at = stamp
    return appointment


class BookingStateMachine:
    """Creates appointments and drives them through their lifecycle"""

    def __init__(self, db: Session, processor, calendar=None, notifier=None, fee_schedule: FeeSchedule = None):
        self.db = db
        self.processor = processor
        self.calendar = calendar
        self.notifier = notifier
        self.fees = fee_schedule or FeeSchedule()
        self.repo = BookingRepository()
        self.availability_repo = AvailabilityRepository()
        self.slots = SlotService(db)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------

    def _release_transaction(self) -> None:
        """End the session's implicit transaction before awaiting an external call"""
        self.db.commit()

    def _get(self, appointment_id: int) -> Appointment:
        appointment = self.repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        return appointment

    @staticmethod
    def _is_participant(appointment: Appointment, principal: Optional[User]) -> bool:
        return principal is not None and principal.id in (appointment.expert_id, appointment.client_id)

    def _get_for_participant(self, appointment_id: int, principal: Optional[User]) -> Appointment:
        appointment = self._get(appointment_id)
        if not self._is_participant(appointment, principal):
            raise AuthorizationError(
                "Only the expert or the client can act on this appointment", appointment_id=appointment_id
            )
        return appointment

    def _check_overlaps(self, expert_id: int, start: datetime, duration: int) -> None:
        end = start + timedelta(minutes=duration)
        appointments, blocked = self.slots.get_taken_intervals(expert_id, start, end)
        if first_conflict(start, duration, appointments):
            raise SlotConflictError("This time slot is already booked")
        if first_conflict(start, duration, blocked):
            raise SlotConflictError("This time slot is blocked by the expert")

    async def _refund(self, appointment: Appointment, reason: str) -> bool:
        """One full refund of the appointment's hold; a failure is logged, never raised"""
        appointment_id = appointment.id
        hold_ref = appointment.payment_hold_ref
        self._release_transaction()
        try:
            record = await self.processor.refund(hold_ref, None, reason)
        except ProcessorError as e:
            logger.error(f"❌ Refund failed for appointment {appointment_id} (hold {hold_ref}): {e.message}")
            return False

        appointment.refund_ref = record.reference
        self.repo.save(self.db, appointment)
        logger.info(f"💸 Refund {record.reference} ({record.status}) for appointment {appointment_id}")
        self._release_transaction()
        return True

    async def _notify(self, method: str, *args, **kwargs) -> None:
        if self.notifier is None:
            return
        try:
            await getattr(self.notifier, method)(*args, **kwargs)
        except Exception as e:
            logger.error(f"❌ Notification {method} failed: {e}")

    # ------------------------------------------------------------------
    # create
    # ------------------------------------------------------------------

    async def create(
        self, request: AppointmentCreate, principal: Optional[User] = None, now: Optional[datetime] = None
    ) -> tuple[Appointment, str]:
        """
        Validate, split, hold payment, then reserve the slot.

        Returns:
            (pending appointment, processor client token)

        Raises:
            NotFoundError, ValidationError, PayoutNotConfiguredError,
            SlotConflictError, ProcessorError
        """
        now = as_utc(now or utcnow())
        expert_id = request.expertId

        expert = self.availability_repo.get_user_by_id(self.db, expert_id)
        if not expert:
            raise NotFoundError("Expert not found")
        profile = self.availability_repo.get_expert_profile(self.db, expert_id)
        if not profile or not profile.is_verified or not profile.allow_booking:
            raise ValidationError("This expert is not accepting bookings")
        if principal is not None and principal.id == expert_id:
            raise ValidationError("Experts cannot book their own time")
        destination = profile.payout_account_id
        if not destination:
            raise PayoutNotConfiguredError("Expert has not set up payouts yet")

        scheduled_at = as_utc(request.scheduledAt).replace(second=0, microsecond=0)
        if scheduled_at != as_utc(request.scheduledAt):
            raise ValidationError("scheduledAt must fall on a whole minute")
        if scheduled_at <= now:
            raise ValidationError("Appointments must be scheduled in the future")
        duration = validate_duration(request.duration)
        total = validate_total(request.totalAmount, duration)
        try:
            notes = clean_text(request.notes)
        except ValueError as e:
            raise ValidationError(str(e)) from e
        fee_split = self.fees.split_for(total, request.bookingPath)
        display_timezone = request.scheduledAtTimezone or profile.timezone or "UTC"

        windows = self.availability_repo.get_windows(self.db, expert_id, active_only=True)
        if not fits_availability(windows, scheduled_at, duration):
            raise SlotConflictError("The selected time is outside the expert's availability")
        self._check_overlaps(expert_id, scheduled_at, duration)

        client_id = principal.id if principal is not None else None
        self._release_transaction()

        status = await self.processor.get_destination_status(destination)
        if not status.charges_enabled:
            raise PayoutNotConfiguredError("Expert payout account cannot accept charges yet")

        hold = await self.processor.create_hold(
            fee_split.total_amount,
            destination,
            fee_split.platform_fee,
            {
                "expert_id": expert_id,
                "client_email": request.clientEmail,
                "scheduled_at": scheduled_at.isoformat(),
                "booking_path": request.bookingPath,
            },
        )

        try:
            self._check_overlaps(expert_id, scheduled_at, duration)
            appointment = self.repo.insert_appointment(
                self.db,
                expert_id=expert_id,
                client_id=client_id,
                client_name=request.clientName,
                client_email=request.clientEmail,
                scheduled_at=to_db(scheduled_at),
                scheduled_at_timezone=display_timezone,
                duration=duration,
                notes=notes,
                status=AppointmentStatus.PENDING.value,
                booking_path=request.bookingPath,
                total_amount=fee_split.total_amount,
                platform_fee=fee_split.platform_fee,
                expert_earnings=fee_split.expert_earnings,
                payment_hold_ref=hold.reference,
                payout_destination_ref=destination,
                created_at=to_db(now),
                updated_at=to_db(now),
            )
        except SlotConflictError as e:
            logger.error(f"❌ Slot taken during payment hold; orphaned hold {hold.reference} needs reconciliation")
            raise SlotConflictError(e.message, hold_ref=hold.reference) from e
        except IntegrityError as e:
            self.db.rollback()
            logger.error(
                f"❌ Slot reservation lost for expert {expert_id} at {scheduled_at.isoformat()}; "
                f"orphaned hold {hold.reference} needs reconciliation"
            )
            raise SlotConflictError("This time slot is already booked", hold_ref=hold.reference) from e

        logger.info(
            f"✅ Appointment {appointment.id} reserved (pending): expert {expert_id} at {scheduled_at.isoformat()}, "
            f"hold {hold.reference}, fee {fee_split.platform_fee}/{fee_split.total_amount}"
        )
        return appointment, hold.client_token

    # ------------------------------------------------------------------
    # confirm
    # ------------------------------------------------------------------

    async def confirm(self, appointment_id: int, principal: Optional[User]) -> Appointment:
        """Explicit confirmation by a participant"""
        appointment = self._get_for_participant(appointment_id, principal)
        return await self._confirm(appointment)

    async def confirm_by_hold_ref(self, hold_ref: str) -> Appointment:
        """Confirmation driven by the processor's payment-succeeded event"""
        appointment = self.repo.get_by_hold_ref(self.db, hold_ref)
        if not appointment:
            raise NotFoundError("No appointment for payment reference", hold_ref=hold_ref)
        return await self._confirm(appointment)

    async def _confirm(self, appointment: Appointment) -> Appointment:
        if appointment.status == AppointmentStatus.CONFIRMED.value:
            logger.info(f"ℹ️ Appointment {appointment.id} already confirmed")
            return appointment

        transition(appointment, AppointmentStatus.CONFIRMED)
        appointment = self.repo.save(self.db, appointment)
        appointment_id = appointment.id
        expert_id = appointment.expert_id
        hold_ref = appointment.payment_hold_ref
        logger.info(f"✅ Appointment {appointment_id} confirmed (hold {hold_ref})")

        event = None
        if self.calendar is not None:
            self._release_transaction()
            try:
                event = await self.calendar.create_event(expert_id, appointment)
            except CalendarSyncError as e:
                logger.warning(
                    f"⚠️ Calendar event not created for appointment {appointment_id} (hold {hold_ref}): {e.message}"
                )

        if event:
            appointment.calendar_event_id = event.get("event_id")
            appointment.meeting_link = event.get("meeting_link") or DEFAULT_MEETING_LINK
        else:
            appointment.meeting_link = DEFAULT_MEETING_LINK
        appointment = self.repo.save(self.db, appointment)

        expert = self.availability_repo.get_user_by_id(self.db, expert_id)
        self._release_transaction()
        await self._notify("send_booking_confirmed", appointment, expert)
        return appointment

    # ------------------------------------------------------------------
    # cancel / complete / payment failure
    # ------------------------------------------------------------------

    async def cancel(self, appointment_id: int, principal: Optional[User], reason: Optional[str] = None) -> Appointment:
        """
        Cancel a pending or confirmed appointment.

        A confirmed appointment with a hold reference gets exactly one full
        refund attempt after the cancellation is committed. A failed refund
        is logged and does not undo the cancellation.
        """
        appointment = self._get_for_participant(appointment_id, principal)
        was_confirmed = appointment.status == AppointmentStatus.CONFIRMED.value
        try:
            cancel_reason = clean_text(reason, max_length=500) or DEFAULT_CANCEL_REASON
        except ValueError as e:
            raise ValidationError(str(e), appointment_id=appointment_id) from e

        transition(appointment, AppointmentStatus.CANCELLED)
        appointment.cancel_reason = cancel_reason
        appointment = self.repo.save(self.db, appointment)

        expert_id = appointment.expert_id
        hold_ref = appointment.payment_hold_ref
        event_id = appointment.calendar_event_id
        logger.info(f"✅ Appointment {appointment_id} cancelled by user {principal.id}: {cancel_reason}")
        self._release_transaction()

        refunded = False
        if was_confirmed and hold_ref:
            refunded = await self._refund(appointment, cancel_reason)

        if event_id and self.calendar is not None:
            try:
                await self.calendar.delete_event(expert_id, event_id)
            except CalendarSyncError as e:
                logger.warning(f"⚠️ Calendar event {event_id} not deleted for appointment {appointment_id}: {e.message}")

        expert = self.availability_repo.get_user_by_id(self.db, expert_id)
        self._release_transaction()
        await self._notify("send_booking_cancelled", appointment, expert, refunded=refunded)
        return appointment

    def complete(self, appointment_id: int, principal: Optional[User]) -> Appointment:
        """Expert marks a confirmed appointment as held; enables reviews"""
        appointment = self._get_for_participant(appointment_id, principal)
        if principal.id != appointment.expert_id:
            raise AuthorizationError("Only the expert can complete an appointment", appointment_id=appointment_id)
        transition(appointment, AppointmentStatus.COMPLETED)
        appointment = self.repo.save(self.db, appointment)
        logger.info(f"✅ Appointment {appointment_id} completed")
        return appointment

    async def refund_late_capture(self, hold_ref: str) -> Optional[Appointment]:
        """
        Payment settled for an appointment that was already cancelled.

        The captured amount is refunded in full unless a refund is already
        recorded for the appointment. Appointments in any other status are
        left untouched.
        """
        appointment = self.repo.get_by_hold_ref(self.db, hold_ref)
        if not appointment:
            logger.warning(f"⚠️ Late capture for unknown hold {hold_ref}")
            return None
        if appointment.status != AppointmentStatus.CANCELLED.value or appointment.refund_ref:
            logger.info(
                f"ℹ️ No late-capture refund for appointment {appointment.id} "
                f"(status {appointment.status}, refund {appointment.refund_ref})"
            )
            return appointment

        logger.warning(f"⚠️ Payment captured on cancelled appointment {appointment.id} (hold {hold_ref}); refunding")
        await self._refund(appointment, appointment.cancel_reason or DEFAULT_CANCEL_REASON)
        return appointment

    def fail_hold(self, hold_ref: str) -> Optional[Appointment]:
        """Processor reported the payment failed: a pending appointment is cancelled, nothing is refunded"""
        appointment = self.repo.get_by_hold_ref(self.db, hold_ref)
        if not appointment:
            logger.warning(f"⚠️ Payment failure for unknown hold {hold_ref}")
            return None
        if appointment.status != AppointmentStatus.PENDING.value:
            logger.info(f"ℹ️ Ignoring payment failure for appointment {appointment.id} in status {appointment.status}")
            return appointment

        transition(appointment, AppointmentStatus.CANCELLED)
        appointment.cancel_reason = PAYMENT_FAILED_REASON
        appointment = self.repo.save(self.db, appointment)
        logger.info(f"✅ Appointment {appointment.id} cancelled after failed payment (hold {hold_ref})")
        return appointment

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------

    def get(self, appointment_id: int, principal: Optional[User]) -> Appointment:
        return self._get_for_participant(appointment_id, principal)

    def list_for_user(self, principal: User, role: str = "client", status: Optional[str] = None) -> list[Appointment]:
        if role == "expert":
            return self.repo.list_for_expert(self.db, principal.id, status)
        if role == "client":
            return self.repo.list_for_client(self.db, principal.id, status)
        raise ValidationError("role must be 'expert' or 'client'")


