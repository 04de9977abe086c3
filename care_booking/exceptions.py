"""
Booking engine error taxonomy.

Every error carries the HTTP status it maps to; main.py renders them as
{"detail": message} through a single exception handler.
"""

from typing import Optional


class BookingError(Exception):
    """Base class for all domain errors raised by the booking engine"""

    status_code = 500

    def __init__(self, message: str, *, appointment_id: Optional[int] = None, hold_ref: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.appointment_id = appointment_id
        self.hold_ref = hold_ref


class ValidationError(BookingError):
    """Malformed input, rate outside bounds, missing booking fields"""

    status_code = 400


class PayoutNotConfiguredError(BookingError):
    """Expert has no usable payout destination with the processor"""

    status_code = 400


class AuthorizationError(BookingError):
    """Caller is not allowed to act on this resource"""

    status_code = 403


class NotFoundError(BookingError):
    status_code = 404


class SlotConflictError(BookingError):
    """Slot was taken between read and commit"""

    status_code = 409


class InvalidTransitionError(BookingError):
    """Requested status change is not in the transition table"""

    status_code = 409


class DuplicateReviewError(BookingError):
    status_code = 409


class ProcessorError(BookingError):
    """Payment processor call failed (hold, refund, destination lookup)"""

    status_code = 502


class CalendarSyncError(BookingError):
    """Calendar provider call failed. Never surfaced to clients."""

    status_code = 502
