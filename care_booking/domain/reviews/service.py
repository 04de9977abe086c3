"""Review service - Post-appointment reviews and expert ratings"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ...exceptions import AuthorizationError, DuplicateReviewError, NotFoundError, ValidationError
from ...models import AppointmentReview, AppointmentStatus, User
from ...shared.sanitization import clean_text
from ..booking.repository import BookingRepository
from .repository import ReviewRepository

logger = logging.getLogger(__name__)


class ReviewService:
    """Service layer for the review ledger"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = ReviewRepository()
        self.booking_repo = BookingRepository()

    def create_review(
        self,
        appointment_id: int,
        reviewer_id: int,
        rating: int,
        review_text: Optional[str] = None,
        is_public: bool = True,
    ) -> AppointmentReview:
        """
        Record one participant's review of the other.

        Raises:
            NotFoundError: unknown appointment
            AuthorizationError: reviewer did not take part
            ValidationError: not completed, bad rating, no counterpart to review
            DuplicateReviewError: reviewer already reviewed this appointment
        """
        appointment = self.booking_repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)

        if reviewer_id not in (appointment.expert_id, appointment.client_id):
            raise AuthorizationError("Only participants can review this appointment", appointment_id=appointment_id)
        if appointment.status != AppointmentStatus.COMPLETED.value:
            raise ValidationError("Only completed appointments can be reviewed", appointment_id=appointment_id)
        if not isinstance(rating, int) or isinstance(rating, bool) or not 1 <= rating <= 5:
            raise ValidationError("Rating must be between 1 and 5")
        try:
            review_text = clean_text(review_text)
        except ValueError as e:
            raise ValidationError(str(e), appointment_id=appointment_id) from e

        reviewee_id = appointment.client_id if reviewer_id == appointment.expert_id else appointment.expert_id
        if reviewee_id is None:
            # Guest booking: the client has no account to review
            raise ValidationError("This appointment has no registered client to review", appointment_id=appointment_id)

        if self.repo.get_review(self.db, appointment_id, reviewer_id):
            raise DuplicateReviewError("You have already reviewed this appointment", appointment_id=appointment_id)

        try:
            review = self.repo.create_review(
                self.db,
                appointment_id=appointment_id,
                reviewer_id=reviewer_id,
                reviewee_id=reviewee_id,
                rating=rating,
                review_text=review_text,
                is_public=is_public,
            )
        except IntegrityError as e:
            self.db.rollback()
            raise DuplicateReviewError(
                "You have already reviewed this appointment", appointment_id=appointment_id
            ) from e

        logger.info(f"⭐ Review {review.id} ({rating}/5) for appointment {appointment_id} by user {reviewer_id}")
        return review

    def get_aggregate_rating(self, expert_id: int) -> dict:
        average, count = self.repo.rating_stats(self.db, expert_id)
        return {"average": round(average, 2) if count else None, "count": count}

    def list_reviews(self, appointment_id: int, principal: User) -> list[AppointmentReview]:
        """Reviews on an appointment, visible to its participants"""
        appointment = self.booking_repo.get_appointment(self.db, appointment_id)
        if not appointment:
            raise NotFoundError("Appointment not found", appointment_id=appointment_id)
        if principal.id not in (appointment.expert_id, appointment.client_id):
            raise AuthorizationError("Only participants can view these reviews", appointment_id=appointment_id)
        return self.repo.list_for_appointment(self.db, appointment_id)

    def list_expert_reviews(self, expert_id: int, limit: int = 20) -> list[AppointmentReview]:
        return self.repo.list_public_for_reviewee(self.db, expert_id, limit)
