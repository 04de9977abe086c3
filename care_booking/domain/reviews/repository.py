"""Review repository - Database operations for appointment reviews"""

from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from ...models import AppointmentReview


class ReviewRepository:
    """Repository for review database operations"""

    @staticmethod
    def get_review(db: Session, appointment_id: int, reviewer_id: int) -> Optional[AppointmentReview]:
        return (
            db.query(AppointmentReview)
            .filter(
                AppointmentReview.appointment_id == appointment_id,
                AppointmentReview.reviewer_id == reviewer_id,
            )
            .first()
        )

    @staticmethod
    def create_review(db: Session, **review_data) -> AppointmentReview:
        review = AppointmentReview(**review_data)
        db.add(review)
        db.commit()
        db.refresh(review)
        return review

    @staticmethod
    def list_for_appointment(db: Session, appointment_id: int) -> list[AppointmentReview]:
        return (
            db.query(AppointmentReview)
            .filter(AppointmentReview.appointment_id == appointment_id)
            .order_by(AppointmentReview.id)
            .all()
        )

    @staticmethod
    def list_public_for_reviewee(db: Session, reviewee_id: int, limit: int = 20) -> list[AppointmentReview]:
        """Public reviews about a user, newest first"""
        return (
            db.query(AppointmentReview)
            .filter(AppointmentReview.reviewee_id == reviewee_id, AppointmentReview.is_public.is_(True))
            .order_by(AppointmentReview.created_at.desc(), AppointmentReview.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def rating_stats(db: Session, reviewee_id: int) -> tuple[Optional[float], int]:
        """(average, count) over public reviews about a user"""
        average, count = (
            db.query(func.avg(AppointmentReview.rating), func.count(AppointmentReview.id))
            .filter(AppointmentReview.reviewee_id == reviewee_id, AppointmentReview.is_public.is_(True))
            .one()
        )
        return (float(average) if average is not None else None), int(count or 0)
