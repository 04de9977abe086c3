"""Availability repository - Database operations for windows, blocked slots and expert profiles"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from ...models import BlockedTimeSlot, ExpertAvailability, ExpertProfile, User


class AvailabilityRepository:
    """Repository for availability database operations"""

    @staticmethod
    def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_expert_profile(db: Session, user_id: int) -> Optional[ExpertProfile]:
        """Get the expert profile attached to a user, if any"""
        return db.query(ExpertProfile).filter(ExpertProfile.user_id == user_id).first()

    @staticmethod
    def get_windows(db: Session, expert_id: int, active_only: bool = False) -> list[ExpertAvailability]:
        """Get weekly windows ordered by day, then start time"""
        query = db.query(ExpertAvailability).filter(ExpertAvailability.expert_id == expert_id)
        if active_only:
            query = query.filter(ExpertAvailability.is_active.is_(True))
        # HH:MM strings sort chronologically
        return query.order_by(ExpertAvailability.day_of_week, ExpertAvailability.start_time).all()

    @staticmethod
    def replace_windows(db: Session, expert_id: int, windows: list[dict]) -> list[ExpertAvailability]:
        """
        Delete all of the expert's windows and insert the new set.

        Runs as one transaction: readers never see an empty schedule, and a
        failure leaves the previous schedule in place.
        """
        try:
            db.query(ExpertAvailability).filter(ExpertAvailability.expert_id == expert_id).delete(
                synchronize_session=False
            )
            rows = [ExpertAvailability(expert_id=expert_id, **w) for w in windows]
            db.add_all(rows)
            db.commit()
        except Exception:
            db.rollback()
            raise
        return AvailabilityRepository.get_windows(db, expert_id)

    @staticmethod
    def create_blocked_slot(db: Session, expert_id: int, **slot_data) -> BlockedTimeSlot:
        slot = BlockedTimeSlot(expert_id=expert_id, **slot_data)
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    @staticmethod
    def get_blocked_slot(db: Session, slot_id: int, expert_id: int) -> Optional[BlockedTimeSlot]:
        """Get a blocked slot owned by the expert"""
        return (
            db.query(BlockedTimeSlot)
            .filter(BlockedTimeSlot.id == slot_id, BlockedTimeSlot.expert_id == expert_id)
            .first()
        )

    @staticmethod
    def delete_blocked_slot(db: Session, slot: BlockedTimeSlot) -> None:
        db.delete(slot)
        db.commit()

    @staticmethod
    def get_blocked_slots_in_range(
        db: Session, expert_id: int, range_start: datetime, range_end: datetime
    ) -> list[BlockedTimeSlot]:
        """Blocked slots overlapping [range_start, range_end), naive UTC bounds"""
        return (
            db.query(BlockedTimeSlot)
            .filter(
                BlockedTimeSlot.expert_id == expert_id,
                BlockedTimeSlot.start_datetime < range_end,
                BlockedTimeSlot.end_datetime > range_start,
            )
            .order_by(BlockedTimeSlot.start_datetime)
            .all()
        )
