"""Expert payment settings and earnings summary"""

import logging

from sqlalchemy.orm import Session

from ...config import PAYMENT_CURRENCY
from ...exceptions import AuthorizationError, PayoutNotConfiguredError
from ...models import AppointmentStatus, ExpertProfile, User
from ..availability.repository import AvailabilityRepository
from ..booking.repository import BookingRepository
from .fees import validate_hourly_rate

logger = logging.getLogger(__name__)


class PaymentService:
    """Service layer for expert rates, payout status and earnings"""

    def __init__(self, db: Session, processor=None):
        self.db = db
        self.processor = processor
        self.availability_repo = AvailabilityRepository()
        self.booking_repo = BookingRepository()

    def _require_expert(self, user: User) -> ExpertProfile:
        profile = self.availability_repo.get_expert_profile(self.db, user.id)
        if not profile:
            raise AuthorizationError("Expert profile required")
        return profile

    def update_hourly_rate(self, user: User, hourly_rate: int) -> ExpertProfile:
        profile = self._require_expert(user)
        profile.hourly_rate = validate_hourly_rate(hourly_rate)
        self.db.commit()
        self.db.refresh(profile)
        logger.info(f"✅ Hourly rate for expert {user.id} set to {hourly_rate}")
        return profile

    async def get_payout_status(self, user: User) -> dict:
        profile = self._require_expert(user)
        destination = profile.payout_account_id
        if not destination:
            raise PayoutNotConfiguredError("Expert has not set up payouts yet")
        self.db.commit()
        status = await self.processor.get_destination_status(destination)
        return {
            "accountId": destination,
            "chargesEnabled": status.charges_enabled,
            "payoutsEnabled": status.payouts_enabled,
        }

    def get_earnings_summary(self, user: User) -> dict:
        """Totals in cents over the expert's appointments"""
        self._require_expert(user)
        return {
            "completedEarnings": self.booking_repo.sum_expert_earnings(
                self.db, user.id, AppointmentStatus.COMPLETED.value
            ),
            "upcomingEarnings": self.booking_repo.sum_expert_earnings(
                self.db, user.id, AppointmentStatus.CONFIRMED.value
            ),
            "refundedCount": self.booking_repo.count_refunded(self.db, user.id),
            "currency": PAYMENT_CURRENCY.upper(),
        }
