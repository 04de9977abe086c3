"""Payments router - Expert rate, payout status and earnings"""

import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...dependencies import get_processor
from ...models import User
from .service import PaymentService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/experts/me", tags=["Payments"])


class HourlyRateUpdate(BaseModel):
    hourlyRate: int  # cents


class EarningsSummary(BaseModel):
    completedEarnings: int
    upcomingEarnings: int
    refundedCount: int
    currency: str


def get_payment_service(db: Session = Depends(get_db), processor=Depends(get_processor)) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db, processor)


@router.put("/hourly-rate")
async def update_hourly_rate(
    data: HourlyRateUpdate,
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    profile = service.update_hourly_rate(current_user, data.hourlyRate)
    return {"hourlyRate": profile.hourly_rate}


@router.get("/payout-status")
async def get_payout_status(
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    return await service.get_payout_status(current_user)


@router.get("/earnings", response_model=EarningsSummary)
async def get_earnings(
    current_user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Earnings summary for the current expert"""
    return service.get_earnings_summary(current_user)
