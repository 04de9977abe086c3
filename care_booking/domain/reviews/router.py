"""Review router - FastAPI endpoints for reviews and ratings"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...models import AppointmentReview, User
from ..scheduling.timezones import from_db
from .schemas import AggregateRatingResponse, ReviewCreate, ReviewEnvelope, ReviewResponse
from .service import ReviewService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reviews"])


def get_review_service(db: Session = Depends(get_db)) -> ReviewService:
    """Dependency injection for ReviewService"""
    return ReviewService(db)


def _review_response(r: AppointmentReview) -> ReviewResponse:
    return ReviewResponse(
        id=r.id,
        appointmentId=r.appointment_id,
        reviewerId=r.reviewer_id,
        revieweeId=r.reviewee_id,
        rating=r.rating,
        reviewText=r.review_text,
        isPublic=r.is_public,
        isVerified=r.is_verified,
        createdAt=from_db(r.created_at),
    )


@router.post("/appointments/{appointment_id}/reviews", response_model=ReviewEnvelope)
async def create_review(
    appointment_id: int,
    data: ReviewCreate,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    review = service.create_review(
        appointment_id, current_user.id, data.rating, data.reviewText, data.isPublic
    )
    return ReviewEnvelope(review=_review_response(review))


@router.get("/appointments/{appointment_id}/reviews", response_model=list[ReviewResponse])
async def list_appointment_reviews(
    appointment_id: int,
    current_user: User = Depends(get_current_user),
    service: ReviewService = Depends(get_review_service),
):
    return [_review_response(r) for r in service.list_reviews(appointment_id, current_user)]


@router.get("/experts/{expert_id}/rating", response_model=AggregateRatingResponse)
async def get_expert_rating(expert_id: int, service: ReviewService = Depends(get_review_service)):
    return service.get_aggregate_rating(expert_id)


@router.get("/experts/{expert_id}/reviews", response_model=list[ReviewResponse])
async def list_expert_reviews(
    expert_id: int,
    limit: int = Query(20, ge=1, le=100),
    service: ReviewService = Depends(get_review_service),
):
    """Public reviews about an expert, newest first"""
    return [_review_response(r) for r in service.list_expert_reviews(expert_id, limit)]
