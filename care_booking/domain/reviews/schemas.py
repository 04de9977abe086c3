"""Review domain schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel


class ReviewCreate(BaseModel):
    rating: int  # 1-5, checked by ReviewService
    reviewText: Optional[str] = None
    isPublic: bool = True


class ReviewResponse(BaseModel):
    id: int
    appointmentId: int
    reviewerId: int
    revieweeId: int
    rating: int
    reviewText: Optional[str] = None
    isPublic: bool
    isVerified: bool
    createdAt: Optional[datetime] = None


class ReviewEnvelope(BaseModel):
    review: ReviewResponse


class AggregateRatingResponse(BaseModel):
    average: Optional[float] = None
    count: int
