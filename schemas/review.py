from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from schemas.common import Pagination, UserSummary


class ReviewCreate(BaseModel):
    booking_id: int
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(default=None, max_length=1000)


class ReviewRead(BaseModel):
    id: int
    booking_id: int
    reviewer_user_id: int
    reviewee_user_id: int
    rating: int
    comment: Optional[str] = None
    created_at: datetime
    reviewer: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class ReviewList(BaseModel):
    reviews: List[ReviewRead]
    pagination: Pagination
