from datetime import datetime
from enum import Enum
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from models.booking import BookingStatus
from schemas.common import Pagination, UserSummary


class SettableStatus(str, Enum):
    """Statuses a caller may request through the status-update operation."""
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class BookingCreate(BaseModel):
    nanny_user_id: int
    start_time: datetime
    end_time: datetime
    notes: Optional[str] = Field(default=None, max_length=500)
    children_count: int = Field(default=1, ge=1, le=10)
    children_ages: Optional[List[str]] = None
    address: Optional[str] = None


class BookingStatusUpdate(BaseModel):
    status: SettableStatus


class BookingRead(BaseModel):
    id: int
    parent_user_id: int
    nanny_user_id: int
    start_time: datetime
    end_time: datetime
    hourly_rate_nis: int
    total_amount_nis: int
    status: BookingStatus
    notes: Optional[str] = None
    children_count: int
    children_ages: Optional[List[str]] = None
    address: Optional[str] = None
    is_paid: bool
    payment_intent_id: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    parent: Optional[UserSummary] = None
    nanny: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class BookingList(BaseModel):
    bookings: List[BookingRead]
    pagination: Pagination
