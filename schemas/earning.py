from datetime import datetime
from typing import List
from pydantic import BaseModel, ConfigDict

from schemas.common import UserSummary


class EarningBooking(BaseModel):
    start_time: datetime
    end_time: datetime
    parent: UserSummary

    model_config = ConfigDict(from_attributes=True)


class EarningRead(BaseModel):
    id: int
    booking_id: int
    nanny_user_id: int
    amount_nis: int
    platform_fee: int
    net_amount_nis: int
    is_paid: bool
    created_at: datetime
    booking: EarningBooking

    model_config = ConfigDict(from_attributes=True)


class EarningsSummary(BaseModel):
    total_earned: int
    total_pending: int
    total_jobs: int


class EarningsResponse(BaseModel):
    earnings: List[EarningRead]
    summary: EarningsSummary
