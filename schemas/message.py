from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from models.booking import BookingStatus
from models.message import MAX_MESSAGE_LENGTH
from schemas.common import Pagination, UserSummary


class MessageSend(BaseModel):
    # Length is checked again after trimming by the messaging service
    text: str = Field(..., min_length=1, max_length=MAX_MESSAGE_LENGTH)


class MessageRead(BaseModel):
    id: int
    booking_id: int
    from_user_id: int
    text: str
    is_read: bool
    created_at: datetime
    sender: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class MessageList(BaseModel):
    messages: List[MessageRead]
    pagination: Pagination


class ConversationRead(BaseModel):
    booking_id: int
    status: BookingStatus
    start_time: datetime
    end_time: datetime
    parent: UserSummary
    nanny: UserSummary
    last_message: Optional[MessageRead] = None
    unread_count: int = 0
