"""
Message model for in-booking conversations.
"""

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from core.database import Base, utcnow

MAX_MESSAGE_LENGTH = 2000


class Message(Base):
    """A message in the conversation attached to a booking."""

    __tablename__ = "messages"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    from_user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    text = Column(String(MAX_MESSAGE_LENGTH), nullable=False)
    # Flips false -> true only, for messages not authored by the reader
    is_read = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    booking = relationship("Booking", back_populates="messages")
    sender = relationship("User", lazy="selectin")

    __table_args__ = (
        Index("messages_booking_created_idx", "booking_id", "created_at"),
    )

    def __repr__(self):
        return f"<Message(id={self.id}, booking_id={self.booking_id}, from={self.from_user_id})>"
