"""
Earning model: the caregiver-side fee split of a completed booking.
"""

from sqlalchemy import Column, Integer, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from core.database import Base, utcnow


class Earning(Base):
    """Created once per completed booking, never recomputed."""

    __tablename__ = "earnings"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    nanny_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    amount_nis = Column(Integer, nullable=False)
    platform_fee = Column(Integer, nullable=False)
    net_amount_nis = Column(Integer, nullable=False)
    # Payout to the caregiver, unrelated to Booking.is_paid
    is_paid = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    booking = relationship("Booking", back_populates="earning", lazy="selectin")

    def __repr__(self):
        return f"<Earning(id={self.id}, booking_id={self.booking_id}, net={self.net_amount_nis})>"
