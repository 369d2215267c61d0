"""
Booking model and its storage-level no-overlap guard.
"""

from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, DateTime, ForeignKey, JSON, DDL,
    CheckConstraint, Index, Enum as SQLEnum, event,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from core.database import Base, utcnow


class BookingStatus(str, PyEnum):
    REQUESTED = "REQUESTED"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


# Statuses that hold the nanny's time slot
ACTIVE_STATUSES = (BookingStatus.REQUESTED, BookingStatus.ACCEPTED, BookingStatus.IN_PROGRESS)

NO_OVERLAP_CONSTRAINT = "bookings_no_overlap"


class Booking(Base):
    """A contracted time interval between one parent and one nanny."""

    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    parent_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    nanny_user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    start_time = Column(DateTime(timezone=True), nullable=False)
    end_time = Column(DateTime(timezone=True), nullable=False)
    # Snapshot of the nanny's rate when the booking was requested
    hourly_rate_nis = Column(Integer, nullable=False)
    total_amount_nis = Column(Integer, nullable=False)
    status = Column(
        SQLEnum(BookingStatus, native_enum=False, length=20),
        nullable=False,
        default=BookingStatus.REQUESTED,
    )

    notes = Column(String(500), nullable=True)
    children_count = Column(Integer, nullable=False, default=1)
    children_ages = Column(JSON, nullable=True)
    address = Column(Text, nullable=True)

    # Payment from the parent, set by the provider webhook
    is_paid = Column(Boolean, nullable=False, default=False)
    payment_intent_id = Column(String(255), nullable=True, index=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    parent = relationship("User", foreign_keys=[parent_user_id], lazy="selectin")
    nanny = relationship("User", foreign_keys=[nanny_user_id], lazy="selectin")
    messages = relationship("Message", back_populates="booking", order_by="Message.id")
    review = relationship("Review", back_populates="booking", uselist=False)
    earning = relationship("Earning", back_populates="booking", uselist=False)

    __table_args__ = (
        CheckConstraint("end_time > start_time", name="bookings_time_check"),
        CheckConstraint("children_count >= 1 AND children_count <= 10", name="bookings_children_check"),
        Index("bookings_nanny_interval_idx", "nanny_user_id", "start_time", "end_time"),
    )

    @property
    def party_ids(self):
        return (self.parent_user_id, self.nanny_user_id)

    def __repr__(self):
        return f"<Booking(id={self.id}, nanny={self.nanny_user_id}, status={self.status})>"


_active_sql = ", ".join(f"'{status.name}'" for status in ACTIVE_STATUSES)

# PostgreSQL: exclusion constraint over (nanny, [start, end)) for active rows
event.listen(
    Booking.__table__,
    "before_create",
    DDL("CREATE EXTENSION IF NOT EXISTS btree_gist").execute_if(dialect="postgresql"),
)
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"ALTER TABLE bookings ADD CONSTRAINT {NO_OVERLAP_CONSTRAINT} "
        "EXCLUDE USING gist (nanny_user_id WITH =, tstzrange(start_time, end_time, '[)') WITH &&) "
        f"WHERE (status IN ({_active_sql}))"
    ).execute_if(dialect="postgresql"),
)

# SQLite: same guard as a trigger, used by the test suite
event.listen(
    Booking.__table__,
    "after_create",
    DDL(
        f"CREATE TRIGGER {NO_OVERLAP_CONSTRAINT} BEFORE INSERT ON bookings "
        f"WHEN NEW.status IN ({_active_sql}) AND EXISTS ("
        "SELECT 1 FROM bookings b WHERE b.nanny_user_id = NEW.nanny_user_id "
        f"AND b.status IN ({_active_sql}) "
        "AND b.start_time < NEW.end_time AND b.end_time > NEW.start_time) "
        f"BEGIN SELECT RAISE(ABORT, '{NO_OVERLAP_CONSTRAINT}'); END"
    ).execute_if(dialect="sqlite"),
)
