"""
Nanny profile, its language / skill sets and weekly availability.
"""

from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Float, DateTime, ForeignKey,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from core.database import Base, utcnow


class NannyProfile(Base):
    """Caregiver profile, one-to-one with a NANNY user."""

    __tablename__ = "nanny_profiles"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)

    headline = Column(String(200), nullable=True)
    bio = Column(Text, nullable=True)
    hourly_rate_nis = Column(Integer, nullable=False)
    years_experience = Column(Integer, nullable=False, default=0)
    is_available = Column(Boolean, nullable=False, default=True)

    # Location
    city = Column(String(100), nullable=True, index=True)
    address = Column(String(255), nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    # Derived, maintained by the review and booking-completion flows
    rating = Column(Float, nullable=False, default=0.0)
    reviews_count = Column(Integer, nullable=False, default=0)
    completed_jobs = Column(Integer, nullable=False, default=0)
    total_earnings = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="nanny_profile", lazy="selectin")
    language_entries = relationship(
        "NannyLanguage", cascade="all, delete-orphan", lazy="selectin", order_by="NannyLanguage.language"
    )
    skill_entries = relationship(
        "NannySkill", cascade="all, delete-orphan", lazy="selectin", order_by="NannySkill.skill"
    )
    availability = relationship(
        "Availability", cascade="all, delete-orphan", lazy="selectin", order_by="Availability.day_of_week"
    )

    __table_args__ = (
        CheckConstraint("hourly_rate_nis > 0", name="nanny_profiles_rate_check"),
        CheckConstraint("rating >= 0 AND rating <= 5", name="nanny_profiles_rating_check"),
    )

    @property
    def languages(self):
        return [entry.language for entry in self.language_entries]

    @property
    def skills(self):
        return [entry.skill for entry in self.skill_entries]

    def __repr__(self):
        return f"<NannyProfile(id={self.id}, user_id={self.user_id}, rate={self.hourly_rate_nis})>"


class NannyLanguage(Base):
    __tablename__ = "nanny_languages"

    id = Column(Integer, primary_key=True)
    nanny_profile_id = Column(Integer, ForeignKey("nanny_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    language = Column(String(50), nullable=False)

    __table_args__ = (
        UniqueConstraint("nanny_profile_id", "language", name="uq_nanny_language"),
    )


class NannySkill(Base):
    __tablename__ = "nanny_skills"

    id = Column(Integer, primary_key=True)
    nanny_profile_id = Column(Integer, ForeignKey("nanny_profiles.id", ondelete="CASCADE"), nullable=False, index=True)
    skill = Column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("nanny_profile_id", "skill", name="uq_nanny_skill"),
    )


class Availability(Base):
    """One weekly slot per day of week (0 = Sunday)."""

    __tablename__ = "availability"

    id = Column(Integer, primary_key=True)
    nanny_profile_id = Column(Integer, ForeignKey("nanny_profiles.id", ondelete="CASCADE"), nullable=False)
    day_of_week = Column(Integer, nullable=False)
    from_time = Column(String(5), nullable=False)  # "HH:MM"
    to_time = Column(String(5), nullable=False)
    is_available = Column(Boolean, nullable=False, default=True)

    __table_args__ = (
        UniqueConstraint("nanny_profile_id", "day_of_week", name="uq_availability_day"),
        CheckConstraint("day_of_week >= 0 AND day_of_week <= 6", name="availability_day_check"),
    )
