"""
User model for identity and role management.
"""

from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from enum import Enum as PyEnum

from core.database import Base, utcnow


class Role(str, PyEnum):
    PARENT = "PARENT"
    NANNY = "NANNY"
    ADMIN = "ADMIN"


class DevicePlatform(str, PyEnum):
    IOS = "ios"
    ANDROID = "android"


class User(Base):
    """A marketplace member: a parent, a nanny or an admin."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(100), nullable=False)
    phone = Column(String(20), nullable=True)
    avatar_url = Column(String(500), nullable=True)
    # Assigned at creation; only an admin override changes it
    role = Column(SQLEnum(Role, native_enum=False, length=10), nullable=False, default=Role.PARENT)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)

    nanny_profile = relationship("NannyProfile", back_populates="user", uselist=False)
    devices = relationship("Device", back_populates="user", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"


class Device(Base):
    """Push-notification device token registered by a user."""

    __tablename__ = "devices"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    fcm_token = Column(String(255), unique=True, nullable=False)
    platform = Column(SQLEnum(DevicePlatform, native_enum=False, length=10), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="devices")

    def __repr__(self):
        return f"<Device(id={self.id}, user_id={self.user_id}, platform={self.platform})>"
