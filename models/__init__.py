"""
SQLAlchemy ORM models for SuperNanny Backend.

Contains all database models organized by module.
"""

from .user import User, Device, Role, DevicePlatform
from .nanny import NannyProfile, NannyLanguage, NannySkill, Availability
from .booking import Booking, BookingStatus, ACTIVE_STATUSES
from .message import Message
from .review import Review
from .earning import Earning

__all__ = [
    "User",
    "Device",
    "Role",
    "DevicePlatform",
    "NannyProfile",
    "NannyLanguage",
    "NannySkill",
    "Availability",
    "Booking",
    "BookingStatus",
    "ACTIVE_STATUSES",
    "Message",
    "Review",
    "Earning",
]
