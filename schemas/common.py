"""
Common schemas used across the application.
"""

from math import ceil
from typing import Optional
from pydantic import BaseModel, ConfigDict

from models.user import Role


class UserSummary(BaseModel):
    """Public slice of a user shown next to bookings, messages and reviews."""
    id: int
    full_name: str
    avatar_url: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class UserContact(UserSummary):
    phone: Optional[str] = None
    role: Role


class Pagination(BaseModel):
    total: int
    page: int
    limit: int
    total_pages: Optional[int] = None

    @classmethod
    def create(cls, total: int, page: int, limit: int, with_pages: bool = True) -> "Pagination":
        return cls(
            total=total,
            page=page,
            limit=limit,
            total_pages=ceil(total / limit) if with_pages else None,
        )
