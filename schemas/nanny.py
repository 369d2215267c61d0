from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, ConfigDict, Field

from schemas.common import Pagination, UserSummary
from schemas.review import ReviewRead

MAX_SEARCH_PAGE_SIZE = 50

TIME_OF_DAY_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class AvailabilitySlot(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)
    from_time: str = Field(..., pattern=TIME_OF_DAY_PATTERN)
    to_time: str = Field(..., pattern=TIME_OF_DAY_PATTERN)
    is_available: bool = True

    model_config = ConfigDict(from_attributes=True)


class NannyProfileRead(BaseModel):
    id: int
    user_id: int
    headline: Optional[str] = None
    bio: Optional[str] = None
    hourly_rate_nis: int
    years_experience: int
    is_available: bool
    city: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    languages: List[str] = []
    skills: List[str] = []
    rating: float
    reviews_count: int
    completed_jobs: int
    total_earnings: int
    availability: List[AvailabilitySlot] = []
    created_at: datetime
    user: Optional[UserSummary] = None

    model_config = ConfigDict(from_attributes=True)


class NannyProfileDetail(BaseModel):
    profile: NannyProfileRead
    reviews: List[ReviewRead]


class NannyProfileUpdate(BaseModel):
    headline: Optional[str] = Field(default=None, max_length=200)
    bio: Optional[str] = Field(default=None, max_length=2000)
    hourly_rate_nis: Optional[int] = Field(default=None, ge=20, le=500)
    years_experience: Optional[int] = Field(default=None, ge=0, le=50)
    languages: Optional[List[str]] = None
    skills: Optional[List[str]] = None
    city: Optional[str] = None
    address: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90, le=90)
    longitude: Optional[float] = Field(default=None, ge=-180, le=180)
    is_available: Optional[bool] = None
    availability: Optional[List[AvailabilitySlot]] = Field(default=None, max_length=7)


class NannySearchParams(BaseModel):
    """Search filters. All optional and combined with AND."""
    city: Optional[str] = None
    min_rate: Optional[int] = Field(default=None, ge=0)
    max_rate: Optional[int] = Field(default=None, ge=0)
    min_years: Optional[int] = Field(default=None, ge=0)
    language: Optional[str] = None
    skill: Optional[str] = None
    min_rating: Optional[float] = Field(default=None, ge=0, le=5)
    is_available: Optional[bool] = None
    lat: Optional[float] = Field(default=None, ge=-90, le=90)
    lng: Optional[float] = Field(default=None, ge=-180, le=180)
    radius_km: Optional[float] = Field(default=None, gt=0)
    sort_by: Optional[str] = "rating"
    page: int = Field(default=1, ge=1)
    limit: int = Field(default=20, ge=1)


class NannySearchResult(NannyProfileRead):
    distance_km: Optional[float] = None


class NannySearchResponse(BaseModel):
    nannies: List[NannySearchResult]
    pagination: Pagination
