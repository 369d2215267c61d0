from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, field_validator

from models.user import DevicePlatform, Role


class UserProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(default=None, min_length=2, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=20)
    # An empty string clears the avatar
    avatar_url: Optional[str] = Field(default=None, max_length=500)

    @field_validator('avatar_url', mode='before')
    @classmethod
    def validate_avatar_url(cls, v):
        if v == "":
            return None
        if isinstance(v, str):
            parsed = urlparse(v)
            if parsed.scheme not in ("http", "https") or not parsed.netloc:
                raise ValueError("avatar_url must be an http(s) URL")
        return v


class UserProfileRead(BaseModel):
    id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    avatar_url: Optional[str] = None
    role: Role

    model_config = ConfigDict(from_attributes=True)


class DeviceRegister(BaseModel):
    fcm_token: str = Field(..., min_length=1, max_length=255)
    platform: DevicePlatform


class DeviceRead(BaseModel):
    id: int
    user_id: int
    fcm_token: str
    platform: DevicePlatform
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
