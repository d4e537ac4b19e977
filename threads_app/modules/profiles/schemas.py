from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

USERNAME_PATTERN = r"^[a-z0-9_]+$"


class ProfileResponse(BaseModel):
    id: str
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None
    bio: Optional[str] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ProfileSummary(BaseModel):
    id: str
    username: str
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileCreate(BaseModel):
    id: str
    username: str = Field(..., pattern=USERNAME_PATTERN)
    full_name: Optional[str] = None
    avatar_url: Optional[str] = None


class ProfileUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=100)
    bio: Optional[str] = Field(None, max_length=500)
    avatar_url: Optional[str] = None

    @field_validator("full_name", "bio")
    @classmethod
    def strip_text(cls, value: Optional[str]) -> Optional[str]:
        return value.strip() if value is not None else None


class UsernameAvailability(BaseModel):
    username: str
    available: bool
