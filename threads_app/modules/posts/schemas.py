from pydantic import BaseModel, Field, field_validator
from typing import Optional
from datetime import datetime

from threads_app.modules.profiles.schemas import ProfileSummary


class PostUpdate(BaseModel):
    content: str = Field(..., min_length=1, max_length=5000)
    image_url: Optional[str] = None

    @field_validator("content")
    @classmethod
    def strip_content(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("Content must not be empty")
        return value


class PostResponse(BaseModel):
    id: int
    user_id: str
    content: str
    image_url: Optional[str] = None
    created_at: datetime
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PostCounts(BaseModel):
    likes: int = 0
    comments: int = 0


class PostWithProfileResponse(PostResponse):
    profile: Optional[ProfileSummary] = None
    counts: PostCounts = PostCounts()
    liked_by_me: Optional[bool] = None
