from pydantic import BaseModel
from datetime import datetime


class LikeResponse(BaseModel):
    id: int
    post_id: int
    user_id: str
    created_at: datetime


class LikeToggleResponse(BaseModel):
    post_id: int
    liked: bool
    likes: int
