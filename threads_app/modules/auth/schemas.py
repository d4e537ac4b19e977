from pydantic import BaseModel, EmailStr, Field
from typing import Any, Dict, Optional

from threads_app.modules.profiles.schemas import USERNAME_PATTERN, ProfileResponse


class Identity(BaseModel):
    """Auth Service user, as far as this app cares."""
    id: str
    email: Optional[str] = None
    user_metadata: Dict[str, Any] = {}
    app_metadata: Dict[str, Any] = {}

    @classmethod
    def from_user(cls, user: Any) -> "Identity":
        return cls(
            id=str(user.id),
            email=getattr(user, "email", None),
            user_metadata=getattr(user, "user_metadata", None) or {},
            app_metadata=getattr(user, "app_metadata", None) or {},
        )


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    email: str


class RegisterRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    username: str = Field(..., min_length=1, max_length=64, pattern=USERNAME_PATTERN)
    full_name: Optional[str] = None


class RegisterResponse(BaseModel):
    user_id: str
    email: str
    message: str
    confirmation_required: bool = False


class CurrentUserResponse(BaseModel):
    identity: Identity
    profile: Optional[ProfileResponse] = None
