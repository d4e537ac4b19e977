import json
from pydantic import BaseModel, ConfigDict, Field, model_validator
from typing import Any, Literal, Optional
from datetime import datetime

from threads_app.modules.profiles.schemas import ProfileSummary


class CommentMetadata(BaseModel):
    """Extra payload stored as JSON text in comments.metadata"""
    model_config = ConfigDict(populate_by_name=True)

    type: Literal["text", "sticker", "voice"] = "text"
    sticker: Optional[str] = None
    voice_note: Optional[str] = Field(None, alias="voiceNote")

    @model_validator(mode="before")
    @classmethod
    def infer_type(cls, data: Any) -> Any:
        """Untyped metadata takes its type from the media it carries."""
        if isinstance(data, dict) and not data.get("type"):
            data = dict(data)
            if data.get("sticker"):
                data["type"] = "sticker"
            elif data.get("voiceNote") or data.get("voice_note"):
                data["type"] = "voice"
            else:
                data["type"] = "text"
        return data

    @model_validator(mode="after")
    def check_media(self) -> "CommentMetadata":
        if self.type == "sticker" and not self.sticker:
            raise ValueError("Sticker comments need a sticker URL")
        if self.type == "voice" and not self.voice_note:
            raise ValueError("Voice comments need a voice note URL")
        return self

    def to_json(self) -> str:
        return json.dumps(self.model_dump(by_alias=True, exclude_none=True))

    @classmethod
    def from_json(cls, raw: Optional[str]) -> Optional["CommentMetadata"]:
        if not raw:
            return None
        try:
            return cls.model_validate(json.loads(raw))
        except ValueError:
            return None


class CommentCreate(BaseModel):
    content: str = Field("", max_length=2000)
    metadata: Optional[CommentMetadata] = None

    @model_validator(mode="after")
    def check_not_empty(self) -> "CommentCreate":
        self.content = self.content.strip()
        has_media = self.metadata is not None and self.metadata.type != "text"
        if not self.content and not has_media:
            raise ValueError("Comment must have text, a sticker or a voice note")
        return self


class CommentResponse(BaseModel):
    id: int
    post_id: int
    user_id: str
    content: str
    metadata: Optional[CommentMetadata] = None
    created_at: datetime
    profile: Optional[ProfileSummary] = None
