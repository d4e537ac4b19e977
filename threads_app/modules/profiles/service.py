import logging
from datetime import datetime, timezone
from supabase import Client
from threads_app.config import settings
from threads_app.database.blob_storage import BlobStorage, BlobStorageError
from threads_app.modules.profiles.schemas import ProfileCreate, ProfileResponse, ProfileUpdate
from typing import Optional
from fastapi import HTTPException

logger = logging.getLogger(__name__)


class ProfileService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def find_by_id(self, user_id: str) -> Optional[ProfileResponse]:
        """Profile for `user_id`, or None when no row exists yet."""
        result = self.supabase.table("profiles")\
            .select("*")\
            .eq("id", user_id)\
            .limit(1)\
            .execute()
        if not result.data:
            return None
        return ProfileResponse(**result.data[0])

    def find_by_username(self, username: str) -> Optional[ProfileResponse]:
        result = self.supabase.table("profiles")\
            .select("*")\
            .eq("username", username.lower())\
            .limit(1)\
            .execute()
        if not result.data:
            return None
        return ProfileResponse(**result.data[0])

    def is_username_available(self, username: str) -> bool:
        result = self.supabase.table("profiles")\
            .select("id")\
            .eq("username", username.lower())\
            .limit(1)\
            .execute()
        return not result.data

    def create_profile(self, profile_data: ProfileCreate) -> ProfileResponse:
        """Insert a profile row. Errors from the Data Store (e.g. duplicate username) propagate."""
        result = self.supabase.table("profiles").insert({
            "id": profile_data.id,
            "username": profile_data.username,
            "full_name": profile_data.full_name,
            "avatar_url": profile_data.avatar_url,
        }).execute()
        if not result.data:
            raise RuntimeError("Profile insert returned no row")
        return ProfileResponse(**result.data[0])

    def get_profile_by_username(self, username: str) -> ProfileResponse:
        try:
            profile = self.find_by_username(username)
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
        if profile is None:
            raise HTTPException(status_code=404, detail="Profile not found")
        return profile

    def update_profile(self, user_id: str, profile_data: ProfileUpdate) -> ProfileResponse:
        """Update the caller's own profile"""
        try:
            update_data = {"updated_at": datetime.now(timezone.utc).isoformat()}
            if profile_data.full_name is not None:
                update_data["full_name"] = profile_data.full_name
            if profile_data.bio is not None:
                update_data["bio"] = profile_data.bio
            if profile_data.avatar_url is not None:
                update_data["avatar_url"] = profile_data.avatar_url or None

            result = self.supabase.table("profiles")\
                .update(update_data)\
                .eq("id", user_id)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="Profile not found")

            return ProfileResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def upload_avatar(self, user_id: str, content: bytes, content_type: str) -> ProfileResponse:
        """Store an avatar in the Blob Store and point the profile at it"""
        storage = BlobStorage(self.supabase, settings.avatars_bucket, settings.max_upload_bytes)
        try:
            public_url = storage.upload_image(user_id, content, content_type, folder=True)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except BlobStorageError:
            raise HTTPException(status_code=502, detail="Avatar upload failed")
        return self.update_profile(user_id, ProfileUpdate(avatar_url=public_url))
