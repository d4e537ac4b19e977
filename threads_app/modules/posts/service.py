from collections import Counter
from datetime import datetime, timezone
from supabase import Client
from threads_app.config import settings
from threads_app.database.blob_storage import BlobStorage, BlobStorageError
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.posts.schemas import (
    PostCounts, PostResponse, PostUpdate, PostWithProfileResponse
)
from typing import Dict, List, Optional
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)

POST_WITH_PROFILE = "*, profiles(id, username, full_name, avatar_url)"


def _with_profile(row: dict, counts: PostCounts, liked_by_me: Optional[bool] = None) -> PostWithProfileResponse:
    data = dict(row)
    profile = data.pop("profiles", None)
    return PostWithProfileResponse(**data, profile=profile, counts=counts, liked_by_me=liked_by_me)


class PostService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _count_by_post(self, table: str, post_ids: List[int]) -> Dict[int, int]:
        if not post_ids:
            return {}
        result = self.supabase.table(table)\
            .select("post_id")\
            .in_("post_id", post_ids)\
            .execute()
        return Counter(row["post_id"] for row in result.data or [])

    def _get_row(self, post_id: int) -> dict:
        result = self.supabase.table("posts")\
            .select(POST_WITH_PROFILE)\
            .eq("id", post_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Post not found")
        return result.data[0]

    def list_posts(
        self,
        user_id: Optional[str] = None,
        limit: int = 20,
        offset: int = 0
    ) -> List[PostWithProfileResponse]:
        """Feed, newest first, optionally for one author"""
        try:
            query = self.supabase.table("posts").select(POST_WITH_PROFILE)
            if user_id:
                query = query.eq("user_id", user_id)
            result = query\
                .order("created_at", desc=True)\
                .limit(limit)\
                .offset(offset)\
                .execute()
            rows = result.data or []
            post_ids = [row["id"] for row in rows]
            likes = self._count_by_post("likes", post_ids)
            comments = self._count_by_post("comments", post_ids)
            return [
                _with_profile(row, PostCounts(likes=likes.get(row["id"], 0), comments=comments.get(row["id"], 0)))
                for row in rows
            ]
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def get_post(self, post_id: int, viewer_id: Optional[str] = None) -> PostWithProfileResponse:
        """Single post with counts and whether the viewer liked it"""
        try:
            row = self._get_row(post_id)
            likes = self._count_by_post("likes", [post_id])
            comments = self._count_by_post("comments", [post_id])
            liked_by_me = None
            if viewer_id:
                liked = self.supabase.table("likes")\
                    .select("id")\
                    .eq("post_id", post_id)\
                    .eq("user_id", viewer_id)\
                    .limit(1)\
                    .execute()
                liked_by_me = bool(liked.data)
            counts = PostCounts(likes=likes.get(post_id, 0), comments=comments.get(post_id, 0))
            return _with_profile(row, counts, liked_by_me)
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def upload_image(self, identity: Identity, content: bytes, content_type: str) -> str:
        storage = BlobStorage(self.supabase, settings.post_images_bucket, settings.max_upload_bytes)
        try:
            return storage.upload_image(identity.id, content, content_type)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        except BlobStorageError:
            raise HTTPException(status_code=502, detail="Image upload failed")

    def create_post(
        self,
        identity: Identity,
        content: str,
        image_content: Optional[bytes] = None,
        image_type: Optional[str] = None
    ) -> PostResponse:
        """Create a post owned by `identity`, uploading its image first"""
        try:
            post_data = PostUpdate(content=content)
        except ValueError:
            raise HTTPException(status_code=400, detail="Content must not be empty")
        if image_content is not None:
            post_data.image_url = self.upload_image(identity, image_content, image_type)
        try:
            result = self.supabase.table("posts").insert({
                "user_id": identity.id,
                "content": post_data.content,
                "image_url": post_data.image_url or None,
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to create post")

            return PostResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def update_post(self, post_id: int, identity: Identity, post_data: PostUpdate) -> PostResponse:
        """Edit content/image; owner only"""
        row = self._get_row(post_id)
        if row["user_id"] != identity.id:
            raise HTTPException(status_code=403, detail="Only the author can edit this post")
        try:
            result = self.supabase.table("posts")\
                .update({
                    "content": post_data.content,
                    "image_url": post_data.image_url or None,
                    "updated_at": datetime.now(timezone.utc).isoformat(),
                })\
                .eq("id", post_id)\
                .eq("user_id", identity.id)\
                .execute()

            if not result.data:
                raise HTTPException(status_code=404, detail="Post not found")

            return PostResponse(**result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_post(self, post_id: int, identity: Identity) -> bool:
        """Delete a post; owner only"""
        row = self._get_row(post_id)
        if row["user_id"] != identity.id:
            raise HTTPException(status_code=403, detail="Only the author can delete this post")
        try:
            result = self.supabase.table("posts")\
                .delete()\
                .eq("id", post_id)\
                .eq("user_id", identity.id)\
                .execute()
            return len(result.data) > 0
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
