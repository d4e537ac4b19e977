from supabase import Client
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.likes.schemas import LikeResponse, LikeToggleResponse
from typing import List
from fastapi import HTTPException
import logging

logger = logging.getLogger(__name__)


def _is_duplicate(error: Exception) -> bool:
    code = getattr(error, "code", None)
    message = str(error).lower()
    return code == "23505" or "duplicate key" in message or "already exists" in message


class LikeService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _count(self, post_id: int) -> int:
        result = self.supabase.table("likes")\
            .select("id")\
            .eq("post_id", post_id)\
            .execute()
        return len(result.data or [])

    def list_likes(self, post_id: int) -> List[LikeResponse]:
        try:
            result = self.supabase.table("likes")\
                .select("*")\
                .eq("post_id", post_id)\
                .order("created_at", desc=True)\
                .execute()
            return [LikeResponse(**row) for row in result.data or []]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def toggle_like(self, post_id: int, identity: Identity) -> LikeToggleResponse:
        """Like the post, or remove the like if there already is one"""
        try:
            post = self.supabase.table("posts")\
                .select("id")\
                .eq("id", post_id)\
                .limit(1)\
                .execute()
            if not post.data:
                raise HTTPException(status_code=404, detail="Post not found")

            existing = self.supabase.table("likes")\
                .select("id")\
                .eq("post_id", post_id)\
                .eq("user_id", identity.id)\
                .limit(1)\
                .execute()

            if existing.data:
                self.supabase.table("likes")\
                    .delete()\
                    .eq("post_id", post_id)\
                    .eq("user_id", identity.id)\
                    .execute()
                liked = False
            else:
                try:
                    self.supabase.table("likes").insert({
                        "post_id": post_id,
                        "user_id": identity.id,
                    }).execute()
                except Exception as e:
                    # A concurrent request already liked it; (post_id, user_id) is unique
                    if not _is_duplicate(e):
                        raise
                    logger.info("Like for post %s by %s already present", post_id, identity.id)
                liked = True

            return LikeToggleResponse(post_id=post_id, liked=liked, likes=self._count(post_id))
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
