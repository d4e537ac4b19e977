from supabase import Client
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.comments.schemas import CommentCreate, CommentMetadata, CommentResponse
from typing import List
from fastapi import HTTPException

COMMENT_WITH_PROFILE = "*, profiles(id, username, full_name, avatar_url)"


def _to_response(row: dict) -> CommentResponse:
    data = dict(row)
    profile = data.pop("profiles", None)
    metadata = CommentMetadata.from_json(data.pop("metadata", None))
    return CommentResponse(**data, metadata=metadata, profile=profile)


class CommentService:
    def __init__(self, supabase: Client):
        self.supabase = supabase

    def _ensure_post_exists(self, post_id: int) -> None:
        result = self.supabase.table("posts")\
            .select("id")\
            .eq("id", post_id)\
            .limit(1)\
            .execute()
        if not result.data:
            raise HTTPException(status_code=404, detail="Post not found")

    def list_comments(self, post_id: int) -> List[CommentResponse]:
        """Comments of a post, oldest first, with their authors"""
        try:
            result = self.supabase.table("comments")\
                .select(COMMENT_WITH_PROFILE)\
                .eq("post_id", post_id)\
                .order("created_at", desc=False)\
                .execute()
            return [_to_response(row) for row in result.data or []]
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def create_comment(self, post_id: int, identity: Identity, comment_data: CommentCreate) -> CommentResponse:
        try:
            self._ensure_post_exists(post_id)
            result = self.supabase.table("comments").insert({
                "post_id": post_id,
                "user_id": identity.id,
                "content": comment_data.content,
                "metadata": comment_data.metadata.to_json() if comment_data.metadata else None,
            }).execute()

            if not result.data:
                raise HTTPException(status_code=500, detail="Failed to add comment")

            return _to_response(result.data[0])
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))

    def delete_comment(self, comment_id: int, identity: Identity) -> bool:
        """Delete a comment; author only"""
        try:
            existing = self.supabase.table("comments")\
                .select("id, user_id")\
                .eq("id", comment_id)\
                .limit(1)\
                .execute()
            if not existing.data:
                raise HTTPException(status_code=404, detail="Comment not found")
            if existing.data[0]["user_id"] != identity.id:
                raise HTTPException(status_code=403, detail="Only the author can delete this comment")

            result = self.supabase.table("comments")\
                .delete()\
                .eq("id", comment_id)\
                .eq("user_id", identity.id)\
                .execute()
            return len(result.data) > 0
        except HTTPException:
            raise
        except Exception as e:
            raise HTTPException(status_code=500, detail=str(e))
