from fastapi import APIRouter, Depends
from threads_app.core.dependencies import get_current_identity, get_user_client
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.likes.schemas import LikeResponse, LikeToggleResponse
from threads_app.modules.likes.service import LikeService
from supabase import Client
from typing import List

router = APIRouter(prefix="/posts", tags=["likes"])


def get_like_service(supabase: Client = Depends(get_user_client)) -> LikeService:
    return LikeService(supabase)


@router.post("/{post_id}/like", response_model=LikeToggleResponse)
async def toggle_like(
    post_id: int,
    identity: Identity = Depends(get_current_identity),
    service: LikeService = Depends(get_like_service),
):
    """Like or unlike a post"""
    return service.toggle_like(post_id, identity)


@router.get("/{post_id}/likes", response_model=List[LikeResponse])
async def list_likes(
    post_id: int,
    identity: Identity = Depends(get_current_identity),
    service: LikeService = Depends(get_like_service),
):
    return service.list_likes(post_id)
