from fastapi import APIRouter, Depends
from threads_app.core.dependencies import get_current_identity, get_user_client
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.comments.schemas import CommentCreate, CommentResponse
from threads_app.modules.comments.service import CommentService
from supabase import Client
from typing import List

router = APIRouter(tags=["comments"])


def get_comment_service(supabase: Client = Depends(get_user_client)) -> CommentService:
    return CommentService(supabase)


@router.get("/posts/{post_id}/comments", response_model=List[CommentResponse])
async def list_comments(
    post_id: int,
    identity: Identity = Depends(get_current_identity),
    service: CommentService = Depends(get_comment_service),
):
    return service.list_comments(post_id)


@router.post("/posts/{post_id}/comments", response_model=CommentResponse, status_code=201)
async def create_comment(
    post_id: int,
    comment_data: CommentCreate,
    identity: Identity = Depends(get_current_identity),
    service: CommentService = Depends(get_comment_service),
):
    """Add a text, sticker or voice-note comment"""
    return service.create_comment(post_id, identity, comment_data)


@router.delete("/comments/{comment_id}", status_code=204)
async def delete_comment(
    comment_id: int,
    identity: Identity = Depends(get_current_identity),
    service: CommentService = Depends(get_comment_service),
):
    service.delete_comment(comment_id, identity)
    return None
