from fastapi import APIRouter, Depends, File, Form, UploadFile
from threads_app.core.dependencies import get_current_identity, get_user_client
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.posts.schemas import PostResponse, PostUpdate, PostWithProfileResponse
from threads_app.modules.posts.service import PostService
from supabase import Client
from typing import List, Optional

router = APIRouter(prefix="/posts", tags=["posts"])


def get_post_service(supabase: Client = Depends(get_user_client)) -> PostService:
    return PostService(supabase)


@router.get("", response_model=List[PostWithProfileResponse])
async def list_posts(
    limit: int = 20,
    offset: int = 0,
    identity: Identity = Depends(get_current_identity),
    service: PostService = Depends(get_post_service),
):
    """Feed, newest first"""
    return service.list_posts(limit=limit, offset=offset)


@router.get("/{post_id}", response_model=PostWithProfileResponse)
async def get_post(
    post_id: int,
    identity: Identity = Depends(get_current_identity),
    service: PostService = Depends(get_post_service),
):
    return service.get_post(post_id, viewer_id=identity.id)


@router.post("", response_model=PostResponse, status_code=201)
async def create_post(
    content: str = Form(...),
    image: Optional[UploadFile] = File(None),
    identity: Identity = Depends(get_current_identity),
    service: PostService = Depends(get_post_service),
):
    """Create a text post, optionally with an image (multipart form)"""
    if image is not None and image.filename:
        return service.create_post(identity, content, await image.read(), image.content_type)
    return service.create_post(identity, content)


@router.put("/{post_id}", response_model=PostResponse)
async def update_post(
    post_id: int,
    post_data: PostUpdate,
    identity: Identity = Depends(get_current_identity),
    service: PostService = Depends(get_post_service),
):
    return service.update_post(post_id, identity, post_data)


@router.delete("/{post_id}", status_code=204)
async def delete_post(
    post_id: int,
    identity: Identity = Depends(get_current_identity),
    service: PostService = Depends(get_post_service),
):
    service.delete_post(post_id, identity)
    return None
