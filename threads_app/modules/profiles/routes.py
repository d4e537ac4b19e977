from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile
from threads_app.core.dependencies import get_current_identity, get_user_client
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.posts.schemas import PostWithProfileResponse
from threads_app.modules.posts.service import PostService
from threads_app.modules.profiles.provisioner import normalize_username
from threads_app.modules.profiles.schemas import (
    USERNAME_PATTERN, ProfileResponse, ProfileUpdate, UsernameAvailability
)
from threads_app.modules.profiles.service import ProfileService
from supabase import Client
from typing import List

router = APIRouter(prefix="/profiles", tags=["profiles"])


def get_profile_service(supabase: Client = Depends(get_user_client)) -> ProfileService:
    return ProfileService(supabase)


@router.get("/username-available", response_model=UsernameAvailability)
async def username_available(
    username: str = Query(..., min_length=1, max_length=64, pattern=USERNAME_PATTERN),
    identity: Identity = Depends(get_current_identity),
    service: ProfileService = Depends(get_profile_service),
):
    username = normalize_username(username)
    return UsernameAvailability(username=username, available=service.is_username_available(username))


@router.put("/me", response_model=ProfileResponse)
async def update_my_profile(
    profile_data: ProfileUpdate,
    identity: Identity = Depends(get_current_identity),
    service: ProfileService = Depends(get_profile_service),
):
    """Update name, bio or avatar URL of the signed-in user"""
    return service.update_profile(identity.id, profile_data)


@router.post("/me/avatar", response_model=ProfileResponse)
async def upload_my_avatar(
    file: UploadFile = File(...),
    identity: Identity = Depends(get_current_identity),
    service: ProfileService = Depends(get_profile_service),
):
    if not file.filename:
        raise HTTPException(status_code=400, detail="No file uploaded")
    return service.upload_avatar(identity.id, await file.read(), file.content_type)


@router.get("/{username}", response_model=ProfileResponse)
async def get_profile(
    username: str,
    identity: Identity = Depends(get_current_identity),
    service: ProfileService = Depends(get_profile_service),
):
    return service.get_profile_by_username(username)


@router.get("/{username}/posts", response_model=List[PostWithProfileResponse])
async def get_profile_posts(
    username: str,
    limit: int = 20,
    offset: int = 0,
    identity: Identity = Depends(get_current_identity),
    supabase: Client = Depends(get_user_client),
):
    """Posts of one user, newest first"""
    profile = ProfileService(supabase).get_profile_by_username(username)
    return PostService(supabase).list_posts(user_id=profile.id, limit=limit, offset=offset)
