from fastapi import APIRouter, Depends, Request
from fastapi.responses import RedirectResponse
from threads_app.core.cookies import CookieJar
from threads_app.core.dependencies import (
    get_auth_service, get_cookie_jar, get_current_identity, get_site_origin, get_user_client
)
from threads_app.modules.auth.callback import SessionBridge, render_outcome
from threads_app.modules.auth.schemas import (
    CurrentUserResponse, Identity, LoginRequest, RegisterRequest, RegisterResponse, TokenResponse
)
from threads_app.modules.auth.service import AuthService
from threads_app.modules.profiles.provisioner import ProfileProvisioner
from threads_app.modules.profiles.service import ProfileService
from supabase import Client
from typing import Optional

router = APIRouter(prefix="/auth", tags=["auth"])

# Browser-facing routes (no /api prefix)
pages_router = APIRouter(tags=["pages"])

CALLBACK_PATH = "/auth/callback"


@router.post("/register", response_model=RegisterResponse, status_code=201)
def register(
    register_data: RegisterRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service)
):
    """Register with email and password; the profile is created right away when no confirmation is needed"""
    return service.register(register_data, get_site_origin(request) + CALLBACK_PATH)


@router.post("/login", response_model=TokenResponse)
async def login(
    login_data: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Login with email and password; sets the session cookies"""
    return service.login(login_data)


@router.get("/oauth/{provider}")
async def oauth_start(
    provider: str,
    request: Request,
    service: AuthService = Depends(get_auth_service)
):
    """Redirect to the identity provider's consent screen"""
    url = service.oauth_authorize_url(provider, get_site_origin(request) + CALLBACK_PATH)
    return RedirectResponse(url=url, status_code=303)


@router.post("/logout", status_code=200)
async def logout(service: AuthService = Depends(get_auth_service)):
    """Logout and clear the session cookies"""
    service.logout()
    return {"message": "Logged out successfully"}


@router.get("/me", response_model=CurrentUserResponse)
async def get_current_user(
    identity: Identity = Depends(get_current_identity),
    supabase: Client = Depends(get_user_client),
):
    """Current identity and its profile (None until provisioned)"""
    return CurrentUserResponse(identity=identity, profile=ProfileService(supabase).find_by_id(identity.id))


@pages_router.get(CALLBACK_PATH)
def auth_callback(
    request: Request,
    code: Optional[str] = None,
    error: Optional[str] = None,
    error_description: Optional[str] = None,
    jar: CookieJar = Depends(get_cookie_jar),
    service: AuthService = Depends(get_auth_service),
):
    """OAuth redirect target: exchange the code, provision the profile, redirect"""
    bridge = SessionBridge(
        auth_service=service,
        provisioner=ProfileProvisioner(ProfileService(service.supabase)),
        jar=jar,
    )
    outcome = bridge.handle(code=code, error=error, error_description=error_description)
    return render_outcome(outcome, get_site_origin(request))


@pages_router.get("/login")
async def login_page(error: Optional[str] = None, message: Optional[str] = None):
    return {
        "page": "login",
        "error": error,
        "message": message,
        "methods": ["password", "google"],
        "endpoints": {
            "password": "/api/v1/auth/login",
            "google": "/api/v1/auth/oauth/google",
        },
    }


@pages_router.get("/register")
async def register_page(error: Optional[str] = None):
    return {
        "page": "register",
        "error": error,
        "methods": ["password", "google"],
        "endpoints": {
            "password": "/api/v1/auth/register",
            "google": "/api/v1/auth/oauth/google",
        },
    }


@pages_router.get("/logout")
async def logout_page(request: Request, service: AuthService = Depends(get_auth_service)):
    service.logout()
    return RedirectResponse(url=get_site_origin(request) + "/login", status_code=303)
