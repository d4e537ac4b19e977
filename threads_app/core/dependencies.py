"""
Core dependencies for route protection and per-request Supabase clients
"""

from fastapi import Depends, HTTPException, Request, Security, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from threads_app.config import settings
from threads_app.core.cookies import CookieJar
from threads_app.database.supabase_client import SupabaseClient, authorize_client
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.auth.service import AuthService
from supabase import Client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

security = HTTPBearer(auto_error=False)


def get_cookie_jar(request: Request) -> CookieJar:
    """Request-scoped jar installed by SessionMiddleware (created lazily otherwise)."""
    jar = getattr(request.state, "cookie_jar", None)
    if jar is None:
        jar = CookieJar(
            request.cookies,
            secure=settings.is_production,
            max_age=settings.session_cookie_max_age,
        )
        request.state.cookie_jar = jar
    return jar


def get_session_client(request: Request) -> Client:
    """Cookie-backed Supabase client, one per request."""
    client = getattr(request.state, "supabase", None)
    if client is None:
        client = SupabaseClient.create_session_client(get_cookie_jar(request))
        request.state.supabase = client
    return client


def get_auth_service(supabase: Client = Depends(get_session_client)) -> AuthService:
    return AuthService(supabase)


def get_site_origin(request: Request) -> str:
    if settings.site_url:
        return settings.site_url.rstrip("/")
    return str(request.base_url).rstrip("/")


def get_current_identity(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Security(security),
    auth_service: AuthService = Depends(get_auth_service),
) -> Identity:
    """Identity from a Bearer token or, failing that, the cookie session"""
    token = credentials.credentials if credentials else None
    if token is None:
        session = auth_service.get_session()
        token = session.access_token if session else None
    if token is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    identity = auth_service.get_identity(token)
    if identity is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired session")
    request.state.access_token = token
    return identity


def get_user_client(
    request: Request,
    identity: Identity = Depends(get_current_identity),
    supabase: Client = Depends(get_session_client),
) -> Client:
    """Session client whose Data Store queries run as the current user (RLS)."""
    return authorize_client(supabase, request.state.access_token)
