from fastapi import APIRouter, Depends
from threads_app.core.dependencies import get_session_client
from threads_app.modules.auth.context import AuthContext
from supabase import Client
from typing import Optional
import logging

logger = logging.getLogger(__name__)

router = APIRouter(tags=["debug"])


def _session_summary(session) -> Optional[dict]:
    """Session facts that are safe to show; never the tokens themselves."""
    if session is None:
        return None
    user = getattr(session, "user", None)
    app_metadata = getattr(user, "app_metadata", None) or {}
    return {
        "expires_at": getattr(session, "expires_at", None),
        "token_type": getattr(session, "token_type", None),
        "provider": app_metadata.get("provider"),
        "email": getattr(user, "email", None),
    }


@router.get("/debug")
async def debug_auth_status(supabase: Client = Depends(get_session_client)):
    """Landing page for users whose profile could not be provisioned"""
    async with AuthContext(supabase) as context:
        snapshot = await context.wait_until_loaded()
    session = None
    if snapshot.identity is not None:
        try:
            session = supabase.auth.get_session()
        except Exception as e:
            logger.info(f"Session unavailable for debug page: {str(e)}")

    hint = None
    if snapshot.identity is None:
        hint = "Not signed in. Sign in again from /login."
    elif snapshot.profile is None:
        hint = "Signed in but no profile exists yet. Sign out via /logout and sign in again."

    return {
        "auth_context": {
            "phase": snapshot.phase.value,
            "loading": snapshot.loading,
            "user": snapshot.identity.email if snapshot.identity else None,
            "user_id": snapshot.identity.id if snapshot.identity else None,
            "profile": snapshot.profile.username if snapshot.profile else None,
        },
        "session": _session_summary(session),
        "hint": hint,
    }
