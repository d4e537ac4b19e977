"""
Session middleware: route protection plus cookie write-back.

For every HTTP request a CookieJar is built from the incoming cookies and put
on request.state. Anything during the request that touches the session
(token refresh while checking the user, code exchange, sign-out) records its
cookie changes in the jar; the collected diff is appended as Set-Cookie
headers when the response starts.
"""

import logging
import re
from typing import Callable, Optional

from starlette.concurrency import run_in_threadpool
from starlette.requests import Request
from starlette.responses import RedirectResponse

from threads_app.config import settings
from threads_app.core.cookies import CookieJar
from threads_app.core.dependencies import get_site_origin
from threads_app.database.supabase_client import SupabaseClient

logger = logging.getLogger(__name__)

PUBLIC_PATHS = (
    "/login",
    "/register",
    "/auth/callback",
    "/logout",
    "/debug",
    "/health",
    "/ready",
    "/docs",
    "/redoc",
    "/openapi.json",
    "/favicon.ico",
    "/static",
    "/api",
)
GUEST_ONLY_PATHS = ("/login", "/register")
STATIC_ASSET = re.compile(r"\.(?:svg|png|jpe?g|gif|webp|ico)$", re.IGNORECASE)


def _matches(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


def is_public_path(path: str) -> bool:
    if STATIC_ASSET.search(path):
        return True
    return any(_matches(path, prefix) for prefix in PUBLIC_PATHS)


def is_guest_only_path(path: str) -> bool:
    return path in GUEST_ONLY_PATHS


def needs_session_check(path: str) -> bool:
    return is_guest_only_path(path) or not is_public_path(path)


def _default_user_lookup(request: Request) -> bool:
    client = SupabaseClient.create_session_client(request.state.cookie_jar)
    request.state.supabase = client
    try:
        response = client.auth.get_user()
    except Exception as e:
        logger.info(f"Session check failed: {str(e)}")
        return False
    return bool(response and response.user)


class SessionMiddleware:
    def __init__(self, app, user_lookup: Optional[Callable[[Request], bool]] = None):
        self.app = app
        self.user_lookup = user_lookup or _default_user_lookup

    async def __call__(self, scope, receive, send):
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request = Request(scope)
        jar = CookieJar(
            request.cookies,
            secure=settings.is_production,
            max_age=settings.session_cookie_max_age,
        )
        request.state.cookie_jar = jar

        async def send_with_cookies(message):
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                message["headers"] = list(message["headers"]) + jar.header_items()
            await send(message)

        redirect_to = await self._guard(request)
        if redirect_to is not None:
            response = RedirectResponse(url=get_site_origin(request) + redirect_to)
            await response(scope, receive, send_with_cookies)
            return

        await self.app(scope, receive, send_with_cookies)

    async def _guard(self, request: Request) -> Optional[str]:
        path = request.url.path
        if not needs_session_check(path):
            return None
        has_user = await run_in_threadpool(self.user_lookup, request)
        if not has_user and not is_public_path(path):
            logger.info("No session, redirecting %s -> /login", path)
            return "/login"
        if has_user and is_guest_only_path(path):
            logger.info("Session present, redirecting %s -> /", path)
            return "/"
        return None
