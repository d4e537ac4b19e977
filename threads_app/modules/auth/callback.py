"""
OAuth callback: code exchange and session bootstrap.

One SessionBridge.handle() call per inbound redirect:

    START -> EXCHANGING -> FAILED_CREDENTIAL | FAILED_OTHER | EXCHANGED
    EXCHANGED -> CHECK_PROFILE (bounded) -> PROVISIONED | UNPROVISIONED

plus PROVIDER_ERROR / MISSING_CODE before the exchange and FAILED_UNEXPECTED
for anything raised along the way. Session cookies written by the SDK go into
the request's CookieJar; render_outcome() only builds the response.
"""

import html
import logging
from dataclasses import dataclass
from enum import Enum
from string import Template
from typing import Callable, Optional
from urllib.parse import quote

from fastapi.responses import HTMLResponse, RedirectResponse
from starlette.responses import Response

from threads_app.config import settings
from threads_app.core.cookies import CookieJar
from threads_app.database.supabase_client import authorize_client
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.auth.service import AuthService
from threads_app.modules.profiles.provisioner import ProfileProvisioner

logger = logging.getLogger(__name__)

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, private",
    "Pragma": "no-cache",
    "Expires": "0",
}

MISSING_CODE_MESSAGE = "No authorization code provided"
UNEXPECTED_MESSAGE = "Unexpected error"
VERIFIER_MISMATCH_MESSAGE = "Your sign-in session expired. Please sign in again."

_VERIFIER_MARKERS = ("pkce", "code verifier", "code_verifier", "code challenge")
_VERIFIER_ERROR_CODES = {"bad_code_verifier", "flow_state_not_found", "flow_state_expired"}


class CallbackState(str, Enum):
    START = "start"
    EXCHANGING = "exchanging"
    EXCHANGED = "exchanged"
    CHECK_PROFILE = "check_profile"
    PROVIDER_ERROR = "provider_error"
    MISSING_CODE = "missing_code"
    FAILED_CREDENTIAL = "failed_credential"
    FAILED_OTHER = "failed_other"
    FAILED_UNEXPECTED = "failed_unexpected"
    PROVISIONED = "provisioned"
    UNPROVISIONED = "unprovisioned"


@dataclass
class CallbackOutcome:
    state: CallbackState
    message: Optional[str] = None
    identity: Optional[Identity] = None


def is_verifier_mismatch(error: Exception) -> bool:
    """True for exchange failures caused by a missing or stale PKCE verifier."""
    code = getattr(error, "code", None)
    if isinstance(code, str) and code.lower() in _VERIFIER_ERROR_CODES:
        return True
    text = f"{type(error).__name__} {getattr(error, 'message', '')} {error}".lower()
    return any(marker in text for marker in _VERIFIER_MARKERS)


def _error_message(error: Exception) -> str:
    message = getattr(error, "message", None) or str(error)
    return message or type(error).__name__


class SessionBridge:
    def __init__(
        self,
        auth_service: AuthService,
        provisioner: ProfileProvisioner,
        jar: CookieJar,
        on_transition: Optional[Callable[[CallbackState], None]] = None,
    ):
        self.auth_service = auth_service
        self.provisioner = provisioner
        self.jar = jar
        self.on_transition = on_transition
        self.state = CallbackState.START

    def _enter(self, state: CallbackState) -> None:
        logger.debug("Auth callback: %s -> %s", self.state.value, state.value)
        self.state = state
        if self.on_transition:
            self.on_transition(state)

    def _finish(self, state: CallbackState, message: Optional[str] = None,
                identity: Optional[Identity] = None) -> CallbackOutcome:
        self._enter(state)
        return CallbackOutcome(state=state, message=message, identity=identity)

    def handle(self, code: Optional[str], error: Optional[str] = None,
               error_description: Optional[str] = None) -> CallbackOutcome:
        try:
            return self._handle(code, error, error_description)
        except Exception:
            logger.exception("Unexpected error in auth callback")
            return self._finish(CallbackState.FAILED_UNEXPECTED, UNEXPECTED_MESSAGE)

    def _handle(self, code, error, error_description) -> CallbackOutcome:
        if error:
            message = error_description or error
            logger.warning("OAuth provider returned error %s: %s", error, message)
            return self._finish(CallbackState.PROVIDER_ERROR, message)
        if not code:
            return self._finish(CallbackState.MISSING_CODE, MISSING_CODE_MESSAGE)

        self._enter(CallbackState.EXCHANGING)
        try:
            response = self.auth_service.exchange_code(code)
        except Exception as e:
            if is_verifier_mismatch(e):
                logger.warning(f"Code exchange failed on verifier check: {_error_message(e)}")
                self._drop_verifier_cookies()
                return self._finish(CallbackState.FAILED_CREDENTIAL, VERIFIER_MISMATCH_MESSAGE)
            logger.error(f"Code exchange failed: {_error_message(e)}")
            return self._finish(CallbackState.FAILED_OTHER, _error_message(e))

        user = getattr(response, "user", None)
        if user is None:
            logger.error("Code exchange returned no user")
            return self._finish(CallbackState.FAILED_OTHER, "No user returned from sign-in")
        identity = Identity.from_user(user)
        session = getattr(response, "session", None)
        if session is not None:
            authorize_client(self.auth_service.supabase, session.access_token)
        self._enter(CallbackState.EXCHANGED)

        self._enter(CallbackState.CHECK_PROFILE)
        profile = self.provisioner.ensure_profile(identity)
        if profile is None:
            return self._finish(CallbackState.UNPROVISIONED, identity=identity)
        logger.info("User %s signed in as %s", identity.id, profile.username)
        return self._finish(CallbackState.PROVISIONED, identity=identity)

    def _drop_verifier_cookies(self) -> None:
        for name in self.jar.names():
            if "code-verifier" in name:
                self.jar.remove(name)


INTERSTITIAL_TEMPLATE = Template("""<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="robots" content="noindex">
<meta http-equiv="refresh" content="$delay;url=$target_attr">
<title>Signing you in again</title>
</head>
<body>
<h1>Sign-in could not be completed</h1>
<p>$message</p>
<p>Clearing saved sign-in data and returning to the login page&hellip;</p>
<script>
try { window.localStorage.clear(); } catch (e) {}
try { window.sessionStorage.clear(); } catch (e) {}
document.cookie.split(";").forEach(function (c) {
  var name = c.split("=")[0].trim();
  if (name) { document.cookie = name + "=; Max-Age=0; path=/"; }
});
setTimeout(function () { window.location.replace($target_js); }, $delay_ms);
</script>
</body>
</html>
""")


def login_redirect_path(param: str, message: str) -> str:
    return f"/login?{param}={quote(message, safe='')}"


def render_interstitial(message: str, delay_seconds: int) -> HTMLResponse:
    target = login_redirect_path("message", message)
    body = INTERSTITIAL_TEMPLATE.substitute(
        delay=delay_seconds,
        delay_ms=delay_seconds * 1000,
        message=html.escape(message),
        target_attr=html.escape(target),
        target_js='"' + target + '"',
    )
    return HTMLResponse(content=body, status_code=200, headers=NO_CACHE_HEADERS)


def render_outcome(outcome: CallbackOutcome, origin: str) -> Response:
    """HTTP response for a terminal callback state."""
    state = outcome.state
    if state == CallbackState.PROVISIONED:
        return RedirectResponse(url=f"{origin}/", headers=NO_CACHE_HEADERS)
    if state == CallbackState.UNPROVISIONED:
        return RedirectResponse(url=f"{origin}/debug")
    if state == CallbackState.FAILED_CREDENTIAL:
        return render_interstitial(outcome.message or VERIFIER_MISMATCH_MESSAGE,
                                   settings.interstitial_redirect_seconds)
    return RedirectResponse(
        url=origin + login_redirect_path("error", outcome.message or UNEXPECTED_MESSAGE)
    )
