"""
Auth state for one signed-in client (a browser tab, a script, a debug request).

The context is a small state machine:

    UNINITIALIZED -> CHECKING -> AUTHENTICATED | ANONYMOUS

start() subscribes to session-change notifications, then runs the initial
session check. Notifications that arrive while the check is in flight are
queued and applied, in order, once it has resolved, so the initial check can
never overwrite a newer event. If nothing resolves within `timeout` seconds
the context gives up waiting: loading becomes False and the phase ANONYMOUS.

SDK calls are blocking and run in worker threads. close() does not interrupt
them; whatever they return afterwards is dropped.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from threads_app.config import settings
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.profiles.schemas import ProfileResponse
from threads_app.modules.profiles.service import ProfileService

logger = logging.getLogger(__name__)

SESSION_EVENTS = {
    "INITIAL_SESSION",
    "SIGNED_IN",
    "SIGNED_OUT",
    "TOKEN_REFRESHED",
    "USER_UPDATED",
}


class AuthPhase(str, Enum):
    UNINITIALIZED = "uninitialized"
    CHECKING = "checking"
    AUTHENTICATED = "authenticated"
    ANONYMOUS = "anonymous"


@dataclass(frozen=True)
class AuthSnapshot:
    phase: AuthPhase
    identity: Optional[Identity]
    profile: Optional[ProfileResponse]
    loading: bool


class AuthContext:
    def __init__(self, client: Any, profiles: Optional[ProfileService] = None,
                 timeout: Optional[float] = None):
        self.client = client
        self.profiles = profiles or ProfileService(client)
        self.timeout = timeout if timeout is not None else settings.auth_context_timeout_seconds
        self.phase = AuthPhase.UNINITIALIZED
        self.identity: Optional[Identity] = None
        self.profile: Optional[ProfileResponse] = None
        self.loading = True
        self._closed = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._events: Optional[asyncio.Queue] = None
        self._resolved: Optional[asyncio.Event] = None
        self._subscription = None
        self._timeout_handle: Optional[asyncio.TimerHandle] = None
        self._check_task: Optional[asyncio.Task] = None
        self._worker: Optional[asyncio.Task] = None

    async def __aenter__(self) -> "AuthContext":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    async def start(self) -> None:
        if self.phase != AuthPhase.UNINITIALIZED:
            raise RuntimeError("AuthContext already started")
        self._loop = asyncio.get_running_loop()
        self._events = asyncio.Queue()
        self._resolved = asyncio.Event()
        self._subscription = self.client.auth.on_auth_state_change(self._on_auth_event)
        self.phase = AuthPhase.CHECKING
        self._timeout_handle = self._loop.call_later(self.timeout, self._on_timeout)
        self._check_task = asyncio.create_task(self._initial_check())
        self._worker = asyncio.create_task(self._drain_events())

    def snapshot(self) -> AuthSnapshot:
        return AuthSnapshot(
            phase=self.phase,
            identity=self.identity,
            profile=self.profile,
            loading=self.loading,
        )

    async def wait_until_loaded(self) -> AuthSnapshot:
        """Return once the initial check has resolved or timed out."""
        if self._resolved is None:
            raise RuntimeError("AuthContext not started")
        await self._resolved.wait()
        return self.snapshot()

    async def settle(self) -> AuthSnapshot:
        """Wait for the initial check and every queued session event."""
        await self.wait_until_loaded()
        await asyncio.sleep(0)
        await self._events.join()
        return self.snapshot()

    async def refresh_profile(self) -> Optional[ProfileResponse]:
        if self.identity is None:
            return None
        profile = await self._fetch_profile(self.identity.id)
        if not self._closed:
            self.profile = profile
        return self.profile

    async def sign_out(self) -> None:
        try:
            await asyncio.to_thread(self.client.auth.sign_out)
        except Exception as e:
            logger.error(f"Sign-out failed: {str(e)}")
        if not self._closed:
            self._set_state(None, None)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        if self._subscription is not None:
            try:
                self._subscription.unsubscribe()
            except Exception as e:
                logger.warning(f"Unsubscribe failed: {str(e)}")
            self._subscription = None
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        for task in (self._check_task, self._worker):
            if task is not None and not task.done():
                task.cancel()

    # Internal

    def _on_auth_event(self, event: str, session: Any) -> None:
        """Session-change callback; may be invoked from an SDK worker thread."""
        if self._closed or self._loop is None:
            return
        if event not in SESSION_EVENTS:
            logger.debug("Ignoring auth event %s", event)
            return
        self._loop.call_soon_threadsafe(self._enqueue, event, session)

    def _enqueue(self, event: str, session: Any) -> None:
        if not self._closed:
            self._events.put_nowait((event, session))

    async def _initial_check(self) -> None:
        identity = None
        profile = None
        try:
            session = await asyncio.to_thread(self.client.auth.get_session)
            user = getattr(session, "user", None) if session else None
            if user is not None:
                identity = Identity.from_user(user)
                profile = await self._fetch_profile(identity.id)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Initial session check failed: {str(e)}")
            identity = None
            profile = None
        if self._closed or self._resolved.is_set():
            return
        self._set_state(identity, profile)
        self._resolve()

    def _on_timeout(self) -> None:
        self._timeout_handle = None
        if self._closed or self._resolved.is_set():
            return
        logger.warning("Auth state still unknown after %.1fs; continuing signed out", self.timeout)
        self._set_state(None, None)
        self._resolve()
        if self._check_task is not None and not self._check_task.done():
            self._check_task.cancel()

    def _resolve(self) -> None:
        if self._timeout_handle is not None:
            self._timeout_handle.cancel()
            self._timeout_handle = None
        self._resolved.set()

    async def _drain_events(self) -> None:
        await self._resolved.wait()
        while True:
            event, session = await self._events.get()
            try:
                if not self._closed:
                    await self._apply_event(event, session)
            except Exception as e:
                logger.error(f"Failed to apply auth event {event}: {str(e)}")
            finally:
                self._events.task_done()

    async def _apply_event(self, event: str, session: Any) -> None:
        logger.info("Auth event %s", event)
        user = getattr(session, "user", None) if session else None
        if user is None:
            self._set_state(None, None)
            return
        identity = Identity.from_user(user)
        profile = await self._fetch_profile(identity.id)
        if not self._closed:
            self._set_state(identity, profile)

    async def _fetch_profile(self, user_id: str) -> Optional[ProfileResponse]:
        try:
            return await asyncio.to_thread(self.profiles.find_by_id, user_id)
        except Exception as e:
            logger.error(f"Error fetching profile for {user_id}: {str(e)}")
            return None

    def _set_state(self, identity: Optional[Identity], profile: Optional[ProfileResponse]) -> None:
        self.identity = identity
        self.profile = profile
        self.phase = AuthPhase.AUTHENTICATED if identity else AuthPhase.ANONYMOUS
        self.loading = False
