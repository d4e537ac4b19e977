"""
Profile provisioning for freshly authenticated identities.

ensure_profile() reads the profile row and inserts one on the first miss; a
successful insert returns the new row at once. Otherwise it keeps reading
with a fixed pause until the row shows up or the attempts run out. The row
may also be created by a database trigger, so a failed insert is not fatal
by itself.
"""

import logging
import re
import time
from itertools import count
from typing import Callable, Iterable, List, Optional

from threads_app.config import settings
from threads_app.core.retry import retry_until_result
from threads_app.modules.auth.schemas import Identity
from threads_app.modules.profiles.schemas import ProfileCreate, ProfileResponse
from threads_app.modules.profiles.service import ProfileService

logger = logging.getLogger(__name__)

_INVALID_USERNAME_CHARS = re.compile(r"[^a-z0-9_]")


def normalize_username(raw: str) -> str:
    return _INVALID_USERNAME_CHARS.sub("_", raw.strip().lower())


def _username_sources(identity: Identity) -> Iterable[Optional[str]]:
    metadata = identity.user_metadata or {}
    yield metadata.get("username")
    yield metadata.get("preferred_username")
    yield metadata.get("full_name")
    yield metadata.get("name")
    if identity.email:
        yield identity.email.split("@")[0]


def derive_username(identity: Identity) -> str:
    """Deterministic username candidate from provider metadata."""
    for source in _username_sources(identity):
        if isinstance(source, str) and source.strip():
            return normalize_username(source)
    return f"user_{normalize_username(identity.id[:8])}"


def username_candidates(identity: Identity) -> List[str]:
    base = derive_username(identity)
    suffix = normalize_username(identity.id)
    candidates = [base, f"{base}_{suffix[:4]}", f"{base}_{suffix[:8]}"]
    return list(dict.fromkeys(candidates))


def _display_name(identity: Identity, username: str) -> str:
    metadata = identity.user_metadata or {}
    return metadata.get("full_name") or metadata.get("name") or username


def _avatar_url(identity: Identity) -> Optional[str]:
    metadata = identity.user_metadata or {}
    return metadata.get("avatar_url") or metadata.get("picture") or None


class ProfileProvisioner:
    def __init__(
        self,
        profiles: ProfileService,
        attempts: Optional[int] = None,
        delay: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.profiles = profiles
        self.attempts = attempts if attempts is not None else settings.profile_lookup_attempts
        self.delay = delay if delay is not None else settings.profile_lookup_delay_seconds
        self.sleep = sleep

    def ensure_profile(self, identity: Identity) -> Optional[ProfileResponse]:
        """Profile for `identity`, creating it if needed; None if it never appeared."""
        attempt_numbers = count(1)

        def attempt() -> Optional[ProfileResponse]:
            number = next(attempt_numbers)
            profile = self._lookup(identity, number)
            if profile is None and number == 1:
                profile = self._insert(identity)
            return profile

        profile = retry_until_result(attempt, self.attempts, self.delay, sleep=self.sleep)
        if profile is None:
            logger.warning(
                "No profile for user %s after %d lookups", identity.id, self.attempts
            )
        return profile

    def _lookup(self, identity: Identity, number: int) -> Optional[ProfileResponse]:
        try:
            profile = self.profiles.find_by_id(identity.id)
        except Exception as e:
            logger.error(f"Profile lookup {number} failed for {identity.id}: {str(e)}")
            return None
        if profile is None:
            logger.info("Profile lookup %d for %s: not found", number, identity.id)
        return profile

    def _pick_username(self, identity: Identity) -> str:
        candidates = username_candidates(identity)
        for candidate in candidates:
            if self.profiles.is_username_available(candidate):
                return candidate
            logger.info("Username %s already taken", candidate)
        return candidates[-1]

    def _insert(self, identity: Identity) -> Optional[ProfileResponse]:
        """Insert the profile row; None if the insert failed."""
        try:
            username = self._pick_username(identity)
            profile = self.profiles.create_profile(ProfileCreate(
                id=identity.id,
                username=username,
                full_name=_display_name(identity, username),
                avatar_url=_avatar_url(identity),
            ))
            logger.info("Created profile %s for user %s", username, identity.id)
            return profile
        except Exception as e:
            logger.error(f"Profile insert failed for {identity.id}: {str(e)}")
            return None
