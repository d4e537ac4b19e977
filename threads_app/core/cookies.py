"""
Request-scoped cookie handling for the Supabase session.

CookieJar reads the incoming request cookies once and records every change
as a diff. Reads made later in the same request observe pending changes.
The diff is written to the outgoing response in one place (the session
middleware), never to the request.

CookieSessionStorage exposes the jar through the storage interface the
Supabase auth client expects (get_item / set_item / remove_item).
"""

import base64
import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Tuple

from starlette.responses import Response

logger = logging.getLogger(__name__)

BASE64_PREFIX = "base64-"
MAX_CHUNK_SIZE = 3180


@dataclass(frozen=True)
class CookieChange:
    name: str
    value: str
    max_age: Optional[int]

    @property
    def is_removal(self) -> bool:
        return self.max_age == 0


class CookieJar:
    def __init__(self, cookies: Mapping[str, str], secure: bool = False, max_age: Optional[int] = None):
        self._cookies: Dict[str, str] = dict(cookies)
        self._changes: Dict[str, CookieChange] = {}
        self.secure = secure
        self.max_age = max_age

    def get(self, name: str) -> Optional[str]:
        change = self._changes.get(name)
        if change is not None:
            return None if change.is_removal else change.value
        return self._cookies.get(name)

    def names(self) -> List[str]:
        names = [n for n in self._cookies if n not in self._changes]
        names.extend(n for n, c in self._changes.items() if not c.is_removal)
        return sorted(names)

    def set(self, name: str, value: str) -> None:
        self._changes[name] = CookieChange(name=name, value=value, max_age=self.max_age)

    def remove(self, name: str) -> None:
        if name in self._cookies:
            self._changes[name] = CookieChange(name=name, value="", max_age=0)
        else:
            # Never reached the browser, nothing to expire
            self._changes.pop(name, None)

    @property
    def changes(self) -> List[CookieChange]:
        return list(self._changes.values())

    def apply(self, response: Response) -> Response:
        """Write the recorded diff onto the outgoing response."""
        for change in self._changes.values():
            response.set_cookie(
                key=change.name,
                value=change.value,
                max_age=change.max_age,
                path="/",
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )
        return response

    def header_items(self) -> List[Tuple[bytes, bytes]]:
        """Raw Set-Cookie headers for ASGI middleware."""
        carrier = Response()
        self.apply(carrier)
        return [(k, v) for k, v in carrier.raw_headers if k == b"set-cookie"]


def _encode(value: str) -> str:
    encoded = base64.urlsafe_b64encode(value.encode("utf-8")).decode("ascii").rstrip("=")
    return BASE64_PREFIX + encoded


def _decode(value: str) -> str:
    if not value.startswith(BASE64_PREFIX):
        return value
    data = value[len(BASE64_PREFIX):]
    padding = "=" * (-len(data) % 4)
    return base64.urlsafe_b64decode(data + padding).decode("utf-8")


class CookieSessionStorage:
    """Sync storage backend for the Supabase auth client, persisted in cookies."""

    def __init__(self, jar: CookieJar, chunk_size: int = MAX_CHUNK_SIZE):
        self.jar = jar
        self.chunk_size = chunk_size

    def _chunk_names(self, key: str) -> List[str]:
        names = []
        index = 0
        while self.jar.get(f"{key}.{index}") is not None:
            names.append(f"{key}.{index}")
            index += 1
        return names

    def get_item(self, key: str) -> Optional[str]:
        value = self.jar.get(key)
        if value is None:
            chunks = [self.jar.get(name) for name in self._chunk_names(key)]
            if not chunks:
                return None
            value = "".join(chunks)
        try:
            return _decode(value)
        except ValueError:
            logger.warning("Discarding undecodable session cookie %s", key)
            return None

    def set_item(self, key: str, value: str) -> None:
        encoded = _encode(value)
        stale = self._chunk_names(key)
        if len(encoded) <= self.chunk_size:
            self.jar.set(key, encoded)
            for name in stale:
                self.jar.remove(name)
            return
        self.jar.remove(key)
        chunks = [encoded[i:i + self.chunk_size] for i in range(0, len(encoded), self.chunk_size)]
        for index, chunk in enumerate(chunks):
            self.jar.set(f"{key}.{index}", chunk)
        for name in stale[len(chunks):]:
            self.jar.remove(name)

    def remove_item(self, key: str) -> None:
        for name in self._chunk_names(key):
            self.jar.remove(name)
        self.jar.remove(key)
