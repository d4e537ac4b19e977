"""In-memory stand-ins for the parts of the Supabase client the app uses."""

from __future__ import annotations

import json
import re
import threading
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from itertools import count
from types import SimpleNamespace
from typing import Any, Callable

STORAGE_KEY = "supabase.auth.token"
VERIFIER_KEY = f"{STORAGE_KEY}-code-verifier"

UNIQUE_KEYS = {
    "profiles": [("id",), ("username",)],
    "likes": [("post_id", "user_id")],
}
AUTO_ID_TABLES = {"posts", "comments", "likes"}


class FakeAPIError(Exception):
    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        self.code = code


class FakeAuthError(Exception):
    def __init__(self, message: str, code: str | None = None, status: int = 400):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status = status


@dataclass
class FakeResponse:
    data: list
    count: int | None = None


class FakeDatabase:
    """Tables as lists of dicts plus a log of every executed query."""

    def __init__(self) -> None:
        self.tables: dict[str, list[dict]] = {"profiles": [], "posts": [], "comments": [], "likes": []}
        self.calls: list[tuple[str, str]] = []
        self.insert_errors: dict[str, Exception] = {}
        self.select_errors: dict[str, Exception] = {}
        self._ids = count(1)
        self._clock = datetime(2024, 1, 1, tzinfo=timezone.utc)
        self._tick = count(0)

    def now(self) -> str:
        return (self._clock + timedelta(seconds=next(self._tick))).isoformat()

    def count_calls(self, table: str, op: str) -> int:
        return sum(1 for t, o in self.calls if t == table and o == op)

    def add(self, table: str, row: dict) -> dict:
        row = dict(row)
        if table in AUTO_ID_TABLES and "id" not in row:
            row["id"] = next(self._ids)
        row.setdefault("created_at", self.now())
        if table in ("profiles", "posts"):
            row.setdefault("updated_at", row["created_at"])
        for key in UNIQUE_KEYS.get(table, []):
            values = tuple(row.get(k) for k in key)
            if any(tuple(r.get(k) for k in key) == values for r in self.tables[table]):
                raise FakeAPIError(
                    f'duplicate key value violates unique constraint "{table}_{"_".join(key)}_key"',
                    code="23505",
                )
        self.tables[table].append(row)
        return row


class FakeQuery:
    def __init__(self, db: FakeDatabase, table: str) -> None:
        self.db = db
        self.table = table
        self.op = "select"
        self.columns = "*"
        self.filters: list[Callable[[dict], bool]] = []
        self.payload: Any = None
        self.order_by: tuple[str, bool] | None = None
        self._limit: int | None = None
        self._offset = 0

    def select(self, columns: str = "*", count: str | None = None) -> "FakeQuery":
        self.op = "select"
        self.columns = columns
        return self

    def insert(self, payload: Any) -> "FakeQuery":
        self.op = "insert"
        self.payload = payload
        return self

    def update(self, payload: dict) -> "FakeQuery":
        self.op = "update"
        self.payload = payload
        return self

    def delete(self) -> "FakeQuery":
        self.op = "delete"
        return self

    def eq(self, column: str, value: Any) -> "FakeQuery":
        self.filters.append(lambda row: row.get(column) == value)
        return self

    def in_(self, column: str, values: list) -> "FakeQuery":
        allowed = list(values)
        self.filters.append(lambda row: row.get(column) in allowed)
        return self

    def order(self, column: str, desc: bool = False) -> "FakeQuery":
        self.order_by = (column, desc)
        return self

    def limit(self, n: int) -> "FakeQuery":
        self._limit = n
        return self

    def offset(self, n: int) -> "FakeQuery":
        self._offset = n
        return self

    def _matching(self) -> list[dict]:
        return [row for row in self.db.tables[self.table] if all(f(row) for f in self.filters)]

    def _embed(self, row: dict) -> dict:
        out = dict(row)
        for resource in re.findall(r"(\w+)\(", self.columns):
            if resource == "profiles":
                owner = next((p for p in self.db.tables["profiles"] if p["id"] == row.get("user_id")), None)
                out["profiles"] = dict(owner) if owner else None
        return out

    def execute(self) -> FakeResponse:
        self.db.calls.append((self.table, self.op))
        if self.op == "insert":
            error = self.db.insert_errors.pop(self.table, None)
            if error is not None:
                raise error
            rows = self.payload if isinstance(self.payload, list) else [self.payload]
            return FakeResponse(data=[dict(self.db.add(self.table, r)) for r in rows])
        if self.op == "update":
            matched = self._matching()
            for row in matched:
                row.update(self.payload)
            return FakeResponse(data=[dict(r) for r in matched])
        if self.op == "delete":
            matched = self._matching()
            self.db.tables[self.table] = [r for r in self.db.tables[self.table] if r not in matched]
            return FakeResponse(data=[dict(r) for r in matched])

        error = self.db.select_errors.get(self.table)
        if error is not None:
            raise error
        rows = self._matching()
        if self.order_by:
            column, desc = self.order_by
            rows = sorted(rows, key=lambda r: r.get(column) or "", reverse=desc)
        total = len(rows)
        rows = rows[self._offset:]
        if self._limit is not None:
            rows = rows[: self._limit]
        return FakeResponse(data=[self._embed(r) for r in rows], count=total)


class FakePostgrest:
    def __init__(self) -> None:
        self.tokens: list[str] = []

    def auth(self, token: str) -> None:
        self.tokens.append(token)


class FakeBucket:
    def __init__(self, storage: "FakeStorage", name: str) -> None:
        self.storage = storage
        self.name = name

    def upload(self, path: str, file: bytes, file_options: dict | None = None) -> dict:
        if self.storage.fail_uploads:
            raise FakeAPIError("storage unavailable")
        self.storage.objects[(self.name, path)] = (file, (file_options or {}).get("content-type"))
        return {"Key": f"{self.name}/{path}"}

    def get_public_url(self, path: str) -> str:
        return f"https://fake.supabase.co/storage/v1/object/public/{self.name}/{path}"


class FakeStorage:
    def __init__(self) -> None:
        self.objects: dict[tuple[str, str], tuple[bytes, str | None]] = {}
        self.fail_uploads = False

    def from_(self, bucket: str) -> FakeBucket:
        return FakeBucket(self, bucket)


def make_user(user_id: str, email: str | None = None, **metadata: Any) -> SimpleNamespace:
    return SimpleNamespace(
        id=user_id,
        email=email,
        user_metadata=metadata,
        app_metadata={"provider": "google"},
        identities=[{"provider": "google"}],
    )


@dataclass
class AuthBackend:
    """Auth Service state shared by every client built in a test."""

    users: dict[str, SimpleNamespace] = field(default_factory=dict)
    codes: dict[str, str] = field(default_factory=dict)
    passwords: dict[str, tuple[str, str]] = field(default_factory=dict)
    tokens: dict[str, str] = field(default_factory=dict)
    exchange_error: Exception | None = None
    exchange_calls: list[str] = field(default_factory=list)
    signed_out: list[str] = field(default_factory=list)
    auto_confirm: bool = True
    _counter: Any = field(default_factory=lambda: count(1))

    def add_user(self, user: SimpleNamespace, code: str | None = None, password: str | None = None) -> SimpleNamespace:
        self.users[user.id] = user
        if code:
            self.codes[code] = user.id
        if password and user.email:
            self.passwords[user.email] = (password, user.id)
        return user

    def issue_session(self, user_id: str) -> SimpleNamespace:
        n = next(self._counter)
        token = f"access-{user_id}-{n}"
        self.tokens[token] = user_id
        return SimpleNamespace(
            access_token=token,
            refresh_token=f"refresh-{user_id}-{n}",
            token_type="bearer",
            expires_at=1_900_000_000,
            user=self.users[user_id],
        )


class FakeSubscription:
    def __init__(self, auth: "FakeAuth", callback: Callable) -> None:
        self.auth = auth
        self.callback = callback
        self.active = True

    def unsubscribe(self) -> None:
        self.active = False
        if self in self.auth.subscriptions:
            self.auth.subscriptions.remove(self)


class FakeAuth:
    def __init__(self, backend: AuthBackend, storage: Any = None) -> None:
        self.backend = backend
        self.storage = storage
        self.subscriptions: list[FakeSubscription] = []
        self._session: SimpleNamespace | None = None
        self.session_gate: threading.Event | None = None
        self.get_session_error: Exception | None = None

    # session persistence

    def _save(self, session: SimpleNamespace) -> None:
        self._session = session
        if self.storage is not None:
            self.storage.set_item(STORAGE_KEY, json.dumps({
                "access_token": session.access_token,
                "refresh_token": session.refresh_token,
                "expires_at": session.expires_at,
                "user_id": session.user.id,
            }))

    def _remove(self) -> None:
        self._session = None
        if self.storage is not None:
            self.storage.remove_item(STORAGE_KEY)

    def _notify(self, event: str, session: Any) -> None:
        for sub in list(self.subscriptions):
            sub.callback(event, session)

    def on_auth_state_change(self, callback: Callable) -> FakeSubscription:
        sub = FakeSubscription(self, callback)
        self.subscriptions.append(sub)
        return sub

    def get_session(self) -> SimpleNamespace | None:
        if self.session_gate is not None:
            self.session_gate.wait(timeout=5)
        if self.get_session_error is not None:
            raise self.get_session_error
        if self.storage is not None:
            raw = self.storage.get_item(STORAGE_KEY)
            if raw is None:
                return None
            data = json.loads(raw)
            if data["access_token"] not in self.backend.tokens:
                return None
            return SimpleNamespace(
                access_token=data["access_token"],
                refresh_token=data["refresh_token"],
                token_type="bearer",
                expires_at=data["expires_at"],
                user=self.backend.users[data["user_id"]],
            )
        return self._session

    def get_user(self, jwt: str | None = None) -> SimpleNamespace | None:
        if jwt is None:
            session = self.get_session()
            if session is None:
                return None
            jwt = session.access_token
        user_id = self.backend.tokens.get(jwt)
        if user_id is None:
            raise FakeAuthError("invalid JWT: unable to parse or verify signature", status=401)
        return SimpleNamespace(user=self.backend.users[user_id])

    def exchange_code_for_session(self, params: dict) -> SimpleNamespace:
        code = params["auth_code"]
        self.backend.exchange_calls.append(code)
        if self.backend.exchange_error is not None:
            raise self.backend.exchange_error
        user_id = self.backend.codes.pop(code, None)
        if user_id is None:
            raise FakeAuthError("invalid flow state, no valid flow state found", code="flow_state_not_found_x")
        session = self.backend.issue_session(user_id)
        if self.storage is not None:
            self.storage.remove_item(VERIFIER_KEY)
        self._save(session)
        self._notify("SIGNED_IN", session)
        return SimpleNamespace(user=session.user, session=session)

    def sign_in_with_password(self, credentials: dict) -> SimpleNamespace:
        entry = self.backend.passwords.get(credentials["email"])
        if entry is None or entry[0] != credentials["password"]:
            raise FakeAuthError("Invalid login credentials")
        session = self.backend.issue_session(entry[1])
        self._save(session)
        self._notify("SIGNED_IN", session)
        return SimpleNamespace(user=session.user, session=session)

    def sign_up(self, credentials: dict) -> SimpleNamespace:
        email = credentials["email"]
        if email in self.backend.passwords:
            existing = self.backend.users[self.backend.passwords[email][1]]
            return SimpleNamespace(
                user=SimpleNamespace(id=existing.id, email=email, user_metadata={}, app_metadata={}, identities=[]),
                session=None,
            )
        user_id = f"00000000-0000-4000-8000-{next(self.backend._counter):012d}"
        user = make_user(user_id, email, **credentials.get("options", {}).get("data", {}))
        self.backend.add_user(user, password=credentials["password"])
        if not self.backend.auto_confirm:
            return SimpleNamespace(user=user, session=None)
        session = self.backend.issue_session(user_id)
        self._save(session)
        return SimpleNamespace(user=user, session=session)

    def sign_in_with_oauth(self, credentials: dict) -> SimpleNamespace:
        if self.storage is not None:
            self.storage.set_item(VERIFIER_KEY, "verifier-123")
        redirect_to = credentials["options"]["redirect_to"]
        return SimpleNamespace(
            provider=credentials["provider"],
            url=f"https://fake.supabase.co/auth/v1/authorize?provider={credentials['provider']}&redirect_to={redirect_to}",
        )

    def sign_out(self) -> None:
        session = self.get_session()
        if session is not None:
            self.backend.signed_out.append(session.user.id)
            self.backend.tokens.pop(session.access_token, None)
        self._remove()
        self._notify("SIGNED_OUT", None)


class FakeSupabase:
    def __init__(self, db: FakeDatabase, backend: AuthBackend, storage: Any = None,
                 blobs: FakeStorage | None = None) -> None:
        self.db = db
        self.auth = FakeAuth(backend, storage)
        self.postgrest = FakePostgrest()
        self.storage = blobs or FakeStorage()

    def table(self, name: str) -> FakeQuery:
        return FakeQuery(self.db, name)
