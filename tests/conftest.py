# tests/conftest.py
from __future__ import annotations

import os
from collections.abc import Iterator

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

os.environ.setdefault("SUPABASE_URL", "https://fake.supabase.co")
os.environ.setdefault("SUPABASE_KEY", "anon-test-key")
os.environ.setdefault("ENVIRONMENT", "test")

from threads_app.config import settings
from threads_app.core.cookies import CookieSessionStorage
from threads_app.database.supabase_client import SupabaseClient
from threads_app.main import app as fastapi_app

from tests.fakes import AuthBackend, FakeDatabase, FakeStorage, FakeSupabase, make_user

ALICE_ID = "a1b2c3d4-0000-4000-8000-000000000001"
BOB_ID = "b5e6f7a8-0000-4000-8000-000000000002"


@pytest.fixture()
def db() -> FakeDatabase:
    return FakeDatabase()


@pytest.fixture()
def auth_backend() -> AuthBackend:
    return AuthBackend()


@pytest.fixture()
def blobs() -> FakeStorage:
    return FakeStorage()


@pytest.fixture()
def session_clients() -> list:
    """Every cookie-backed client built during a test, in creation order."""
    return []


@pytest.fixture(autouse=True)
def fast_bootstrap(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "profile_lookup_delay_seconds", 0.0)
    monkeypatch.setattr(settings, "site_url", None)


@pytest.fixture(autouse=True)
def fake_supabase(db, auth_backend, blobs, session_clients) -> Iterator[FakeSupabase]:
    shared = FakeSupabase(db, auth_backend, blobs=blobs)

    def session_factory(jar):
        client = FakeSupabase(db, auth_backend, storage=CookieSessionStorage(jar), blobs=blobs)
        session_clients.append(client)
        return client

    SupabaseClient.configure(client=shared, session_factory=session_factory)
    try:
        yield shared
    finally:
        SupabaseClient.reset_client()


@pytest.fixture(scope="session")
def app() -> FastAPI:
    return fastapi_app


@pytest.fixture()
def client(app: FastAPI) -> Iterator[TestClient]:
    with TestClient(app, base_url="http://testserver", follow_redirects=False) as test_client:
        yield test_client


@pytest.fixture()
def alice(auth_backend: AuthBackend):
    return auth_backend.add_user(
        make_user(ALICE_ID, "alice@example.com", full_name="Alice Liddell", avatar_url="https://img/alice.png"),
        code="alice-code",
        password="wonderland",
    )


@pytest.fixture()
def bob(auth_backend: AuthBackend):
    return auth_backend.add_user(
        make_user(BOB_ID, "bob@example.com", name="Bob"),
        code="bob-code",
        password="builder123",
    )


@pytest.fixture()
def alice_profile(db: FakeDatabase, alice) -> dict:
    return db.add("profiles", {"id": ALICE_ID, "username": "alice", "full_name": "Alice Liddell"})


@pytest.fixture()
def bob_profile(db: FakeDatabase, bob) -> dict:
    return db.add("profiles", {"id": BOB_ID, "username": "bob", "full_name": "Bob"})


@pytest.fixture()
def alice_client(client: TestClient, alice, alice_profile) -> TestClient:
    """Client holding Alice's session cookies, as after a finished OAuth callback."""
    response = client.get("/auth/callback", params={"code": "alice-code"})
    assert response.status_code in (302, 307)
    return client


@pytest.fixture()
def bob_headers(auth_backend: AuthBackend, bob, bob_profile) -> dict:
    session = auth_backend.issue_session(BOB_ID)
    return {"Authorization": f"Bearer {session.access_token}"}
