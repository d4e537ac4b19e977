"""
Supabase client lifecycle.

The shared client (anon key, no user session) backs the readiness check. It is
created lazily on first use and can be replaced or dropped through
configure() / reset_client(). It is meant to be initialised from a single
thread (app startup or a test fixture); nothing here is locked.

Per-request clients are built by create_session_client(): they keep the
user's session in cookies through CookieSessionStorage and use the PKCE flow,
so the code verifier set when sign-in starts is found again at the callback.
"""

from typing import Callable, Optional

from supabase import Client, ClientOptions, create_client

from threads_app.config import settings
from threads_app.core.cookies import CookieJar, CookieSessionStorage

SessionClientFactory = Callable[[CookieJar], Client]


def _default_session_factory(jar: CookieJar) -> Client:
    options = ClientOptions(
        storage=CookieSessionStorage(jar),
        flow_type="pkce",
        auto_refresh_token=False,
        persist_session=True,
    )
    return create_client(settings.supabase_url, settings.supabase_key, options=options)


class SupabaseClient:
    _client: Client = None
    _session_factory: Optional[SessionClientFactory] = None

    @classmethod
    def get_client(cls) -> Client:
        if cls._client is None:
            cls._client = create_client(settings.supabase_url, settings.supabase_key)
        return cls._client

    @classmethod
    def create_session_client(cls, jar: CookieJar) -> Client:
        factory = cls._session_factory or _default_session_factory
        return factory(jar)

    @classmethod
    def configure(
        cls,
        client: Optional[Client] = None,
        session_factory: Optional[SessionClientFactory] = None,
    ):
        """Install explicit instances instead of the lazily created ones."""
        cls._client = client
        cls._session_factory = session_factory

    @classmethod
    def reset_client(cls):
        cls._client = None
        cls._session_factory = None


def get_supabase() -> Client:
    return SupabaseClient.get_client()


def authorize_client(client: Client, access_token: str) -> Client:
    """Run Data Store queries on `client` as the owner of `access_token` (RLS)."""
    client.postgrest.auth(access_token)
    return client
