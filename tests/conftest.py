"""
tests/conftest.py -- Shared test fixtures for authcore.

This module provides:
  - FakeClock: a callable clock the session cache reads instead of real time
  - store / sessions / settings / service: isolated auth core per test
  - client: TestClient on the real app with a patched lifespan
  - new_signup / new_user: factories for signup bodies and signed-up users
    (password "_Abc123456" unless overridden)

Design: Named shared-memory SQLite URIs (not plain :memory:) are required
because TestClient runs route handlers in a thread pool. Plain :memory: DBs
are per-connection and would present a blank schema to each worker thread.
Each test gets its own database name so state never leaks between tests.

The DEBUG env var must be set before any api/ or core/ import so
get_settings() auto-generates signing secrets instead of raising ValueError.
"""

from __future__ import annotations

import asyncio
import os
import uuid
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set DEBUG before any api/core import so get_settings() can
# auto-generate secrets in dev mode instead of raising ValueError.
os.environ.setdefault("DEBUG", "true")

import pytest
from fastapi.testclient import TestClient

from api.main import app, build_auth_service
from auth.service import AuthService
from auth.store import CredentialStore
from cache.store import MemorySessionCache
from core.config import Settings

STRONG_PASSWORD = "_Abc123456"


class FakeClock:
    """Manually advanced clock, in seconds."""

    def __init__(self, start: float = 1_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def signup_payload(**overrides) -> dict:
    """Return a valid camelCase signup body with a unique email."""
    body = {
        "email": f"user-{uuid.uuid4().hex[:12]}@example.com",
        "firstName": "Ada",
        "lastName": "Lovelace",
        "password": STRONG_PASSWORD,
    }
    body.update(overrides)
    return body


def make_user(service: AuthService, password: str = STRONG_PASSWORD, **overrides):
    """Sign up a fresh user through the service and return it."""
    body = signup_payload(password=password, **overrides)
    return service.signup(
        email=body["email"],
        password=body["password"],
        first_name=body["firstName"],
        last_name=body["lastName"],
        business_name=body.get("businessName"),
        country_code=body.get("countryCode"),
    )


# ---------------------------------------------------------------------------
# Auth core fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> Generator[CredentialStore, None, None]:
    url = f"sqlite:///file:test_auth_{uuid.uuid4().hex}?mode=memory&cache=shared&uri=true"
    s = CredentialStore(db_url=url)
    yield s
    s.flush()
    s.close()


@pytest.fixture
def sessions(clock: FakeClock) -> MemorySessionCache:
    return MemorySessionCache(clock=clock)


@pytest.fixture
def settings() -> Settings:
    # 4 bcrypt rounds keeps hashing fast; production default is 12.
    return Settings(_env_file=None, debug=True, bcrypt_rounds=4)


@pytest.fixture
def service(settings: Settings, store: CredentialStore, sessions: MemorySessionCache) -> AuthService:
    return build_auth_service(settings, store, sessions)


# ---------------------------------------------------------------------------
# HTTP fixtures
# ---------------------------------------------------------------------------


def _patch_lifespan(store: CredentialStore, sessions: MemorySessionCache, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the per-test store, cache and service into app.state so TestClient
    routes use them instead of the configured databases.

    The purge_task is a long-sleeping coroutine (a real asyncio.Task is
    required so .cancel() works on shutdown).
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.credential_store = store
        app.state.sessions = sessions
        app.state.auth_service = service
        app.state.purge_task = asyncio.create_task(asyncio.sleep(99999))
        yield
        app.state.purge_task.cancel()

    return test_lifespan


@pytest.fixture
def client(
    store: CredentialStore, sessions: MemorySessionCache, service: AuthService
) -> Generator[TestClient, None, None]:
    app.router.lifespan_context = _patch_lifespan(store, sessions, service)
    with TestClient(app, raise_server_exceptions=True) as c:
        yield c


# ---------------------------------------------------------------------------
# Factories
# ---------------------------------------------------------------------------


@pytest.fixture
def new_signup():
    """Factory for valid signup bodies: new_signup(email=...) -> dict."""
    return signup_payload


@pytest.fixture
def new_user(service: AuthService):
    """Factory that signs up a user through the service: new_user(password=...) -> User."""

    def _make(password: str = STRONG_PASSWORD, **overrides):
        return make_user(service, password=password, **overrides)

    return _make
