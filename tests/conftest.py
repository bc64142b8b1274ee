"""
tests/conftest.py -- Shared test fixtures for AssetDesk.

This module provides:
  - store: a fresh in-memory UserStore per test (unit tests, single thread)
  - make_user(): creates a persisted user with sensible defaults
  - FakeClock: a settable clock for lockout and token expiry tests
  - api_client: TestClient against the real app with an isolated store and
    an Admin token

Design: Named shared-memory SQLite URIs (not plain :memory:) are required for
the TestClient fixtures because TestClient runs sync route handlers in a
thread pool. Plain :memory: DBs are per-connection and would present a blank
schema to each worker thread.

Environment variables must be set before any auth/core import:
  DEBUG=true          -- get_settings() auto-generates SECRET_KEY
  BCRYPT_ROUNDS=4     -- keeps password hashing fast
  *_RATE_LIMIT        -- high enough that a module's tests never trip them
  ALLOWED_HOSTS       -- admits the TestClient host
"""

from __future__ import annotations

import asyncio
import os
from collections.abc import Generator
from contextlib import asynccontextmanager
from datetime import datetime, timedelta, timezone

# CRITICAL: Set before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("REGISTER_RATE_LIMIT", "1000/minute")
# TestClient sends Host: testserver.
os.environ.setdefault("ALLOWED_HOSTS", '["testserver", "localhost"]')

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.models import User
from auth.store import UserStore
from auth.tokens import create_access_token


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


def make_user(store: UserStore, username: str = "alice", **overrides) -> User:
    """Create and return a persisted user. Password defaults to 'secret1'."""
    fields = {
        "username": username,
        "email": f"{username}@example.com",
        "password": "secret1",
        "first_name": username.capitalize(),
        "last_name": "Tester",
        "role": "Employee",
    }
    fields.update(overrides)
    return store.create(User(**fields))


@pytest.fixture
def store() -> Generator[UserStore, None, None]:
    s = UserStore("sqlite:///:memory:")
    yield s
    s.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# API fixtures
# ---------------------------------------------------------------------------


def _make_shared_store(name: str) -> UserStore:
    return UserStore(f"sqlite:///file:test_auth_{name}?mode=memory&cache=shared&uri=true")


def _patch_lifespan(user_store: UserStore):
    """Return a lifespan that wires the test store into app.state.

    The real lifespan would open the DATABASE_URL database; tests must never
    touch it.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = user_store
        await asyncio.sleep(0)
        yield

    return test_lifespan


@pytest.fixture(scope="module")
def api_client(request) -> Generator[tuple[TestClient, str, UserStore], None, None]:
    """Yield (client, admin_token, store) for API integration tests.

    One TestClient and one isolated store per test module. The admin user
    (admin@example.com / adminpass1) exists before the client starts.
    """
    user_store = _make_shared_store(request.module.__name__.replace(".", "_"))
    admin = make_user(
        user_store,
        "admin",
        password="adminpass1",
        role="Admin",
        first_name="Site",
        last_name="Admin",
    )
    token = create_access_token(admin)

    app.router.lifespan_context = _patch_lifespan(user_store)

    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, token, user_store

    user_store.close()


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}
