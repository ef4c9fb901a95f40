"""
tests/conftest.py -- Shared test fixtures for tokengate.

This module provides:
  - clock:        FrozenClock shared by token service and lockout policy
  - store:        UserStore on a per-test SQLite file
  - service:      AuthService wired from Settings + the two above
  - api_client:   TestClient against the real app with a patched lifespan

Design: per-test SQLite *files* under tmp_path rather than named shared-memory
URIs. The concurrency tests hit the store from several threads at once, and
shared-cache memory databases use table-level locking that fails fast with
"database table is locked" instead of waiting; file databases in WAL mode
wait on the busy timeout like production does.

DEBUG must be set before any auth/core import so get_settings() auto-generates
the signing secrets in dev mode instead of raising ValueError. BCRYPT_ROUNDS=4
keeps the suite fast; the cost factor does not change any behavior under test.
"""

from __future__ import annotations

import os
from collections.abc import Generator
from contextlib import asynccontextmanager

# CRITICAL: Set env before any auth/core import.
os.environ.setdefault("DEBUG", "true")
os.environ.setdefault("BCRYPT_ROUNDS", "4")

import pytest
from fastapi.testclient import TestClient

from api.main import app
from auth.session import AuthService, create_auth_service
from auth.store import UserStore
from core.clock import FrozenClock
from core.config import get_settings

PASSWORD = "correct-horse-42"


def _patch_lifespan(store: UserStore, service: AuthService):
    """Return an async context manager that replaces the real lifespan.

    Wires the test store and service into app.state so TestClient routes see
    an isolated database and a controllable clock.
    """

    @asynccontextmanager
    async def test_lifespan(app):
        app.state.user_store = store
        app.state.auth_service = service
        yield

    return test_lifespan


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def store(tmp_path) -> Generator[UserStore, None, None]:
    s = UserStore(f"sqlite:///{tmp_path / 'auth.db'}")
    yield s
    s.close()


@pytest.fixture
def service(store: UserStore, clock: FrozenClock) -> AuthService:
    return create_auth_service(get_settings(), store, clock=clock)


@pytest.fixture
def api_client(store: UserStore, service: AuthService, clock: FrozenClock) -> Generator[tuple[TestClient, FrozenClock], None, None]:
    """Yield (client, clock) for HTTP integration tests.

    The TestClient keeps a cookie jar, so the refresh cookie set by
    signup/login is replayed to /refresh automatically -- exactly like a
    browser would.
    """
    app.router.lifespan_context = _patch_lifespan(store, service)
    with TestClient(app, raise_server_exceptions=True) as client:
        yield client, clock


@pytest.fixture
def registered(service: AuthService):
    """A signed-up user; returns the AuthResult of the signup."""
    return service.signup("Ada Lovelace", "ada@example.com", PASSWORD)
