"""
tests/test_token_manager.py -- client/token_manager.py against the real app.

The manager talks to the FastAPI app in-process through httpx.ASGITransport,
so cookies, status codes and error envelopes are the real ones. ASGITransport
does not run the lifespan; the fixture wires app.state directly.
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import httpx
import pytest
import pytest_asyncio

from api.main import app
from auth.session import AuthService
from auth.store import UserStore
from client.token_manager import AuthRequestFailed, ReauthenticationRequired, TokenManager
from core.clock import FrozenClock

PASSWORD = "correct-horse-42"
VERIFY = "/api/v1/auth/verify"


class RefreshCounter:
    def __init__(self) -> None:
        self.calls = 0

    async def __call__(self, request: httpx.Request) -> None:
        if request.url.path.endswith("/refresh"):
            self.calls += 1


@pytest.fixture
def refresh_counter() -> RefreshCounter:
    return RefreshCounter()


@pytest_asyncio.fixture
async def http(store: UserStore, service: AuthService, refresh_counter: RefreshCounter) -> AsyncIterator[httpx.AsyncClient]:
    app.state.user_store = store
    app.state.auth_service = service
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://testserver",
        event_hooks={"request": [refresh_counter]},
    ) as client:
        yield client


@pytest.fixture
def reauth_calls() -> list:
    return []


@pytest.fixture
def manager(http: httpx.AsyncClient, reauth_calls: list) -> TokenManager:
    return TokenManager(http, on_reauth=lambda: reauth_calls.append(True))


@pytest.mark.asyncio
async def test_login_then_authenticated_request(manager: TokenManager) -> None:
    await manager.signup("Ada", "ada@example.com", PASSWORD)
    manager.clear()

    user = await manager.login("ada@example.com", PASSWORD)
    assert user["email"] == "ada@example.com"
    assert manager.is_authenticated

    resp = await manager.request("GET", VERIFY)
    assert resp.status_code == 200
    assert resp.json()["user"]["id"] == user["id"]


@pytest.mark.asyncio
async def test_refresh_token_is_never_exposed_to_manager(manager: TokenManager) -> None:
    await manager.signup("Ada", "ada@example.com", PASSWORD)
    assert "refresh_token" not in manager.user
    assert manager.access_token


@pytest.mark.asyncio
async def test_expired_token_is_refreshed_once_for_concurrent_requests(
    manager: TokenManager, clock: FrozenClock, refresh_counter: RefreshCounter, reauth_calls: list
) -> None:
    await manager.signup("Ada", "ada@example.com", PASSWORD)
    stale = manager.access_token
    clock.advance(minutes=16)

    responses = await asyncio.gather(*(manager.request("GET", VERIFY) for _ in range(5)))

    assert [r.status_code for r in responses] == [200] * 5
    assert refresh_counter.calls == 1
    assert manager.access_token != stale
    assert reauth_calls == []


@pytest.mark.asyncio
async def test_failed_refresh_forces_reauthentication(
    manager: TokenManager, http: httpx.AsyncClient, clock: FrozenClock, reauth_calls: list
) -> None:
    await manager.signup("Ada", "ada@example.com", PASSWORD)
    http.cookies.clear()
    clock.advance(minutes=16)

    with pytest.raises(ReauthenticationRequired) as excinfo:
        await manager.request("GET", VERIFY)

    assert excinfo.value.code == "NO_TOKEN"
    assert manager.access_token is None
    assert not manager.is_authenticated
    assert reauth_calls == [True]


@pytest.mark.asyncio
async def test_revoked_refresh_forces_reauthentication(
    manager: TokenManager, service: AuthService, clock: FrozenClock, reauth_calls: list
) -> None:
    await manager.signup("Ada", "ada@example.com", PASSWORD)
    service.logout(manager.user["id"])
    clock.advance(minutes=16)

    with pytest.raises(ReauthenticationRequired) as excinfo:
        await manager.request("GET", VERIFY)

    assert excinfo.value.code == "REFRESH_TOKEN_REVOKED"
    assert reauth_calls == [True]


@pytest.mark.asyncio
async def test_non_expiry_401_skips_refresh(
    manager: TokenManager, refresh_counter: RefreshCounter, reauth_calls: list
) -> None:
    manager.set_access_token("not.a.token")

    with pytest.raises(ReauthenticationRequired) as excinfo:
        await manager.request("GET", VERIFY)

    assert excinfo.value.code == "INVALID_TOKEN"
    assert refresh_counter.calls == 0
    assert manager.access_token is None
    assert reauth_calls == [True]


@pytest.mark.asyncio
async def test_rejected_login_raises_with_server_code(manager: TokenManager) -> None:
    await manager.signup("Ada", "ada@example.com", PASSWORD)
    manager.clear()

    with pytest.raises(AuthRequestFailed) as excinfo:
        await manager.login("ada@example.com", "wrong-password")

    assert excinfo.value.status_code == 401
    assert excinfo.value.code == "INVALID_CREDENTIALS"
    assert excinfo.value.detail == {"attempts_left": 4}
    assert not manager.is_authenticated


@pytest.mark.asyncio
async def test_logout_revokes_server_side_and_clears_locally(
    manager: TokenManager, store: UserStore
) -> None:
    user = await manager.signup("Ada", "ada@example.com", PASSWORD)

    await manager.logout()

    assert not manager.is_authenticated
    assert manager.user is None
    assert store.get_by_id(user["id"]).refresh_token is None


@pytest.mark.asyncio
async def test_logout_without_session_is_local_only(manager: TokenManager, refresh_counter: RefreshCounter) -> None:
    await manager.logout()
    assert not manager.is_authenticated
    assert refresh_counter.calls == 0
