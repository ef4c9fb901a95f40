"""
client/token_manager.py -- Client-side access-token holder with silent refresh.

TokenManager is the companion of the server's session protocol on the other
side of the trust boundary:

  - The access token lives only in this object's memory. It is attached as
    `Authorization: Bearer` to every request made through request().
  - The refresh token is never seen by this code. The server sets it as an
    httpOnly cookie and the httpx cookie jar replays it to /refresh.
  - A 401 with code TOKEN_EXPIRED triggers exactly one silent refresh and
    one retry of the original request. Concurrent requests that hit the same
    expiry share a single POST /refresh through SingleFlight.
  - Any other 401, or a failed refresh, wipes the local credential, fires
    the on_reauth callback once, and raises ReauthenticationRequired.

Usage:
    async with httpx.AsyncClient(base_url="https://auth.example.com") as http:
        manager = TokenManager(http, on_reauth=show_login_screen)
        await manager.login("ada@example.com", "correct horse")
        response = await manager.request("GET", "/api/v1/auth/verify")
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

import httpx

from client.single_flight import SingleFlight

logger = logging.getLogger("tokengate.client")

_TOKEN_EXPIRED = "TOKEN_EXPIRED"


class ReauthenticationRequired(Exception):
    """The local credential is gone; the user has to log in again."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"re-authentication required ({code})")


class AuthRequestFailed(Exception):
    """signup/login rejected by the server (wrong password, locked, duplicate...)."""

    def __init__(self, status_code: int, code: str, message: str, detail: Any = None) -> None:
        self.status_code = status_code
        self.code = code
        self.detail = detail
        super().__init__(message)


def _error_payload(response: httpx.Response) -> dict:
    try:
        body = response.json()
    except ValueError:
        return {}
    error = body.get("error") if isinstance(body, dict) else None
    return error if isinstance(error, dict) else {}


class TokenManager:
    def __init__(
        self,
        http: httpx.AsyncClient,
        *,
        auth_prefix: str = "/api/v1/auth",
        on_reauth: Callable[[], None] | None = None,
    ) -> None:
        self._http = http
        self._auth_prefix = auth_prefix.rstrip("/")
        self._on_reauth = on_reauth
        self._access_token: str | None = None
        self.user: dict | None = None
        self._refresh_flight: SingleFlight[str] = SingleFlight()

    # ------------------------------------------------------------------
    # Credential state
    # ------------------------------------------------------------------

    @property
    def access_token(self) -> str | None:
        return self._access_token

    @property
    def is_authenticated(self) -> bool:
        return self._access_token is not None

    def set_access_token(self, token: str) -> None:
        self._access_token = token

    def clear(self) -> None:
        """Forget the in-memory credential and cached user."""
        self._access_token = None
        self.user = None

    # ------------------------------------------------------------------
    # Session endpoints
    # ------------------------------------------------------------------

    async def signup(self, name: str, email: str, password: str) -> dict:
        return await self._open_session("signup", {"name": name, "email": email, "password": password})

    async def login(self, email: str, password: str) -> dict:
        return await self._open_session("login", {"email": email, "password": password})

    async def logout(self) -> None:
        """Tell the server to revoke the refresh token, then forget everything.

        Server-side errors are logged and ignored: the local wipe happens
        regardless.
        """
        if self._access_token is None:
            self.clear()
            return
        try:
            await self.request("POST", f"{self._auth_prefix}/logout")
        except (httpx.HTTPError, ReauthenticationRequired) as exc:
            logger.info("Logout request failed (%s); clearing local credential anyway", exc)
        finally:
            self.clear()

    async def refresh(self) -> str:
        """Obtain a fresh access token, coalescing with any refresh already in flight."""
        return await self._refresh_flight.run(self._refresh)

    # ------------------------------------------------------------------
    # Authenticated requests
    # ------------------------------------------------------------------

    async def request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """Send a request with the bearer token; refresh and retry once on expiry."""
        sent_with = self._access_token
        response = await self._send(method, url, sent_with, **kwargs)
        if response.status_code != 401:
            return response

        code = _error_payload(response).get("code", "http_401")
        if code != _TOKEN_EXPIRED:
            self._force_reauth()
            raise ReauthenticationRequired(code)

        if self._access_token is not None and self._access_token != sent_with:
            # Someone else already refreshed while this request was in flight.
            new_token = self._access_token
        else:
            new_token = await self.refresh()
        return await self._send(method, url, new_token, **kwargs)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _send(self, method: str, url: str, token: str | None, **kwargs: Any) -> httpx.Response:
        headers = dict(kwargs.pop("headers", None) or {})
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return await self._http.request(method, url, headers=headers, **kwargs)

    async def _open_session(self, endpoint: str, payload: dict) -> dict:
        response = await self._http.post(f"{self._auth_prefix}/{endpoint}", json=payload)
        if response.status_code not in (200, 201):
            error = _error_payload(response)
            raise AuthRequestFailed(
                response.status_code,
                error.get("code", f"http_{response.status_code}"),
                error.get("message", response.reason_phrase),
                error.get("detail"),
            )
        body = response.json()
        self._access_token = body["access_token"]
        self.user = body["user"]
        return self.user

    async def _refresh(self) -> str:
        """The leader's refresh call. Runs at most once per coalesced burst."""
        try:
            response = await self._http.post(f"{self._auth_prefix}/refresh")
        except httpx.HTTPError as exc:
            logger.warning("Token refresh transport failure: %s", exc)
            self._force_reauth()
            raise ReauthenticationRequired("REFRESH_FAILED") from exc

        if response.status_code != 200:
            code = _error_payload(response).get("code", f"http_{response.status_code}")
            logger.info("Token refresh rejected: %s", code)
            self._force_reauth()
            raise ReauthenticationRequired(code)

        token = response.json()["access_token"]
        self._access_token = token
        return token

    def _force_reauth(self) -> None:
        self.clear()
        if self._on_reauth is not None:
            self._on_reauth()
