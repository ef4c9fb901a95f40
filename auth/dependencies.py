"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The access token is only ever read from the Authorization: Bearer header.
It is deliberately never accepted from a cookie: the refresh cookie is
httpOnly and path-scoped to /api/v1/auth, and the access token lives in the
calling application's memory.

get_bearer_token() extracts the raw header value (None when absent).
get_current_user() resolves it through AuthService.verify() and lets any
TokenError / UserNotFoundError propagate -- the app-level AuthError handler
turns them into 401 with the machine-readable code.

Layer rule: may import from fastapi (this module is part of the dependency
injection system); no imports from api/ or client/.
"""

from __future__ import annotations

from fastapi import Depends, Request

from auth.models import UserSummary
from auth.session import AuthService


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def get_bearer_token(request: Request) -> str | None:
    """Return the token from `Authorization: Bearer <token>`, or None."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def get_current_user(
    token: str | None = Depends(get_bearer_token),
    service: AuthService = Depends(get_auth_service),
) -> UserSummary:
    """Require a valid access token.

    Use as a FastAPI dependency:
        @router.get("/protected")
        def route(user: UserSummary = Depends(get_current_user)): ...
    """
    return service.verify(token)
