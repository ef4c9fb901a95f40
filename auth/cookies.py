"""
auth/cookies.py -- Refresh-token cookie helpers.

The refresh token is the only credential that ever travels in a cookie:

  httponly=True      scripts cannot read it (XSS cannot exfiltrate it).
  samesite="strict"  never sent on cross-site requests (CSRF).
  secure             only sent over HTTPS when SECURE_COOKIES=true.
  max_age            mirrors the refresh token lifetime so both expire together.
  path               scoped to the auth routes; no other endpoint ever sees it.

The access token is never set as a cookie -- the calling application must be
able to read it to attach it as a Bearer header.

Every set and delete uses the same attributes; browsers only drop a cookie
when the deletion matches its path/samesite/secure flags.
"""

from __future__ import annotations

from core.config import get_settings

REFRESH_COOKIE_NAME = "refresh_token"
REFRESH_COOKIE_PATH = "/api/v1/auth"


def _cookie_attrs() -> dict:
    return {
        "path": REFRESH_COOKIE_PATH,
        "httponly": True,
        "samesite": "strict",
        "secure": get_settings().secure_cookies,
    }


def set_refresh_cookie(response, token: str) -> None:
    """Write the refresh token as an httpOnly cookie on the response."""
    response.set_cookie(
        REFRESH_COOKIE_NAME,
        value=token,
        max_age=get_settings().refresh_token_expire_seconds,
        **_cookie_attrs(),
    )


def clear_refresh_cookie(response) -> None:
    response.delete_cookie(REFRESH_COOKIE_NAME, **_cookie_attrs())
