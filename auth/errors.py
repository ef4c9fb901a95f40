"""
auth/errors.py -- Exception taxonomy for the authentication core.

Every failure the session protocol can produce is an AuthError subclass with
a stable machine-readable `code`. The API layer converts them into the
standard error envelope in a single exception handler; nothing else in the
stack needs to know HTTP status codes.

Kinds:
  VALIDATION     malformed input, no state change
  AUTH_FAILURE   bad credentials or lockout; the failure counter may move
  TOKEN_FAILURE  missing / expired / invalid / revoked token
  CONFLICT       duplicate email
  NOT_FOUND      user vanished between token issue and use
  INTERNAL       store or unexpected failure; message is always opaque

The code strings are part of the client contract. client/token_manager.py
keys its refresh-and-retry decision on TOKEN_EXPIRED.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "validation"
    AUTH_FAILURE = "auth_failure"
    TOKEN_FAILURE = "token_failure"
    CONFLICT = "conflict"
    NOT_FOUND = "not_found"
    INTERNAL = "internal"


class AuthError(Exception):
    kind: ErrorKind = ErrorKind.INTERNAL
    code: str = "INTERNAL_ERROR"
    status_code: int = 500
    message: str = "An unexpected error occurred."

    def __init__(self, message: str | None = None, **detail: Any) -> None:
        self.message = message or self.message
        self.detail: dict[str, Any] = detail
        super().__init__(self.message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code!r}, detail={self.detail!r})"


# ---------------------------------------------------------------------------
# VALIDATION
# ---------------------------------------------------------------------------


class ValidationFailed(AuthError):
    kind = ErrorKind.VALIDATION
    code = "VALIDATION_ERROR"
    status_code = 400
    message = "Request validation failed."


class WeakPasswordError(ValidationFailed):
    code = "WEAK_PASSWORD"
    message = "Password does not meet the minimum length."


# ---------------------------------------------------------------------------
# AUTH_FAILURE
# ---------------------------------------------------------------------------


class InvalidCredentialsError(AuthError):
    kind = ErrorKind.AUTH_FAILURE
    code = "INVALID_CREDENTIALS"
    status_code = 401
    message = "Invalid email or password."


class AccountLockedError(AuthError):
    kind = ErrorKind.AUTH_FAILURE
    code = "ACCOUNT_LOCKED"
    status_code = 423
    message = "Account locked."


class IncorrectPasswordError(AuthError):
    kind = ErrorKind.AUTH_FAILURE
    code = "INCORRECT_PASSWORD"
    status_code = 401
    message = "Password is incorrect."


# ---------------------------------------------------------------------------
# TOKEN_FAILURE
# ---------------------------------------------------------------------------


class TokenError(AuthError):
    kind = ErrorKind.TOKEN_FAILURE
    status_code = 401


class TokenMissingError(TokenError):
    code = "NO_TOKEN"
    message = "Token required."


class TokenExpiredError(TokenError):
    code = "TOKEN_EXPIRED"
    message = "Token expired."


class TokenInvalidError(TokenError):
    code = "INVALID_TOKEN"
    message = "Invalid token."


class InvalidRefreshTokenError(TokenError):
    code = "INVALID_REFRESH_TOKEN"
    message = "Invalid refresh token."


class RefreshTokenRevokedError(TokenError):
    code = "REFRESH_TOKEN_REVOKED"
    message = "Refresh token revoked."


# ---------------------------------------------------------------------------
# CONFLICT / NOT_FOUND / INTERNAL
# ---------------------------------------------------------------------------


class DuplicateEmailError(AuthError):
    kind = ErrorKind.CONFLICT
    code = "DUPLICATE_EMAIL"
    status_code = 409
    message = "Email already registered."


class UserNotFoundError(AuthError):
    # Reported as an auth failure: a token whose subject vanished is just
    # another credential that no longer authenticates anyone.
    kind = ErrorKind.NOT_FOUND
    code = "USER_NOT_FOUND"
    status_code = 401
    message = "User not found."


class InternalError(AuthError):
    pass
