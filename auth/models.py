"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond trivial
projections). Stores, services and routes do the work.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class TokenType(str, Enum):
    access = "access"
    refresh = "refresh"


@dataclass
class User:
    """A persisted credential record.

    email is always stored lowercased and trimmed so uniqueness is
    case-insensitive at the DB level without a functional index.

    refresh_token holds the single active refresh credential. It is either
    None (logged out / never issued) or exactly the token most recently
    issued; any other presented value is treated as revoked.

    login_attempts / lock_until are owned by auth.lockout.LockoutPolicy.
    """

    name: str
    email: str
    hashed_password: str
    id: str | None = None
    refresh_token: str | None = None
    login_attempts: int = 0
    lock_until: datetime | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def summary(self) -> UserSummary:
        if self.id is None:
            raise ValueError("User has no id; summary() needs a persisted record")
        return UserSummary(id=self.id, name=self.name, email=self.email)


@dataclass(frozen=True)
class UserSummary:
    """The only user projection that ever leaves the service layer."""

    id: str
    name: str
    email: str


@dataclass(frozen=True)
class TokenClaims:
    """Decoded, validated JWT claim set.

    Maps 1:1 to the wire claims: sub, typ, iat, exp, jti.
    """

    subject: str
    token_type: TokenType
    issued_at: datetime
    expires_at: datetime
    token_id: str


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str


@dataclass(frozen=True)
class AuthResult:
    """Outcome of signup, login and refresh.

    The route layer puts access_token in the JSON body and refresh_token in
    the httpOnly cookie -- never the other way around.
    """

    access_token: str
    refresh_token: str
    user: UserSummary


@dataclass(frozen=True)
class LoginFailure:
    """Lockout bookkeeping after a failed password check."""

    attempts: int
    attempts_left: int
    locked_until: datetime | None = None
