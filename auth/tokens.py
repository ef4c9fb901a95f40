"""
auth/tokens.py -- JWT issuance and verification for access and refresh tokens.

Security design decisions:
  JWT: python-jose with HS256. Two distinct secrets -- one for access tokens,
       one for refresh tokens. Key separation means a leaked access token can
       never be replayed at /refresh (and vice versa): the signature check
       fails before any claim is looked at. The `typ` claim is checked as
       well, as a second fence.

  Claims: sub (opaque user id), typ, iat, exp, jti. jti is 128 random bits
       so two tokens minted for the same user in the same second still
       differ; refresh rotation relies on that.

  Verification order: signature -> claim structure -> expiry. Expired is
       only reported for tokens that are otherwise valid, so callers can tell
       "refresh and retry" apart from "reject outright".

  Expiry is checked against an injected clock rather than python-jose's
       built-in wall-clock check so lifetimes are testable.

No persistence here -- this module is pure over (secrets, clock).

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import secrets
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from auth.errors import TokenExpiredError, TokenInvalidError, TokenMissingError
from auth.models import TokenClaims, TokenPair, TokenType
from core.clock import Clock, utcnow

_ALGORITHM = "HS256"

_ACCESS_TTL = timedelta(minutes=15)
_REFRESH_TTL = timedelta(days=7)


class TokenService:
    """Mint and verify signed, expiring tokens.

    Usage:
        tokens = TokenService(access_secret, refresh_secret)
        pair = tokens.issue_pair(user_id)
        claims = tokens.verify(pair.access_token, TokenType.access)
    """

    def __init__(
        self,
        access_secret: str,
        refresh_secret: str,
        access_ttl: timedelta = _ACCESS_TTL,
        refresh_ttl: timedelta = _REFRESH_TTL,
        clock: Clock = utcnow,
    ) -> None:
        if access_secret == refresh_secret:
            raise ValueError("access and refresh secrets must differ")
        self._secrets = {TokenType.access: access_secret, TokenType.refresh: refresh_secret}
        self._ttls = {TokenType.access: access_ttl, TokenType.refresh: refresh_ttl}
        self._clock = clock

    @property
    def access_ttl(self) -> timedelta:
        return self._ttls[TokenType.access]

    @property
    def refresh_ttl(self) -> timedelta:
        return self._ttls[TokenType.refresh]

    # ------------------------------------------------------------------
    # Issue
    # ------------------------------------------------------------------

    def issue_access_token(self, subject_id: str) -> str:
        return self._issue(subject_id, TokenType.access)

    def issue_refresh_token(self, subject_id: str) -> str:
        return self._issue(subject_id, TokenType.refresh)

    def issue_pair(self, subject_id: str) -> TokenPair:
        return TokenPair(
            access_token=self.issue_access_token(subject_id),
            refresh_token=self.issue_refresh_token(subject_id),
        )

    def _issue(self, subject_id: str, token_type: TokenType) -> str:
        issued_at = int(self._clock().timestamp())
        claims = {
            "sub": subject_id,
            "typ": token_type.value,
            "iat": issued_at,
            "exp": issued_at + int(self._ttls[token_type].total_seconds()),
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(claims, self._secrets[token_type], algorithm=_ALGORITHM)

    # ------------------------------------------------------------------
    # Verify
    # ------------------------------------------------------------------

    def verify(self, token: str | None, token_type: TokenType) -> TokenClaims:
        """Decode and validate a token of the given kind.

        Raises:
            TokenMissingError: token is None or empty.
            TokenInvalidError: bad signature, wrong key, malformed, wrong typ,
                               or missing/ill-typed claims.
            TokenExpiredError: everything checks out except exp <= now.
        """
        if not token:
            raise TokenMissingError()
        try:
            payload = jwt.decode(
                token,
                self._secrets[token_type],
                algorithms=[_ALGORITHM],
                options={"verify_exp": False},
            )
        except JWTError as exc:
            raise TokenInvalidError() from exc

        claims = _parse_claims(payload, token_type)
        if claims.expires_at <= self._clock():
            raise TokenExpiredError()
        return claims


def _parse_claims(payload: dict, expected: TokenType) -> TokenClaims:
    """Map a raw payload onto TokenClaims, rejecting anything off-shape."""
    subject = payload.get("sub")
    token_id = payload.get("jti")
    issued_at = payload.get("iat")
    expires_at = payload.get("exp")
    if not isinstance(subject, str) or not subject:
        raise TokenInvalidError()
    if not isinstance(token_id, str) or not token_id:
        raise TokenInvalidError()
    # bool is an int subclass; a `true` exp is not a timestamp.
    for value in (issued_at, expires_at):
        if not isinstance(value, int) or isinstance(value, bool):
            raise TokenInvalidError()
    if payload.get("typ") != expected.value:
        raise TokenInvalidError()
    return TokenClaims(
        subject=subject,
        token_type=expected,
        issued_at=datetime.fromtimestamp(issued_at, tz=timezone.utc),
        expires_at=datetime.fromtimestamp(expires_at, tz=timezone.utc),
        token_id=token_id,
    )
