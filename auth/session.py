"""
auth/session.py -- The authentication session protocol.

AuthService orchestrates signup / login / refresh / verify / logout /
change_password / update_profile / delete_account over the credential store,
password hasher, token service and lockout policy.

Contract:
  Every public method either returns a value or raises an auth.errors.AuthError
  subclass. Store failures (SQLAlchemyError) are logged here with full detail
  and re-raised as InternalError with an opaque message -- internals never
  reach the caller.

Sessions:
  One active refresh token per user. login overwrites it (the previous
  session's refresh token stops working), refresh rotates it with a
  conditional write, logout clears it, account deletion removes it with the
  record.

Timing:
  Unknown-email logins still pay for one bcrypt comparison so response time
  does not reveal whether an account exists.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import functools
import hmac
import logging
from datetime import timedelta

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from auth.errors import (
    AccountLockedError,
    DuplicateEmailError,
    IncorrectPasswordError,
    InternalError,
    InvalidCredentialsError,
    InvalidRefreshTokenError,
    RefreshTokenRevokedError,
    TokenError,
    TokenMissingError,
    UserNotFoundError,
    ValidationFailed,
    WeakPasswordError,
)
from auth.lockout import LockoutPolicy
from auth.models import AuthResult, TokenType, User, UserSummary
from auth.passwords import PasswordHasher
from auth.store import UserStore, normalize_email
from auth.tokens import TokenService
from core.clock import Clock, utcnow

logger = logging.getLogger("tokengate.auth")


def _store_guard(method):
    """Translate persistence failures into an opaque InternalError."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except SQLAlchemyError as exc:
            logger.exception("Credential store failure during %s", method.__name__)
            raise InternalError() from exc

    return wrapper


def _same_token(stored: str | None, presented: str) -> bool:
    if stored is None:
        return False
    return hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))


class AuthService:
    def __init__(
        self,
        store: UserStore,
        hasher: PasswordHasher,
        tokens: TokenService,
        lockout: LockoutPolicy,
        min_password_length: int = 8,
    ) -> None:
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.lockout = lockout
        self.min_password_length = min_password_length

    # ------------------------------------------------------------------
    # Account creation and login
    # ------------------------------------------------------------------

    @_store_guard
    def signup(self, name: str, email: str, password: str) -> AuthResult:
        """Create an account and open its first session.

        Raises DuplicateEmailError when the email (case-insensitive) is taken,
        including when a concurrent signup wins the race to the UNIQUE index.
        """
        name = (name or "").strip()
        email = normalize_email(email or "")
        if not name or not email:
            raise ValidationFailed("Name and email are required.")
        self._check_password_strength(password)

        if self.store.get_by_email(email) is not None:
            raise DuplicateEmailError()

        user = User(name=name, email=email, hashed_password=self.hasher.hash(password))
        try:
            user.id = self.store.create_user(user)
        except IntegrityError as exc:
            raise DuplicateEmailError() from exc

        logger.info("Signup: user %s created", user.id)
        return self._open_session(user)

    @_store_guard
    def login(self, email: str, password: str) -> AuthResult:
        """Authenticate by email and password.

        The lock is checked before the password: a locked account answers
        ACCOUNT_LOCKED even for the correct password.
        """
        user = self.store.get_by_email(email or "")
        if user is None:
            self.hasher.verify_dummy(password or "")
            raise InvalidCredentialsError()

        if self.lockout.is_locked(user):
            minutes = self.lockout.remaining_lock_minutes(user)
            logger.info("Login refused for locked account %s", user.id)
            raise AccountLockedError(
                f"Account locked. Try again in {minutes} minutes.",
                minutes_remaining=minutes,
            )

        if not self.hasher.verify(password or "", user.hashed_password):
            failure = self.lockout.record_failure(self.store, user)
            logger.info("Login failed for user %s (attempt %d)", user.id, failure.attempts)
            if failure.locked_until is not None:
                minutes = self.lockout.minutes_until(failure.locked_until)
                raise InvalidCredentialsError(
                    f"Account locked for {minutes} minutes due to too many failed attempts.",
                    attempts_left=0,
                    locked_minutes=minutes,
                )
            raise InvalidCredentialsError(
                f"Invalid email or password. {failure.attempts_left} attempts left.",
                attempts_left=failure.attempts_left,
            )

        self.lockout.record_success(self.store, user)
        logger.info("Login: user %s", user.id)
        return self._open_session(user)

    # ------------------------------------------------------------------
    # Tokens
    # ------------------------------------------------------------------

    @_store_guard
    def refresh(self, presented: str | None) -> AuthResult:
        """Exchange a refresh token for a new pair, rotating the stored value.

        Raises:
            TokenMissingError: nothing presented.
            InvalidRefreshTokenError: bad signature, malformed, or expired.
            RefreshTokenRevokedError: well-formed but not the stored value --
                logged out, already rotated, superseded by a newer login, or
                lost a concurrent rotation race.
        """
        if not presented:
            raise TokenMissingError()
        try:
            claims = self.tokens.verify(presented, TokenType.refresh)
        except TokenError as exc:
            raise InvalidRefreshTokenError() from exc

        user = self.store.get_by_id(claims.subject)
        if user is None or not _same_token(user.refresh_token, presented):
            logger.warning("Refresh token reuse or revoked token for subject %s", claims.subject)
            raise RefreshTokenRevokedError()

        pair = self.tokens.issue_pair(user.id)
        if not self.store.rotate_refresh_token(user.id, presented, pair.refresh_token):
            logger.warning("Refresh rotation lost a race for user %s", user.id)
            raise RefreshTokenRevokedError()

        return AuthResult(access_token=pair.access_token, refresh_token=pair.refresh_token, user=user.summary())

    @_store_guard
    def verify(self, presented: str | None) -> UserSummary:
        """Resolve an access token to its user. Pure read."""
        claims = self.tokens.verify(presented, TokenType.access)
        user = self.store.get_by_id(claims.subject)
        if user is None:
            raise UserNotFoundError()
        return user.summary()

    @_store_guard
    def logout(self, subject_id: str) -> None:
        """Clear the stored refresh token. Idempotent."""
        self.store.set_refresh_token(subject_id, None)
        logger.info("Logout: user %s", subject_id)

    # ------------------------------------------------------------------
    # Account management
    # ------------------------------------------------------------------

    @_store_guard
    def change_password(self, subject_id: str, current_password: str, new_password: str) -> None:
        if not current_password or not new_password:
            raise ValidationFailed("Current and new password are required.")
        self._check_password_strength(new_password)
        user = self._require_user(subject_id)
        if not self.hasher.verify(current_password, user.hashed_password):
            raise IncorrectPasswordError("Current password is incorrect.")
        self.store.update_user(subject_id, hashed_password=self.hasher.hash(new_password))
        logger.info("Password changed for user %s", subject_id)

    @_store_guard
    def update_profile(self, subject_id: str, name: str | None = None, email: str | None = None) -> UserSummary:
        updates: dict = {}
        if name and name.strip():
            updates["name"] = name.strip()
        if email and email.strip():
            updates["email"] = normalize_email(email)
        if not updates:
            raise ValidationFailed("Name or email is required.")

        self._require_user(subject_id)
        if "email" in updates:
            owner = self.store.get_by_email(updates["email"])
            if owner is not None and owner.id != subject_id:
                raise DuplicateEmailError("Email already in use.")
        try:
            self.store.update_user(subject_id, **updates)
        except IntegrityError as exc:
            raise DuplicateEmailError("Email already in use.") from exc
        return self._require_user(subject_id).summary()

    @_store_guard
    def delete_account(self, subject_id: str, password: str) -> None:
        if not password:
            raise ValidationFailed("Password is required to delete account.")
        user = self._require_user(subject_id)
        if not self.hasher.verify(password, user.hashed_password):
            raise IncorrectPasswordError()
        self.store.delete_user(subject_id)
        logger.info("Account deleted: user %s", subject_id)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _open_session(self, user: User) -> AuthResult:
        """Mint a pair and make its refresh token the single active one."""
        pair = self.tokens.issue_pair(user.id)
        self.store.set_refresh_token(user.id, pair.refresh_token)
        return AuthResult(access_token=pair.access_token, refresh_token=pair.refresh_token, user=user.summary())

    def _require_user(self, subject_id: str) -> User:
        user = self.store.get_by_id(subject_id)
        if user is None:
            raise UserNotFoundError()
        return user

    def _check_password_strength(self, password: str | None) -> None:
        if not password or len(password) < self.min_password_length:
            raise WeakPasswordError(
                f"Password must be at least {self.min_password_length} characters.",
                min_length=self.min_password_length,
            )


def create_auth_service(settings, store: UserStore, clock: Clock = utcnow) -> AuthService:
    """Wire an AuthService from core.config.Settings.

    clock is shared by the token service and the lockout policy so tests can
    move both through time together.
    """
    return AuthService(
        store=store,
        hasher=PasswordHasher(rounds=settings.bcrypt_rounds),
        tokens=TokenService(
            access_secret=settings.access_secret_key,
            refresh_secret=settings.refresh_secret_key,
            access_ttl=timedelta(seconds=settings.access_token_expire_seconds),
            refresh_ttl=timedelta(seconds=settings.refresh_token_expire_seconds),
            clock=clock,
        ),
        lockout=LockoutPolicy(
            max_attempts=settings.max_login_attempts,
            lock_duration=timedelta(seconds=settings.lockout_seconds),
            clock=clock,
        ),
        min_password_length=settings.min_password_length,
    )
