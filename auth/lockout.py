"""
auth/lockout.py -- Account lockout policy against credential guessing.

State machine per account:

    Open  --(failure that brings login_attempts to max_attempts)-->  Locked
    Locked --(lock_until elapses)-->  Open (for decisions only)
    any   --(successful login)-->  Open, counter reset

A lock whose time has elapsed is treated as Open by is_locked() but its
counter is not cleared retroactively; the next failure clears it before
counting (so the account gets a fresh set of attempts), the next success
resets it as usual.

A failed attempt during an active lock still increments the counter but
does not extend lock_until. In practice the session protocol checks the
lock before verifying a password, so this only matters for direct callers.

The policy owns the decisions; UserStore.register_failed_login() applies
them in one atomic transaction.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime, timedelta

from auth.models import LoginFailure, User
from auth.store import UserStore
from core.clock import Clock, utcnow

logger = logging.getLogger("tokengate.auth.lockout")


class LockoutPolicy:
    def __init__(
        self,
        max_attempts: int = 5,
        lock_duration: timedelta = timedelta(minutes=15),
        clock: Clock = utcnow,
    ) -> None:
        self.max_attempts = max_attempts
        self.lock_duration = lock_duration
        self._clock = clock

    def is_locked(self, user: User) -> bool:
        """True iff lock_until is set and strictly in the future."""
        return user.lock_until is not None and user.lock_until > self._clock()

    def remaining_lock_minutes(self, user: User) -> int:
        """Whole minutes left on an active lock, rounded up. 0 when Open."""
        if not self.is_locked(user):
            return 0
        return self.minutes_until(user.lock_until)

    def minutes_until(self, moment: datetime) -> int:
        seconds = (moment - self._clock()).total_seconds()
        return max(1, math.ceil(seconds / 60))

    def attempts_left(self, attempts: int) -> int:
        return max(0, self.max_attempts - attempts)

    def record_failure(self, store: UserStore, user: User) -> LoginFailure:
        """Count one failed login and lock the account on the threshold attempt."""
        now = self._clock()
        updated = store.register_failed_login(
            user.id,
            now=now,
            max_attempts=self.max_attempts,
            lock_until=now + self.lock_duration,
        )
        if updated is None:
            # Record deleted between lookup and update; nothing left to lock.
            return LoginFailure(attempts=0, attempts_left=self.max_attempts)

        locked_until = updated.lock_until if self.is_locked(updated) else None
        if locked_until is not None and (user.lock_until is None or user.lock_until <= now):
            logger.warning(
                "Account %s locked until %s after %d failed attempts",
                user.id,
                locked_until.isoformat(),
                updated.login_attempts,
            )
        return LoginFailure(
            attempts=updated.login_attempts,
            attempts_left=self.attempts_left(updated.login_attempts),
            locked_until=locked_until,
        )

    def record_success(self, store: UserStore, user: User) -> None:
        store.reset_login_attempts(user.id)
