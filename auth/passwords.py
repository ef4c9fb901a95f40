"""
auth/passwords.py -- bcrypt password hashing.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error. Direct bcrypt usage is simpler and has no
compatibility shim.

Passwords longer than 72 bytes are silently truncated by bcrypt. The API
layer caps password fields at 128 characters.

hash() must be called exactly once per password write (signup, change
password) and never on reads -- verification only ever calls verify().
"""

from __future__ import annotations

import bcrypt

_DEFAULT_ROUNDS = 10


class PasswordHasher:
    """Salted one-way hashing with a fixed bcrypt cost factor.

    The dummy hash is computed once at construction so the first login
    attempt for an unknown email is not measurably slower than later ones.
    """

    def __init__(self, rounds: int = _DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash = self.hash("tokengate_timing_dummy")

    def hash(self, plain: str) -> str:
        """Return a bcrypt hash of the given plaintext password."""
        return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt(rounds=self.rounds)).decode("utf-8")

    def verify(self, plain: str, hashed: str) -> bool:
        """Return True if the plaintext password matches the bcrypt hash.

        checkpw compares in constant time. A malformed stored hash is a
        mismatch, not a crash.
        """
        try:
            return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def verify_dummy(self, plain: str) -> None:
        """Burn one bcrypt comparison so unknown-email logins cost the same
        as wrong-password logins. Prevents account enumeration by timing.
        """
        self.verify(plain, self._dummy_hash)
