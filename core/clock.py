"""
core/clock.py -- UTC time helpers shared by the token, lockout and store layers.

Every component that reasons about expiry takes a `Clock` (a zero-argument
callable returning an aware UTC datetime) instead of calling datetime.now()
inline. Production code uses utcnow; tests pass a FrozenClock and advance it.

Timestamps are persisted as fixed-width ISO-8601 strings so that lexical
order equals chronological order and SQL-side `<=` comparisons stay valid.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime, timedelta, timezone

Clock = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_iso(moment: datetime) -> str:
    """Encode an aware datetime as `YYYY-MM-DDTHH:MM:SS.ffffff+00:00`.

    timespec="microseconds" keeps the width fixed; the default isoformat()
    drops the fraction when it is zero, which breaks string ordering.
    """
    return moment.astimezone(timezone.utc).isoformat(timespec="microseconds")


def from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class FrozenClock:
    """A manually advanced clock for tests and simulations."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or utcnow()

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta: float) -> None:
        self.now = self.now + timedelta(**delta)
