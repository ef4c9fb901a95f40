"""
auth/store.py -- SQLAlchemy Core persistence layer for user credential records.

Pattern: Repository + Data Mapper.
UserStore is the repository; _row_to_user is the mapper.
Service and route code never touches SQL directly.

Concurrency:
  No Python-level lock is held anywhere. Every write that has to be race-safe
  is a single conditional UPDATE (or one short transaction of them), so the
  database's own row-level atomicity decides the winner:

  rotate_refresh_token()  UPDATE ... WHERE id = ? AND refresh_token = ?
                          Two concurrent refreshes with the same token:
                          exactly one matches, the other updates 0 rows.
  register_failed_login() counter increment is `login_attempts + 1` in SQL,
                          lock is set only WHERE lock_until IS NULL, so a
                          failure during an active lock never extends it.

Security:
  All queries use bound parameters. No f-strings in SQL.
  email is normalized (strip + lower) on every write and lookup; the UNIQUE
  constraint on the normalized column gives case-insensitive uniqueness.

Timestamps are fixed-width ISO-8601 strings (core.clock.to_iso) so the
lock_until comparisons in SQL are plain string comparisons.

Layer rule: no imports from api/ or client/.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, MetaData, String, Table, Text, create_engine, event, select, text
from sqlalchemy.engine import Engine

from auth.models import User
from core.clock import from_iso, to_iso, utcnow

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", String(32), primary_key=True),
    Column("name", String(255), nullable=False),
    Column("email", String(320), nullable=False, unique=True),  # normalized lowercase
    Column("hashed_password", Text, nullable=False),
    Column("refresh_token", Text),  # NULL = no active refresh credential
    Column("login_attempts", Integer, nullable=False, server_default="0"),
    Column("lock_until", String(32)),  # ISO 8601, NULL = never locked / cleared
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode so verify() reads never block writers.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _now_iso() -> str:
    return to_iso(utcnow())


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class UserStore:
    """Repository for User records.

    Usage:
        store = UserStore("sqlite:///auth.db")
        user_id = store.create_user(User(name="Ada", email="ada@example.com", hashed_password=h))
        user = store.get_by_email("ADA@example.com")
        store.close()
    """

    def __init__(self, db_url: str) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Cheap liveness probe used by the health endpoint."""
        with self.engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        return True

    # ------------------------------------------------------------------
    # Create / read
    # ------------------------------------------------------------------

    def create_user(self, user: User) -> str:
        """Insert a new user and return its generated opaque id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers treat that as a duplicate-email conflict: it is how a
        concurrent signup that slipped past the pre-check surfaces.
        """
        user_id = uuid.uuid4().hex
        now = _now_iso()
        with self.engine.connect() as conn:
            conn.execute(
                _users.insert().values(
                    id=user_id,
                    name=user.name,
                    email=normalize_email(user.email),
                    hashed_password=user.hashed_password,
                    refresh_token=user.refresh_token,
                    login_attempts=0,
                    lock_until=None,
                    created_at=now,
                    updated_at=now,
                )
            )
            conn.commit()
        return user_id

    def get_by_id(self, user_id: str) -> User | None:
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def get_by_email(self, email: str) -> User | None:
        """Look up a user by email, case-insensitively. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.email == normalize_email(email))).fetchone()
        return _row_to_user(row) if row is not None else None

    # ------------------------------------------------------------------
    # Profile / password
    # ------------------------------------------------------------------

    def update_user(self, user_id: str, **fields) -> bool:
        """Update mutable profile fields (name, email, hashed_password).

        Returns True if a row was updated, False if user_id was not found.
        Raises IntegrityError if a new email collides with another user.
        """
        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            result = conn.execute(_users.update().where(_users.c.id == user_id).values(**fields))
            conn.commit()
        return result.rowcount > 0

    def delete_user(self, user_id: str) -> bool:
        """Permanently delete a user record. The stored refresh token goes with it."""
        with self.engine.connect() as conn:
            result = conn.execute(_users.delete().where(_users.c.id == user_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Refresh token
    # ------------------------------------------------------------------

    def set_refresh_token(self, user_id: str, token: str | None) -> bool:
        """Unconditionally overwrite (or clear, with None) the stored refresh token.

        Used by login (new session replaces the old one) and logout.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update().where(_users.c.id == user_id).values(refresh_token=token, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount > 0

    def rotate_refresh_token(self, user_id: str, presented: str, new_token: str) -> bool:
        """Replace the stored refresh token only if it still equals `presented`.

        Returns False when zero rows matched: the token was already rotated by
        a concurrent call, cleared by logout, or replaced by a newer login.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                _users.update()
                .where((_users.c.id == user_id) & (_users.c.refresh_token == presented))
                .values(refresh_token=new_token, updated_at=_now_iso())
            )
            conn.commit()
        return result.rowcount == 1

    # ------------------------------------------------------------------
    # Lockout counters
    # ------------------------------------------------------------------

    def register_failed_login(
        self,
        user_id: str,
        *,
        now: datetime,
        max_attempts: int,
        lock_until: datetime,
    ) -> User | None:
        """Apply one failed login atomically and return the updated record.

        Three statements in one transaction:
          1. an elapsed lock is cleared together with its counter,
          2. the counter is incremented in SQL,
          3. if the counter reached max_attempts and no lock is active,
             lock_until is set. An active lock is never extended.
        """
        now_iso = to_iso(now)
        with self.engine.begin() as conn:
            conn.execute(
                _users.update()
                .where(
                    (_users.c.id == user_id)
                    & _users.c.lock_until.is_not(None)
                    & (_users.c.lock_until <= now_iso)
                )
                .values(login_attempts=0, lock_until=None)
            )
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(login_attempts=_users.c.login_attempts + 1, updated_at=now_iso)
            )
            conn.execute(
                _users.update()
                .where(
                    (_users.c.id == user_id)
                    & (_users.c.login_attempts >= max_attempts)
                    & _users.c.lock_until.is_(None)
                )
                .values(lock_until=to_iso(lock_until))
            )
            row = conn.execute(select(_users).where(_users.c.id == user_id)).fetchone()
        return _row_to_user(row) if row is not None else None

    def reset_login_attempts(self, user_id: str) -> None:
        """Back to the Open state: counter 0, no lock."""
        with self.engine.connect() as conn:
            conn.execute(
                _users.update()
                .where(_users.c.id == user_id)
                .values(login_attempts=0, lock_until=None, updated_at=_now_iso())
            )
            conn.commit()

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_user(row) -> User:
    return User(
        id=row.id,
        name=row.name,
        email=row.email,
        hashed_password=row.hashed_password,
        refresh_token=row.refresh_token,
        login_attempts=row.login_attempts or 0,
        lock_until=from_iso(row.lock_until),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
