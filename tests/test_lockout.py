"""
tests/test_lockout.py -- Unit tests for auth/lockout.py against a real store.

Covers:
  - Open -> Locked exactly on the 5th consecutive failure
  - is_locked is strict: a lock ending "now" is already Open
  - failures during an active lock count but never extend the window
  - an elapsed lock restarts counting on the next failure
  - success resets to Open
"""

from __future__ import annotations

from datetime import timedelta

import pytest

from auth.lockout import LockoutPolicy
from auth.models import User
from auth.store import UserStore
from core.clock import FrozenClock


@pytest.fixture
def policy(clock: FrozenClock) -> LockoutPolicy:
    return LockoutPolicy(max_attempts=5, lock_duration=timedelta(minutes=15), clock=clock)


@pytest.fixture
def user(store: UserStore) -> User:
    user_id = store.create_user(User(name="Bob", email="bob@example.com", hashed_password="x"))
    return store.get_by_id(user_id)


def _fail(policy: LockoutPolicy, store: UserStore, user: User):
    return policy.record_failure(store, store.get_by_id(user.id))


class TestTransitions:
    def test_four_failures_stay_open(self, policy, store, user) -> None:
        results = [_fail(policy, store, user) for _ in range(4)]
        assert [r.attempts_left for r in results] == [4, 3, 2, 1]
        assert all(r.locked_until is None for r in results)
        assert not policy.is_locked(store.get_by_id(user.id))

    def test_fifth_failure_locks_for_fifteen_minutes(self, policy, store, user, clock) -> None:
        for _ in range(4):
            _fail(policy, store, user)
        result = _fail(policy, store, user)
        assert result.attempts == 5
        assert result.attempts_left == 0
        assert result.locked_until == clock() + timedelta(minutes=15)
        record = store.get_by_id(user.id)
        assert policy.is_locked(record)
        assert policy.remaining_lock_minutes(record) == 15

    def test_lock_is_strict_at_boundary(self, policy, store, user, clock) -> None:
        for _ in range(5):
            _fail(policy, store, user)
        clock.advance(minutes=15)
        record = store.get_by_id(user.id)
        assert not policy.is_locked(record)
        assert policy.remaining_lock_minutes(record) == 0
        # Counter is not cleared retroactively.
        assert record.login_attempts == 5

    def test_success_resets_to_open(self, policy, store, user) -> None:
        for _ in range(5):
            _fail(policy, store, user)
        policy.record_success(store, store.get_by_id(user.id))
        record = store.get_by_id(user.id)
        assert record.login_attempts == 0
        assert record.lock_until is None
        assert not policy.is_locked(record)


class TestEdgeCases:
    def test_failure_during_lock_does_not_extend_window(self, policy, store, user, clock) -> None:
        for _ in range(5):
            _fail(policy, store, user)
        original_until = store.get_by_id(user.id).lock_until

        clock.advance(minutes=10)
        result = _fail(policy, store, user)

        record = store.get_by_id(user.id)
        assert record.login_attempts == 6
        assert record.lock_until == original_until
        assert result.locked_until == original_until
        assert policy.remaining_lock_minutes(record) == 5

    def test_elapsed_lock_restarts_counting(self, policy, store, user, clock) -> None:
        for _ in range(5):
            _fail(policy, store, user)
        clock.advance(minutes=16)

        result = _fail(policy, store, user)

        assert result.attempts == 1
        assert result.attempts_left == 4
        assert result.locked_until is None
        assert store.get_by_id(user.id).lock_until is None

    def test_relocks_after_another_full_round(self, policy, store, user, clock) -> None:
        for _ in range(5):
            _fail(policy, store, user)
        clock.advance(minutes=16)
        for _ in range(4):
            assert _fail(policy, store, user).locked_until is None
        assert _fail(policy, store, user).locked_until == clock() + timedelta(minutes=15)

    def test_remaining_minutes_round_up(self, policy, store, user, clock) -> None:
        for _ in range(5):
            _fail(policy, store, user)
        clock.advance(minutes=14, seconds=30)
        assert policy.remaining_lock_minutes(store.get_by_id(user.id)) == 1

    def test_deleted_user_failure_is_harmless(self, policy, store, user) -> None:
        store.delete_user(user.id)
        result = policy.record_failure(store, user)
        assert result.attempts == 0
        assert result.locked_until is None
