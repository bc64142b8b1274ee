"""Tests for the failed-login lockout cycle, driven through Authenticator.login().

Covers:
- five consecutive failures lock the account; the sixth attempt is refused
  with AccountLocked even with the correct password, until lock_until passes
- after the lock expires a failure restarts the count at 1
- a successful login resets the count and clears the lock
- a failure to persist the counter still answers InvalidCredentials
"""

import logging
from datetime import timedelta
from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from auth.authenticator import Authenticator
from auth.errors import AccountLocked, InvalidCredentials
from auth.lockout import LockoutTracker
from conftest import make_user


@pytest.fixture
def auth(store, clock) -> Authenticator:
    return Authenticator(store, clock=clock)


def _fail(auth: Authenticator, times: int, email: str = "alice@example.com") -> None:
    for _ in range(times):
        with pytest.raises(InvalidCredentials):
            auth.login(email, "wrong-password")


class TestLockCycle:
    def test_sixth_attempt_locked_even_with_correct_password(self, store, auth, clock) -> None:
        make_user(store)
        _fail(auth, 5)
        user = store.find_by_email("alice@example.com")
        assert user.login_attempts == 5
        assert user.lock_until == clock.now + timedelta(hours=2)

        with pytest.raises(AccountLocked):
            auth.login("alice@example.com", "secret1")

    def test_lock_holds_until_expiry(self, store, auth, clock) -> None:
        make_user(store)
        _fail(auth, 5)
        clock.advance(hours=1, minutes=59)
        with pytest.raises(AccountLocked):
            auth.login("alice@example.com", "secret1")
        clock.advance(minutes=2)
        result = auth.login("alice@example.com", "secret1")
        assert result.user.username == "alice"

    def test_locked_attempts_do_not_increment(self, store, auth) -> None:
        make_user(store)
        _fail(auth, 5)
        for _ in range(3):
            with pytest.raises(AccountLocked):
                auth.login("alice@example.com", "wrong-password")
        assert store.find_by_email("alice@example.com").login_attempts == 5

    def test_four_failures_do_not_lock(self, store, auth) -> None:
        make_user(store)
        _fail(auth, 4)
        user = store.find_by_email("alice@example.com")
        assert user.login_attempts == 4
        assert user.lock_until is None
        assert auth.login("alice@example.com", "secret1").token

    def test_failure_after_expiry_restarts_at_one(self, store, auth, clock) -> None:
        make_user(store)
        _fail(auth, 5)
        clock.advance(hours=2, minutes=1)
        _fail(auth, 1)
        user = store.find_by_email("alice@example.com")
        assert user.login_attempts == 1
        assert user.lock_until is None
        assert not LockoutTracker.is_locked(user, clock.now)

    def test_success_resets_counter_and_lock(self, store, auth, clock) -> None:
        make_user(store)
        _fail(auth, 3)
        auth.login("alice@example.com", "secret1")
        user = store.find_by_email("alice@example.com")
        assert user.login_attempts == 0
        assert user.lock_until is None

    def test_success_after_expiry_clears_stale_lock(self, store, auth, clock) -> None:
        make_user(store)
        _fail(auth, 5)
        clock.advance(hours=3)
        auth.login("alice@example.com", "secret1")
        user = store.find_by_email("alice@example.com")
        assert (user.login_attempts, user.lock_until) == (0, None)

    def test_unknown_email_never_locks_anything(self, store, auth) -> None:
        make_user(store)
        _fail(auth, 10, email="nobody@example.com")
        assert store.find_by_email("alice@example.com").login_attempts == 0


class TestConfiguredPolicy:
    def test_custom_threshold_and_duration(self, store, clock) -> None:
        tracker = LockoutTracker(store, max_attempts=3, lock_duration=timedelta(minutes=15))
        auth = Authenticator(store, tracker=tracker, clock=clock)
        make_user(store)
        _fail(auth, 3)
        user = store.find_by_email("alice@example.com")
        assert user.lock_until == clock.now + timedelta(minutes=15)

    def test_explicit_zero_duration_is_kept(self, store) -> None:
        tracker = LockoutTracker(store, max_attempts=1, lock_duration=timedelta(0))
        assert tracker.lock_duration == timedelta(0)
        assert tracker.max_attempts == 1

    def test_defaults_come_from_settings(self, store) -> None:
        tracker = LockoutTracker(store)
        assert tracker.max_attempts == 5
        assert tracker.lock_duration == timedelta(hours=2)

    def test_lock_warning_follows_stored_count(self, store, clock, caplog) -> None:
        tracker = LockoutTracker(store, max_attempts=2)
        user = make_user(store)
        # A snapshot that claims one prior failure while the store has none.
        user.login_attempts = 1
        with caplog.at_level(logging.WARNING, logger="assetdesk.auth.lockout"):
            tracker.record_failure(user, clock.now)
        assert "account locked" not in caplog.text
        assert store.find_by_id(user.id).lock_until is None

        with caplog.at_level(logging.WARNING, logger="assetdesk.auth.lockout"):
            tracker.record_failure(store.find_by_id(user.id), clock.now)
        assert "account locked" in caplog.text


class TestBestEffort:
    def test_persist_failure_still_reports_invalid_credentials(self, store, auth) -> None:
        make_user(store)
        error = OperationalError("UPDATE users", {}, Exception("database is locked"))
        with patch.object(store, "increment_login_attempts", side_effect=error):
            with pytest.raises(InvalidCredentials):
                auth.login("alice@example.com", "wrong-password")
        assert store.find_by_email("alice@example.com").login_attempts == 0
