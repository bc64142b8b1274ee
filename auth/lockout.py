"""
auth/lockout.py -- Consecutive-failure counting and temporary account locks.

Each account is either Unlocked or Locked (lock_until in the future):

  failure, unlocked        -> login_attempts + 1; lock for lock_duration once
                              the count reaches max_attempts
  failure, lock expired    -> fresh cycle: login_attempts = 1, lock cleared
  failure, lock active     -> never reaches here; the authenticator refuses
                              the attempt before checking the password
  success                  -> login_attempts = 0, lock cleared

Failure-path updates are best-effort. If the write fails the caller still
answers InvalidCredentials; the error is logged and swallowed here. The reset
on success is not: a login that cannot clear the counter fails loudly.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.exc import SQLAlchemyError

from auth.models import User
from auth.store import UserStore
from core.config import get_settings

logger = logging.getLogger("assetdesk.auth.lockout")


class LockoutTracker:
    def __init__(
        self,
        store: UserStore,
        max_attempts: int | None = None,
        lock_duration: timedelta | None = None,
    ) -> None:
        settings = get_settings()
        self.store = store
        self.max_attempts = settings.max_login_attempts if max_attempts is None else max_attempts
        if lock_duration is None:
            lock_duration = timedelta(seconds=settings.lock_duration_seconds)
        self.lock_duration = lock_duration

    @staticmethod
    def is_locked(user: User, now: datetime) -> bool:
        return user.lock_until is not None and user.lock_until > now

    def record_failure(self, user: User, now: datetime) -> None:
        """Count a failed password check against the user."""
        try:
            if user.lock_until is not None and user.lock_until <= now:
                self.store.restart_login_attempts(user.id)
                return
            locked = self.store.increment_login_attempts(user.id, self.max_attempts, now + self.lock_duration)
        except SQLAlchemyError:
            logger.warning("Could not record failed login for user_id=%s", user.id, exc_info=True)
            return
        if locked:
            logger.warning(
                "User %s reached %d failed login attempts; account locked",
                user.username,
                self.max_attempts,
            )

    def record_success(self, user: User) -> None:
        """Clear the failure count after a successful login."""
        if user.login_attempts == 0 and user.lock_until is None:
            return
        self.store.reset_login_attempts(user.id)
        user.login_attempts = 0
        user.lock_until = None
