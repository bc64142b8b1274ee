"""
auth/authenticator.py -- Credential checks and session token issuance.

login() runs its checks in a fixed order and the order matters:

  1. unknown email       -> InvalidCredentials (after a dummy bcrypt check)
  2. account locked      -> AccountLocked, even with the right password
  3. account deactivated -> AccountDeactivated
  4. password mismatch   -> lockout failure path, InvalidCredentials
  5. success             -> lockout reset, last_login stamped, token issued

Wrong email and wrong password produce the same error and take the same time
so callers cannot probe which emails are registered.

The clock is injectable so lock expiry can be tested without waiting.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from auth.errors import AccountDeactivated, AccountLocked, InvalidCredentials
from auth.lockout import LockoutTracker
from auth.models import AuthResult, User
from auth.permissions import ROLES, Role, default_permissions
from auth.store import UserStore
from auth.tokens import burn_password_check, create_access_token, verify_password
from auth.validation import validate_login

logger = logging.getLogger("assetdesk.auth")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Authenticator:
    def __init__(
        self,
        store: UserStore,
        tracker: LockoutTracker | None = None,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.store = store
        self.tracker = tracker or LockoutTracker(store)
        self.clock = clock

    def login(self, email: str, password: str) -> AuthResult:
        """Verify an email/password pair and issue a session token.

        Raises InvalidCredentials, AccountLocked, AccountDeactivated, or
        ValidationFailed for an empty email or password.
        """
        validate_login(email, password)
        now = self.clock()

        user = self.store.find_by_email(email)
        if user is None:
            burn_password_check(password)
            logger.info("Login failed: unknown email")
            raise InvalidCredentials()

        if self.tracker.is_locked(user, now):
            logger.info("Login refused for %s: account locked until %s", user.username, user.lock_until)
            raise AccountLocked()

        if not user.is_active:
            logger.info("Login refused for %s: account deactivated", user.username)
            raise AccountDeactivated()

        if not verify_password(password, user.hashed_password or ""):
            self.tracker.record_failure(user, now)
            logger.info("Login failed for %s: bad password", user.username)
            raise InvalidCredentials()

        self.tracker.record_success(user)
        self.store.update_last_login(user.id, now)
        user.last_login = now
        logger.info("Login successful for %s (role=%s)", user.username, user.role)
        return AuthResult(token=self.issue_token(user), user=user)

    def register(self, candidate: User) -> AuthResult:
        """Create an account and sign it in.

        The role defaults to Employee and the stored permissions always start
        from the role's default set. Raises DuplicateIdentity or
        ValidationFailed.
        """
        if not candidate.role:
            candidate.role = Role.EMPLOYEE.value
        if candidate.role in ROLES:
            candidate.permissions = default_permissions(candidate.role)
        user = self.store.create(candidate)
        logger.info("Registered %s (role=%s)", user.username, user.role)
        return AuthResult(token=self.issue_token(user), user=user)

    def issue_token(self, user: User) -> str:
        return create_access_token(user, now=self.clock())
