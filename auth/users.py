"""
auth/users.py -- Administrative operations on user accounts.

Role changes reset the stored permissions to the new role's defaults, so a
demoted user does not keep grants that came with the old role. Explicit grants
can be layered back on with set_permissions().

Accounts are never hard-deleted here; deactivation is a soft flag. Two guards
protect against locking everyone out: an admin cannot deactivate their own
account, and the last active Admin cannot be deactivated or demoted.
"""

from __future__ import annotations

import logging

from auth.errors import FieldError, InvalidCredentials, UserNotFound, ValidationFailed
from auth.models import User
from auth.permissions import PERMISSIONS, ROLES, Role, default_permissions
from auth.store import UserStore
from auth.tokens import verify_password
from auth.validation import check_password

logger = logging.getLogger("assetdesk.users")

_PROFILE_FIELDS = ("first_name", "last_name", "department", "position")


class UserManager:
    def __init__(self, store: UserStore) -> None:
        self.store = store

    def list_users(self, active_only: bool = True) -> list[User]:
        return self.store.list_users(active_only=active_only)

    def get_user(self, user_id: int) -> User:
        user = self.store.find_by_id(user_id)
        if user is None:
            raise UserNotFound()
        return user

    def change_role(self, user_id: int, role: str) -> User:
        if role not in ROLES:
            raise ValidationFailed(errors=[FieldError("role", "Invalid role")])
        user = self.get_user(user_id)
        if user.role == Role.ADMIN and role != Role.ADMIN and user.is_active:
            self._ensure_not_last_admin("Cannot demote the last active admin account.")
        user.role = role
        user.permissions = default_permissions(role)
        self.store.save(user)
        logger.info("Role of %s changed to %s", user.username, role)
        return user

    def set_permissions(self, user_id: int, permissions: list[str]) -> User:
        unknown = sorted(set(permissions) - PERMISSIONS)
        if unknown:
            raise ValidationFailed(errors=[FieldError("permissions", f"Unknown permissions: {', '.join(unknown)}")])
        user = self.get_user(user_id)
        # Preserve order, drop duplicates.
        user.permissions = list(dict.fromkeys(permissions))
        self.store.save(user)
        logger.info("Permissions of %s set to %s", user.username, user.permissions)
        return user

    def set_active(self, user_id: int, active: bool, acting_user: User) -> User:
        user = self.get_user(user_id)
        if not active:
            if user.id == acting_user.id:
                raise ValidationFailed("You cannot deactivate your own account.")
            if user.role == Role.ADMIN and user.is_active:
                self._ensure_not_last_admin("Cannot deactivate the last active admin account.")
        user.is_active = active
        self.store.save(user)
        logger.info("User %s %s by %s", user.username, "activated" if active else "deactivated", acting_user.username)
        return user

    def unlock(self, user_id: int) -> User:
        user = self.get_user(user_id)
        self.store.reset_login_attempts(user.id)
        logger.info("Lockout cleared for %s", user.username)
        return self.get_user(user_id)

    def update_profile(self, user_id: int, **fields) -> User:
        """Update first_name, last_name, department and/or position.

        None values are ignored so partial updates can pass every field.
        """
        unknown = set(fields) - set(_PROFILE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown profile fields: {unknown!r}")
        user = self.get_user(user_id)
        for name, value in fields.items():
            if value is not None:
                setattr(user, name, value)
        return self.store.save(user)

    def change_password(self, user_id: int, current_password: str, new_password: str) -> User:
        """Replace a user's password after checking the current one.

        Setting user.password makes save() hash the new value.
        """
        user = self.get_user(user_id)
        if not verify_password(current_password, user.hashed_password or ""):
            raise InvalidCredentials("Current password is incorrect.")
        errors: list[FieldError] = []
        check_password(new_password, errors, field="new_password")
        if errors:
            raise ValidationFailed(errors=errors)
        user.password = new_password
        self.store.save(user)
        logger.info("Password changed for %s", user.username)
        return user

    def _ensure_not_last_admin(self, message: str) -> None:
        if self.store.count_active_admins() <= 1:
            raise ValidationFailed(message)
