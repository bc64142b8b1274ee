"""
auth/validation.py -- Explicit field validation for User records.

The store and the authenticator call these before anything is persisted.
Each check appends a FieldError instead of raising immediately so a client
gets every problem with a form in one response. ValidationFailed is raised
once at the end if anything was collected.

normalize_email() is used for both writes and lookups; it is what makes email
uniqueness case-insensitive.
"""

from __future__ import annotations

import re

from auth.errors import FieldError, ValidationFailed
from auth.models import User
from auth.permissions import PERMISSIONS, ROLES

USERNAME_MIN = 3
USERNAME_MAX = 30
PASSWORD_MIN = 6
# bcrypt only looks at the first 72 bytes and newer releases refuse longer input.
PASSWORD_MAX_BYTES = 72
NAME_MAX = 50
PROFILE_FIELD_MAX = 100

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[A-Za-z]{2,}$")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def check_password(password: str | None, errors: list[FieldError], field: str = "password") -> None:
    if password is None or len(password) < PASSWORD_MIN:
        errors.append(FieldError(field, f"Password must be at least {PASSWORD_MIN} characters"))
    elif len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        errors.append(FieldError(field, f"Password must be at most {PASSWORD_MAX_BYTES} bytes"))


def validate_user(user: User, require_password: bool = False) -> None:
    """Validate and normalise a User in place before it is written.

    Strips whitespace from the text fields and lower-cases the email. The
    password is checked only when one is pending (or required, for new users).
    Raises ValidationFailed listing every failing field.
    """
    errors: list[FieldError] = []

    user.username = (user.username or "").strip()
    if not USERNAME_MIN <= len(user.username) <= USERNAME_MAX:
        errors.append(
            FieldError("username", f"Username must be between {USERNAME_MIN} and {USERNAME_MAX} characters")
        )

    user.email = normalize_email(user.email or "")
    if not _EMAIL_RE.match(user.email):
        errors.append(FieldError("email", "Valid email is required"))

    if require_password or user.password is not None:
        check_password(user.password, errors)

    user.first_name = (user.first_name or "").strip()
    user.last_name = (user.last_name or "").strip()
    for field, value, label in (
        ("first_name", user.first_name, "First name"),
        ("last_name", user.last_name, "Last name"),
    ):
        if not 1 <= len(value) <= NAME_MAX:
            errors.append(FieldError(field, f"{label} is required and must be at most {NAME_MAX} characters"))

    for field in ("department", "position"):
        value = getattr(user, field)
        if value is not None:
            value = value.strip() or None
            setattr(user, field, value)
            if value is not None and len(value) > PROFILE_FIELD_MAX:
                errors.append(FieldError(field, f"Must be at most {PROFILE_FIELD_MAX} characters"))

    if user.role not in ROLES:
        errors.append(FieldError("role", "Invalid role"))

    unknown = sorted(set(user.permissions) - PERMISSIONS)
    if unknown:
        errors.append(FieldError("permissions", f"Unknown permissions: {', '.join(unknown)}"))

    if errors:
        raise ValidationFailed(errors=errors)


def validate_login(email: str | None, password: str | None) -> None:
    errors: list[FieldError] = []
    if not email or not email.strip():
        errors.append(FieldError("email", "Email is required"))
    if not password:
        errors.append(FieldError("password", "Password is required"))
    if errors:
        raise ValidationFailed(errors=errors)
