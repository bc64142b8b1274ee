"""
auth/errors.py -- Failure taxonomy for authentication and authorization.

Every failure the auth core can report is an AuthError subclass carrying a
machine-readable code, a default human message, and the HTTP status the API
layer answers with. api/main.py registers one exception handler for the base
class, so routes and dependencies simply raise.

InvalidCredentials deliberately covers both "no such email" and "wrong
password" so callers cannot enumerate accounts.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class FieldError:
    """One field-level validation problem."""

    field: str
    message: str


class AuthError(Exception):
    code = "auth_error"
    status_code = 400
    default_message = "Authentication error."

    def __init__(self, message: str | None = None, errors: list[FieldError] | None = None) -> None:
        self.message = message or self.default_message
        self.errors = list(errors or [])
        super().__init__(self.message)


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    status_code = 401
    default_message = "Invalid credentials."


class AccountLocked(AuthError):
    code = "account_locked"
    status_code = 401
    default_message = "Account is temporarily locked due to multiple failed login attempts."


class AccountDeactivated(AuthError):
    code = "account_deactivated"
    status_code = 401
    default_message = "Account is deactivated."


class DuplicateIdentity(AuthError):
    code = "duplicate_identity"
    status_code = 409
    default_message = "User with this email or username already exists."


class Unauthenticated(AuthError):
    code = "unauthenticated"
    status_code = 401
    default_message = "Authentication required."


class Forbidden(AuthError):
    code = "forbidden"
    status_code = 403
    default_message = "Insufficient permissions."


class ValidationFailed(AuthError):
    code = "validation_failed"
    status_code = 400
    default_message = "Validation failed."


class UserNotFound(AuthError):
    code = "not_found"
    status_code = 404
    default_message = "User not found."
