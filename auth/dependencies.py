"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication and authorization.

The guard reads the `Authorization: Bearer <token>` header, verifies the JWT
signature and expiry, and then loads the user from the store. Role and
permission checks use the stored record, not the claims baked into the token,
so a role change by an admin takes effect on the user's next request.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises Unauthenticated.
require_permission() / require_role() build dependencies that raise Forbidden.

On success the user is attached to request.state.user. Nothing is written.

Layer rule: no imports from api/.
  auth/dependencies.py may import from fastapi (for Request) because this
  module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from collections.abc import Callable

from fastapi import Request

from auth.errors import Forbidden, Unauthenticated
from auth.models import User
from auth.permissions import has_permission, has_role
from auth.tokens import decode_access_token


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def try_get_current_user(request: Request) -> User | None:
    """Authenticate the request from its bearer token.

    Returns the active User on success, None on any failure. Never raises.
    """
    token = _bearer_token(request)
    if token is None:
        return None
    payload = decode_access_token(token)
    if payload is None:
        return None
    try:
        user_id = int(payload["id"])
    except (TypeError, ValueError):
        return None
    user = request.app.state.user_store.find_by_id(user_id)
    if user is None or not user.is_active:
        return None
    request.state.user = user
    return user


def get_current_user(request: Request) -> User:
    """Require authentication. Raises Unauthenticated (401).

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(user: User = Depends(get_current_user)): ...
    """
    if _bearer_token(request) is None:
        raise Unauthenticated()
    user = try_get_current_user(request)
    if user is None:
        raise Unauthenticated("Invalid or expired token.")
    return user


def require_permission(permission: str) -> Callable[[Request], User]:
    """Build a dependency that requires one permission.

    Admins always pass; everyone else needs the permission in their role
    defaults or explicit grants.
    """

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        if not has_permission(user, permission):
            raise Forbidden(f"Permission '{permission}' required.")
        return user

    return dependency


def require_role(*roles: str) -> Callable[[Request], User]:
    """Build a dependency that requires the user's role to be one of `roles`."""

    def dependency(request: Request) -> User:
        user = get_current_user(request)
        if not has_role(user, *roles):
            raise Forbidden(f"Role {' or '.join(roles)} required.")
        return user

    return dependency
