"""
api/routes/v1/auth.py -- Authentication and user management REST endpoints.

Routes:
  POST /api/v1/auth/login                      -- email/password login; returns JWT
  POST /api/v1/auth/register                   -- create account; returns JWT
  GET  /api/v1/auth/profile                    -- current user (requires auth)
  PUT  /api/v1/auth/profile                    -- update own profile fields (requires auth)
  PUT  /api/v1/auth/password                   -- change own password (requires auth)
  GET  /api/v1/auth/users                      -- list users (manage_users permission)
  PUT  /api/v1/auth/users/{id}/role            -- change role (Admin only)
  PUT  /api/v1/auth/users/{id}/permissions     -- set explicit grants (Admin only)
  PUT  /api/v1/auth/users/{id}/deactivate      -- soft-deactivate (Admin only)
  PUT  /api/v1/auth/users/{id}/activate        -- reactivate (Admin only)
  PUT  /api/v1/auth/users/{id}/unlock          -- clear lockout (Admin only)

Security:
  POST /login and POST /register are rate-limited per IP (LOGIN_RATE_LIMIT,
  REGISTER_RATE_LIMIT).
  Self-registration always yields an Employee unless the caller presents an
  Admin bearer token. With SELF_REGISTRATION_ENABLED=false only Admins can
  register accounts.
  Cache-Control: no-store on responses that carry a token.

Failures are raised as auth.errors exceptions; api/main.py turns them into the
error envelope.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import (
    AdminUserData,
    AdminUserEnvelope,
    AdminUserResponse,
    AuthData,
    AuthResponse,
    LoginRequest,
    PasswordChange,
    PermissionsUpdate,
    ProfileUpdate,
    RegisterRequest,
    RoleUpdate,
    UserData,
    UserEnvelope,
    UserListData,
    UserListEnvelope,
    UserResponse,
)
from auth.authenticator import Authenticator
from auth.dependencies import get_current_user, require_permission, require_role, try_get_current_user
from auth.errors import Forbidden
from auth.models import AuthResult, User
from auth.permissions import Permission, Role
from auth.store import UserStore
from auth.users import UserManager
from core.config import get_settings

_settings = get_settings()

# Auth policy:
# - POST /auth/login, /auth/register:     public (rate limited)
# - GET/PUT /auth/profile, PUT /password: requires auth (get_current_user)
# - GET /auth/users:                      requires manage_users (require_permission)
# - PUT /auth/users/{id}/*:               requires Admin role (require_role)
router = APIRouter()

_require_admin = require_role(Role.ADMIN.value)


def _store(request: Request) -> UserStore:
    return request.app.state.user_store


def _auth_response(result: AuthResult, message: str, status_code: int) -> JSONResponse:
    body = AuthResponse(
        message=message,
        data=AuthData(token=result.token, user=UserResponse.from_user(result.user)),
    )
    resp = JSONResponse(status_code=status_code, content=body.model_dump())
    resp.headers["Cache-Control"] = "no-store"
    return resp


def _admin_envelope(user: User, message: str) -> AdminUserEnvelope:
    return AdminUserEnvelope(message=message, data=AdminUserData(user=AdminUserResponse.from_user(user)))


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@limiter.limit(_settings.login_rate_limit)
@router.post("/auth/login", response_model=AuthResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password and return a session token.

    Wrong email and wrong password both answer invalid_credentials.
    """
    result = Authenticator(_store(request)).login(body.email, body.password)
    return _auth_response(result, "Login successful", 200)


@limiter.limit(_settings.register_rate_limit)
@router.post("/auth/register", response_model=AuthResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> JSONResponse:
    """Create an account and return a session token for it."""
    caller = try_get_current_user(request)
    caller_is_admin = caller is not None and caller.role == Role.ADMIN
    if not _settings.self_registration_enabled and not caller_is_admin:
        raise Forbidden("Self-registration is disabled. Ask an administrator for an account.")
    if body.role.value != Role.EMPLOYEE and not caller_is_admin:
        raise Forbidden("Only an administrator can register Admin or Manager accounts.")

    candidate = User(
        username=body.username,
        email=body.email,
        password=body.password,
        first_name=body.first_name,
        last_name=body.last_name,
        role=body.role.value,
        department=body.department,
        position=body.position,
    )
    result = Authenticator(_store(request)).register(candidate)
    return _auth_response(result, "User registered successfully", 201)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.get("/auth/profile", response_model=UserEnvelope)
def get_profile(current_user: User = Depends(get_current_user)) -> UserEnvelope:
    """Return the currently authenticated user."""
    return UserEnvelope(data=UserData(user=UserResponse.from_user(current_user)))


@router.put("/auth/profile", response_model=UserEnvelope)
def update_profile(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
) -> UserEnvelope:
    """Update the caller's own name, department and position."""
    user = UserManager(_store(request)).update_profile(current_user.id, **body.model_dump())
    return UserEnvelope(message="Profile updated successfully", data=UserData(user=UserResponse.from_user(user)))


@router.put("/auth/password", response_model=UserEnvelope)
def change_password(
    request: Request,
    body: PasswordChange,
    current_user: User = Depends(get_current_user),
) -> UserEnvelope:
    """Change the caller's password. The current password must be supplied."""
    user = UserManager(_store(request)).change_password(current_user.id, body.current_password, body.new_password)
    return UserEnvelope(message="Password changed successfully", data=UserData(user=UserResponse.from_user(user)))


# ---------------------------------------------------------------------------
# User management
# ---------------------------------------------------------------------------


@router.get("/auth/users", response_model=UserListEnvelope)
def list_users(
    request: Request,
    include_inactive: bool = False,
    current_user: User = Depends(require_permission(Permission.MANAGE_USERS.value)),
) -> UserListEnvelope:
    """List user accounts. Inactive accounts are hidden unless include_inactive=true."""
    users = UserManager(_store(request)).list_users(active_only=not include_inactive)
    return UserListEnvelope(data=UserListData(users=[AdminUserResponse.from_user(u) for u in users]))


@router.put("/auth/users/{user_id}/role", response_model=AdminUserEnvelope)
def update_role(
    request: Request,
    user_id: int,
    body: RoleUpdate,
    current_user: User = Depends(_require_admin),
) -> AdminUserEnvelope:
    """Change a user's role. Stored permissions are reset to the role defaults."""
    user = UserManager(_store(request)).change_role(user_id, body.role.value)
    return _admin_envelope(user, "User role updated successfully")


@router.put("/auth/users/{user_id}/permissions", response_model=AdminUserEnvelope)
def update_permissions(
    request: Request,
    user_id: int,
    body: PermissionsUpdate,
    current_user: User = Depends(_require_admin),
) -> AdminUserEnvelope:
    """Replace a user's explicit permission grants."""
    user = UserManager(_store(request)).set_permissions(user_id, body.permissions)
    return _admin_envelope(user, "User permissions updated successfully")


@router.put("/auth/users/{user_id}/deactivate", response_model=AdminUserEnvelope)
def deactivate_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(_require_admin),
) -> AdminUserEnvelope:
    """Soft-deactivate an account. Blocks self-deactivation and the last admin."""
    user = UserManager(_store(request)).set_active(user_id, False, acting_user=current_user)
    return _admin_envelope(user, "User deactivated successfully")


@router.put("/auth/users/{user_id}/activate", response_model=AdminUserEnvelope)
def activate_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(_require_admin),
) -> AdminUserEnvelope:
    user = UserManager(_store(request)).set_active(user_id, True, acting_user=current_user)
    return _admin_envelope(user, "User activated successfully")


@router.put("/auth/users/{user_id}/unlock", response_model=AdminUserEnvelope)
def unlock_user(
    request: Request,
    user_id: int,
    current_user: User = Depends(_require_admin),
) -> AdminUserEnvelope:
    """Clear failed login attempts and any active lock."""
    user = UserManager(_store(request)).unlock(user_id)
    return _admin_envelope(user, "User unlocked successfully")
