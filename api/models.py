"""
API request and response models for AssetDesk REST endpoints.

These Pydantic v2 models define the HTTP transport contract for the API layer.
They are intentionally separate from the dataclasses in auth/models.py, which
own the internal domain representation. Route handlers map between the two.

Request models only enforce types and generous length caps. The business
rules (username length, email syntax, password policy) live in
auth/validation.py so the CLI and the store apply exactly the same checks.

Every response uses one envelope:
  success: {"status": "success", "message": ..., "data": ...}
  error:   {"status": "error", "code": ..., "message": ..., "errors": [...]}
"""

from enum import Enum
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from auth.models import User
from auth.permissions import effective_permissions

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class RoleEnum(str, Enum):
    Admin = "Admin"
    Manager = "Manager"
    Employee = "Employee"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login."""

    model_config = ConfigDict(str_strip_whitespace=True)

    email: str = Field(default="", max_length=255)
    password: str = Field(default="", max_length=128)


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register."""

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(max_length=255)
    email: str = Field(max_length=255)
    password: str = Field(max_length=128)
    first_name: str = Field(max_length=255)
    last_name: str = Field(max_length=255)
    role: RoleEnum = RoleEnum.Employee
    department: Optional[str] = Field(default=None, max_length=255)
    position: Optional[str] = Field(default=None, max_length=255)


class ProfileUpdate(BaseModel):
    """Request body for PUT /api/v1/auth/profile. Omitted fields are unchanged."""

    model_config = ConfigDict(str_strip_whitespace=True)

    first_name: Optional[str] = Field(default=None, max_length=255)
    last_name: Optional[str] = Field(default=None, max_length=255)
    department: Optional[str] = Field(default=None, max_length=255)
    position: Optional[str] = Field(default=None, max_length=255)


class PasswordChange(BaseModel):
    """Request body for PUT /api/v1/auth/password."""

    current_password: str = Field(max_length=128)
    new_password: str = Field(max_length=128)


class RoleUpdate(BaseModel):
    """Request body for PUT /api/v1/auth/users/{id}/role."""

    role: RoleEnum


class PermissionsUpdate(BaseModel):
    """Request body for PUT /api/v1/auth/users/{id}/permissions."""

    permissions: list[str] = Field(max_length=50)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Sanitized projection of a User: no password hash, no lockout counters."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    first_name: str
    last_name: str
    role: str
    permissions: list[str]
    effective_permissions: list[str]
    department: Optional[str] = None
    position: Optional[str] = None
    is_active: bool
    last_login: Optional[str] = None
    created_at: str = ""

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            first_name=user.first_name,
            last_name=user.last_name,
            role=user.role,
            permissions=list(user.permissions),
            effective_permissions=sorted(effective_permissions(user)),
            department=user.department,
            position=user.position,
            is_active=user.is_active,
            last_login=user.last_login.isoformat() if user.last_login else None,
            created_at=user.created_at or "",
        )


class AdminUserResponse(UserResponse):
    """User projection for administrators; adds the lockout state."""

    login_attempts: int = 0
    lock_until: Optional[str] = None

    @classmethod
    def from_user(cls, user: User) -> "AdminUserResponse":
        base = UserResponse.from_user(user).model_dump()
        return cls(
            **base,
            login_attempts=user.login_attempts,
            lock_until=user.lock_until.isoformat() if user.lock_until else None,
        )


class AuthData(BaseModel):
    model_config = ConfigDict(frozen=True)

    token: str
    user: UserResponse


class AuthResponse(BaseModel):
    """Response for POST /login and POST /register."""

    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    message: str
    data: AuthData


class UserData(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: UserResponse


class UserEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    message: str = ""
    data: UserData


class AdminUserData(BaseModel):
    model_config = ConfigDict(frozen=True)

    user: AdminUserResponse


class AdminUserEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    message: str = ""
    data: AdminUserData


class UserListData(BaseModel):
    model_config = ConfigDict(frozen=True)

    users: list[AdminUserResponse]


class UserListEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: Literal["success"] = "success"
    message: str = ""
    data: UserListData


class FieldErrorModel(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    message: str


class ErrorResponse(BaseModel):
    """Error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    status: Literal["error"] = "error"
    code: str
    message: str
    errors: Optional[list[FieldErrorModel]] = None


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
