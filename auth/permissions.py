"""
auth/permissions.py -- Roles, the permission vocabulary, and the access predicates.

The role -> default permission table is fixed. Stored permissions on a User
are explicit grants layered on top of the role defaults; they never take
anything away. Admin holds every permission whatever its stored set says.

has_permission() is the single place that encodes the Admin bypass. Routes
and dependencies call it rather than re-implementing the check.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from enum import Enum

from auth.models import User


class Role(str, Enum):
    ADMIN = "Admin"
    MANAGER = "Manager"
    EMPLOYEE = "Employee"


class Permission(str, Enum):
    VIEW_ASSETS = "view_assets"
    CREATE_ASSETS = "create_assets"
    EDIT_ASSETS = "edit_assets"
    DELETE_ASSETS = "delete_assets"
    VIEW_EMPLOYEES = "view_employees"
    CREATE_EMPLOYEES = "create_employees"
    EDIT_EMPLOYEES = "edit_employees"
    DELETE_EMPLOYEES = "delete_employees"
    VIEW_REPORTS = "view_reports"
    MANAGE_USERS = "manage_users"
    SYSTEM_SETTINGS = "system_settings"


ROLES: frozenset[str] = frozenset(r.value for r in Role)
PERMISSIONS: frozenset[str] = frozenset(p.value for p in Permission)

# Ordered tuples so API responses list permissions in a stable order.
_ROLE_DEFAULTS: dict[str, tuple[str, ...]] = {
    Role.ADMIN.value: tuple(p.value for p in Permission),
    Role.MANAGER.value: (
        Permission.VIEW_ASSETS.value,
        Permission.CREATE_ASSETS.value,
        Permission.EDIT_ASSETS.value,
        Permission.VIEW_EMPLOYEES.value,
        Permission.CREATE_EMPLOYEES.value,
        Permission.EDIT_EMPLOYEES.value,
        Permission.VIEW_REPORTS.value,
    ),
    Role.EMPLOYEE.value: (
        Permission.VIEW_ASSETS.value,
        Permission.VIEW_EMPLOYEES.value,
    ),
}


def default_permissions(role: str) -> list[str]:
    """Return the default permission list for a role.

    Raises ValueError for a role outside the enumeration.
    """
    try:
        return list(_ROLE_DEFAULTS[role])
    except KeyError:
        raise ValueError(f"Unknown role: {role!r}") from None


def effective_permissions(user: User) -> set[str]:
    """Role defaults plus explicit grants. Admin always gets the full vocabulary."""
    if user.role == Role.ADMIN:
        return set(PERMISSIONS)
    return set(_ROLE_DEFAULTS.get(user.role, ())) | set(user.permissions)


def has_permission(user: User, permission: str) -> bool:
    if user.role == Role.ADMIN:
        return True
    return permission in effective_permissions(user)


def has_role(user: User, *roles: str) -> bool:
    return user.role in roles
