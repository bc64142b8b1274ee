"""Unit tests for auth/permissions.py -- role defaults and the access predicates."""

from __future__ import annotations

import pytest

from auth.models import User
from auth.permissions import (
    PERMISSIONS,
    Permission,
    Role,
    default_permissions,
    effective_permissions,
    has_permission,
    has_role,
)


def _user(role: str, permissions: list[str] | None = None) -> User:
    return User(username="u1x", email="u1x@example.com", role=role, permissions=permissions or [])


class TestRoleDefaults:
    def test_admin_gets_all_eleven(self) -> None:
        assert len(PERMISSIONS) == 11
        assert set(default_permissions("Admin")) == PERMISSIONS

    def test_manager_defaults(self) -> None:
        assert set(default_permissions("Manager")) == {
            "view_assets",
            "create_assets",
            "edit_assets",
            "view_employees",
            "create_employees",
            "edit_employees",
            "view_reports",
        }

    def test_employee_defaults(self) -> None:
        assert default_permissions("Employee") == ["view_assets", "view_employees"]

    def test_unknown_role_raises(self) -> None:
        with pytest.raises(ValueError):
            default_permissions("Intern")

    def test_defaults_are_copies(self) -> None:
        perms = default_permissions("Employee")
        perms.append("manage_users")
        assert "manage_users" not in default_permissions("Employee")


class TestHasPermission:
    def test_employee_without_grants_can_view_but_not_create_assets(self) -> None:
        user = _user("Employee")
        assert has_permission(user, "view_assets")
        assert not has_permission(user, "create_assets")

    def test_admin_with_empty_stored_set_has_everything(self) -> None:
        user = _user("Admin")
        for permission in Permission:
            assert has_permission(user, permission.value)

    def test_explicit_grant_is_additive(self) -> None:
        user = _user("Employee", ["view_reports"])
        assert has_permission(user, "view_reports")
        assert has_permission(user, "view_assets")

    def test_manager_cannot_manage_users(self) -> None:
        assert not has_permission(_user("Manager"), "manage_users")
        assert not has_permission(_user("Manager"), "delete_assets")

    def test_effective_permissions_union(self) -> None:
        user = _user("Employee", ["edit_assets"])
        assert effective_permissions(user) == {"view_assets", "view_employees", "edit_assets"}


def test_has_role() -> None:
    user = _user("Manager")
    assert has_role(user, "Admin", "Manager")
    assert not has_role(user, Role.ADMIN.value)
