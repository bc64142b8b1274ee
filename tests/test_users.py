"""Unit tests for auth/users.py -- administrative user operations."""

from datetime import datetime, timezone

import pytest

from auth.errors import InvalidCredentials, UserNotFound, ValidationFailed
from auth.permissions import has_permission
from auth.tokens import verify_password
from auth.users import UserManager
from conftest import make_user


@pytest.fixture
def manager(store) -> UserManager:
    return UserManager(store)


class TestRoleChanges:
    def test_demoted_manager_loses_edit_employees(self, store, manager) -> None:
        make_user(store, "admin", role="Admin")
        bob = make_user(store, "bobby", role="Manager")
        assert has_permission(store.find_by_id(bob.id), "edit_employees")

        manager.change_role(bob.id, "Employee")

        reloaded = store.find_by_id(bob.id)
        assert reloaded.role == "Employee"
        assert reloaded.permissions == ["view_assets", "view_employees"]
        assert not has_permission(reloaded, "edit_employees")

    def test_role_change_keeps_password_hash(self, store, manager) -> None:
        bob = make_user(store, "bobby", role="Manager")
        manager.change_role(bob.id, "Employee")
        assert store.find_by_id(bob.id).hashed_password == bob.hashed_password

    def test_invalid_role(self, store, manager) -> None:
        bob = make_user(store, "bobby")
        with pytest.raises(ValidationFailed):
            manager.change_role(bob.id, "Overlord")

    def test_cannot_demote_last_admin(self, store, manager) -> None:
        admin = make_user(store, "admin", role="Admin")
        with pytest.raises(ValidationFailed):
            manager.change_role(admin.id, "Manager")

    def test_missing_user(self, manager) -> None:
        with pytest.raises(UserNotFound):
            manager.change_role(404, "Employee")


class TestPermissions:
    def test_set_permissions_dedupes(self, store, manager) -> None:
        bob = make_user(store, "bobby")
        user = manager.set_permissions(bob.id, ["view_reports", "view_reports", "create_assets"])
        assert user.permissions == ["view_reports", "create_assets"]
        assert has_permission(store.find_by_id(bob.id), "create_assets")

    def test_unknown_permission(self, store, manager) -> None:
        bob = make_user(store, "bobby")
        with pytest.raises(ValidationFailed):
            manager.set_permissions(bob.id, ["fly"])


class TestActivation:
    def test_deactivate_and_reactivate(self, store, manager) -> None:
        admin = make_user(store, "admin", role="Admin")
        bob = make_user(store, "bobby")
        assert manager.set_active(bob.id, False, acting_user=admin).is_active is False
        assert store.find_by_id(bob.id).is_active is False
        assert manager.set_active(bob.id, True, acting_user=admin).is_active is True

    def test_no_self_deactivation(self, store, manager) -> None:
        admin = make_user(store, "admin", role="Admin")
        make_user(store, "admin2", role="Admin")
        with pytest.raises(ValidationFailed):
            manager.set_active(admin.id, False, acting_user=admin)

    def test_last_admin_protected(self, store, manager) -> None:
        admin = make_user(store, "admin", role="Admin")
        other = make_user(store, "other", role="Admin")
        manager.set_active(other.id, False, acting_user=admin)
        # `other` is gone; deactivating `admin` would leave no active admin.
        actor = make_user(store, "manny", role="Manager")
        with pytest.raises(ValidationFailed):
            manager.set_active(admin.id, False, acting_user=actor)


class TestSelfService:
    def test_update_profile_ignores_none(self, store, manager) -> None:
        bob = make_user(store, "bobby", department="IT")
        user = manager.update_profile(bob.id, first_name="Robert", last_name=None, department=None, position="Lead")
        assert (user.first_name, user.last_name, user.department, user.position) == ("Robert", "Tester", "IT", "Lead")

    def test_update_profile_rejects_unknown_field(self, store, manager) -> None:
        bob = make_user(store, "bobby")
        with pytest.raises(ValueError):
            manager.update_profile(bob.id, role="Admin")

    def test_change_password(self, store, manager) -> None:
        bob = make_user(store, "bobby")
        manager.change_password(bob.id, "secret1", "brandnew1")
        assert verify_password("brandnew1", store.find_by_id(bob.id).hashed_password)

    def test_change_password_requires_current(self, store, manager) -> None:
        bob = make_user(store, "bobby")
        with pytest.raises(InvalidCredentials):
            manager.change_password(bob.id, "wrong", "brandnew1")

    def test_change_password_policy(self, store, manager) -> None:
        bob = make_user(store, "bobby")
        with pytest.raises(ValidationFailed) as exc:
            manager.change_password(bob.id, "secret1", "123")
        assert exc.value.errors[0].field == "new_password"


def test_unlock(store, manager) -> None:
    bob = make_user(store, "bobby")
    store.increment_login_attempts(bob.id, threshold=1, lock_until=datetime(2099, 1, 1, tzinfo=timezone.utc))
    user = manager.unlock(bob.id)
    assert (user.login_attempts, user.lock_until) == (0, None)
