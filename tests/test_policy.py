"""
Unit tests for the authorization policy.
"""

import pytest

from acquisitions.policy import Action, authorize
from acquisitions.result import Err, ErrorKind, Ok
from acquisitions.schemas import SessionClaims


def caller(id: int, role: str = "user") -> SessionClaims:
    return SessionClaims(id=id, name=f"User {id}", email=f"user{id}@example.com", role=role)


USER_5 = caller(5)
ADMIN_1 = caller(1, "admin")


def assert_denied(result, kind: ErrorKind):
    assert isinstance(result, Err)
    assert result.kind == kind


class TestAnonymous:

    @pytest.mark.parametrize("action", list(Action))
    def test_anonymous_is_unauthorized(self, action):
        assert_denied(authorize(None, action, target_id=5), ErrorKind.UNAUTHORIZED)

    def test_anonymous_role_change_is_unauthorized_not_forbidden(self):
        result = authorize(None, Action.WRITE_SELF_OR_ADMIN, target_id=5, changes={"role": "admin"})
        assert_denied(result, ErrorKind.UNAUTHORIZED)


class TestAdminOnly:

    def test_user_forbidden(self):
        assert_denied(authorize(USER_5, Action.ADMIN_ONLY), ErrorKind.FORBIDDEN)

    def test_user_forbidden_even_on_self(self):
        assert_denied(authorize(USER_5, Action.ADMIN_ONLY, target_id=5), ErrorKind.FORBIDDEN)

    def test_admin_allowed(self):
        result = authorize(ADMIN_1, Action.ADMIN_ONLY, target_id=7)
        assert isinstance(result, Ok)
        assert result.value == ADMIN_1


class TestSelfOrAdmin:

    @pytest.mark.parametrize("action", [Action.READ_SELF_OR_ADMIN, Action.WRITE_SELF_OR_ADMIN])
    def test_user_on_other_forbidden(self, action):
        assert_denied(authorize(USER_5, action, target_id=7), ErrorKind.FORBIDDEN)

    @pytest.mark.parametrize("action", [Action.READ_SELF_OR_ADMIN, Action.WRITE_SELF_OR_ADMIN])
    def test_user_on_self_allowed(self, action):
        assert isinstance(authorize(USER_5, action, target_id=5), Ok)

    @pytest.mark.parametrize("action", [Action.READ_SELF_OR_ADMIN, Action.WRITE_SELF_OR_ADMIN])
    def test_admin_on_other_allowed(self, action):
        assert isinstance(authorize(ADMIN_1, action, target_id=7), Ok)

    def test_update_other_with_name(self):
        result = authorize(USER_5, Action.WRITE_SELF_OR_ADMIN, target_id=7, changes={"name": "New"})
        assert_denied(result, ErrorKind.FORBIDDEN)


class TestRoleChange:

    def test_user_cannot_change_own_role(self):
        result = authorize(USER_5, Action.WRITE_SELF_OR_ADMIN, target_id=5, changes={"role": "admin"})
        assert_denied(result, ErrorKind.FORBIDDEN)
        assert "role" in result.message

    def test_user_cannot_demote_self_either(self):
        result = authorize(USER_5, Action.WRITE_SELF_OR_ADMIN, target_id=5, changes={"role": "user"})
        assert_denied(result, ErrorKind.FORBIDDEN)

    def test_admin_can_change_any_role(self):
        result = authorize(ADMIN_1, Action.WRITE_SELF_OR_ADMIN, target_id=7, changes={"role": "admin"})
        assert isinstance(result, Ok)

    def test_admin_can_change_own_role(self):
        result = authorize(ADMIN_1, Action.WRITE_SELF_OR_ADMIN, target_id=1, changes={"role": "user"})
        assert isinstance(result, Ok)

    def test_null_role_is_not_a_role_change(self):
        result = authorize(USER_5, Action.WRITE_SELF_OR_ADMIN, target_id=5, changes={"role": None, "name": "Ann"})
        assert isinstance(result, Ok)

    def test_self_update_without_role_allowed(self):
        result = authorize(
            USER_5,
            Action.WRITE_SELF_OR_ADMIN,
            target_id=5,
            changes={"name": "Ann", "email": "a@example.com", "password": "secret1"},
        )
        assert isinstance(result, Ok)
