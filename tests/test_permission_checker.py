"""Tests for the permission checker."""
import pytest
from sqlalchemy.exc import SQLAlchemyError

from clinicflow.services import permission_checker
from clinicflow.services.permission_checker import (
    REASON_CHECK_ERROR,
    REASON_MISSING_PERMISSION,
    REASON_USER_NOT_FOUND,
    Decision,
    check_user_permission,
    get_user_permissions,
    get_user_roles,
    normalize_route,
)


@pytest.mark.parametrize("raw,expected", [
    ("/patients/[id]?x=1", "/patients/:id"),
    ("/dashboard/patients/[id]", "/dashboard/patients/:id"),
    ("/dashboard/patients/[id]?tab=ehr", "/dashboard/patients/:id"),
    ("/api/patients/{patient_id}", "/api/patients/:patient_id"),
    ("/api/files/{path:path}", "/api/files/:path"),
    ("/dashboard#top", "/dashboard"),
    ("/dashboard/patients/:id", "/dashboard/patients/:id"),
])
def test_normalize_route(raw, expected):
    assert normalize_route(raw) == expected
    assert normalize_route(normalize_route(raw)) == expected


class TestCheckUserPermission:
    def test_master_admin_bypasses_permission_lookup(self, db, make_user, monkeypatch):
        user = make_user(role="master_admin")

        def fail(_user):
            raise AssertionError("permissions should not be resolved for master admins")

        monkeypatch.setattr(permission_checker, "resolve_access", fail)

        result = check_user_permission(db, user.id, "/anything/at/all", "DELETE")
        assert result.decision == Decision.allowed
        assert result.has_permission
        assert result.user_roles == ["master_admin"]

    def test_no_roles_is_denied(self, db, make_user):
        user = make_user(role="doctor")

        result = check_user_permission(db, user.id, "/dashboard/patients", "GET")

        assert result.decision == Decision.denied
        assert result.reason == REASON_MISSING_PERMISSION
        assert result.user_roles == ["doctor"]
        assert result.required_permissions == ["/dashboard/patients:GET"]

    def test_granted_method_only(self, db, make_user, make_role, make_permission):
        role = make_role("FrontDesk", [make_permission("/dashboard/patients", "GET")])
        user = make_user(role="doctor", roles=[role])

        assert check_user_permission(db, user.id, "/dashboard/patients", "GET").has_permission
        assert not check_user_permission(db, user.id, "/dashboard/patients", "POST").has_permission

    def test_custom_role_grants_and_denies(self, db, make_user, make_role, make_permission):
        clinical = make_role(
            "ClinicalStaff",
            [make_permission("/dashboard/ehr", "POST", category="ehr")],
        )
        user = make_user(role="doctor", roles=[clinical])

        allowed = check_user_permission(db, user.id, "/dashboard/ehr", "POST")
        assert allowed.decision == Decision.allowed
        assert allowed.user_roles == ["doctor", "ClinicalStaff"]

        denied = check_user_permission(db, user.id, "/admin/users", "DELETE")
        assert denied.decision == Decision.denied
        assert denied.reason == REASON_MISSING_PERMISSION

    def test_request_path_is_normalized(self, db, make_user, make_role, make_permission):
        role = make_role("Viewer", [make_permission("/dashboard/patients/:id", "GET")])
        user = make_user(role="doctor", roles=[role])

        result = check_user_permission(db, user.id, "/dashboard/patients/[id]?tab=ehr", "get")

        assert result.has_permission
        assert result.required_permissions == ["/dashboard/patients/:id:GET"]

    def test_inactive_role_is_ignored(self, db, make_user, make_role, make_permission):
        role = make_role("Dormant", [make_permission("/dashboard", "GET")], is_active=False)
        user = make_user(role="doctor", roles=[role])

        result = check_user_permission(db, user.id, "/dashboard", "GET")

        assert not result.has_permission
        assert result.user_roles == ["doctor"]

    def test_inactive_permission_is_ignored(self, db, make_user, make_role, make_permission):
        role = make_role("Viewer", [make_permission("/dashboard", "GET", is_active=False)])
        user = make_user(role="doctor", roles=[role])

        assert not check_user_permission(db, user.id, "/dashboard", "GET").has_permission

    def test_unknown_user(self, db):
        result = check_user_permission(db, 999, "/dashboard", "GET")

        assert result.decision == Decision.denied
        assert result.reason == REASON_USER_NOT_FOUND

    def test_lookup_error_fails_closed(self, db, monkeypatch):
        def broken(_db, _user_id):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(permission_checker, "_load_user", broken)

        result = check_user_permission(db, 1, "/dashboard", "GET")
        assert result.decision == Decision.error
        assert not result.has_permission
        assert result.reason == REASON_CHECK_ERROR

    def test_grant_is_seen_on_next_check(self, db, make_user, make_role, make_permission):
        role = make_role("Billing")
        user = make_user(role="doctor", roles=[role])
        assert not check_user_permission(db, user.id, "/dashboard/billing", "GET").has_permission

        role.permissions.append(make_permission("/dashboard/billing", "GET", category="billing"))
        db.commit()

        assert check_user_permission(db, user.id, "/dashboard/billing", "GET").has_permission


class TestUserLookups:
    def test_permissions_are_sorted_union(self, db, make_user, make_role, make_permission):
        a = make_role("A", [make_permission("/dashboard/patients", "GET"), make_permission("/dashboard", "GET")])
        b = make_role("B", [make_permission("/api/patients", "POST", category="api")])
        c = make_role("C", [make_permission("/dashboard/billing", "GET")], is_active=False)
        user = make_user(role="doctor", roles=[a, b, c])

        assert get_user_permissions(db, user.id) == [
            "/api/patients:POST",
            "/dashboard/patients:GET",
            "/dashboard:GET",
        ]

    def test_roles_list_legacy_role_first(self, db, make_user, make_role):
        user = make_user(
            role="patient",
            roles=[make_role("Portal"), make_role("Retired", is_active=False)],
        )

        assert get_user_roles(db, user.id) == ["patient", "Portal"]

    def test_unknown_user_has_nothing(self, db):
        assert get_user_permissions(db, 42) == []
        assert get_user_roles(db, 42) == []

    def test_lookup_errors_give_empty_lists(self, db, monkeypatch):
        def broken(_db, _user_id):
            raise SQLAlchemyError("connection lost")

        monkeypatch.setattr(permission_checker, "_load_user", broken)

        assert get_user_permissions(db, 1) == []
        assert get_user_roles(db, 1) == []
