"""Tests for administrative user management."""
import pytest

from clinicflow.core.exceptions import AuthorizationError, ValidationError
from clinicflow.services.user_service import user_service


class TestMasterAdminGuard:
    def test_admin_cannot_demote_master_admin(self, db, make_user):
        master = make_user(role="master_admin")

        with pytest.raises(AuthorizationError):
            user_service.set_legacy_role(db, master.id, "patient", "admin")

        db.refresh(master)
        assert master.role == "master_admin"

    def test_admin_cannot_assign_master_admin_role(self, db, make_user, make_role):
        master_role = make_role("master_admin", is_system=True)
        doctor = make_user(role="doctor")

        with pytest.raises(AuthorizationError):
            user_service.assign_roles(db, doctor.id, [master_role.id], "admin")

        db.refresh(doctor)
        assert doctor.roles == []

    def test_admin_cannot_change_master_admin_roles(self, db, make_user, make_role):
        master = make_user(role="master_admin")
        clinical = make_role("ClinicalStaff")

        with pytest.raises(AuthorizationError):
            user_service.assign_roles(db, master.id, [clinical.id], "admin")

    def test_master_admin_may_do_both(self, db, make_user, make_role):
        master_role = make_role("master_admin", is_system=True)
        other = make_user(role="master_admin")
        doctor = make_user(role="doctor")

        assert user_service.assign_roles(db, doctor.id, [master_role.id], "master_admin").roles == [master_role]
        assert user_service.set_legacy_role(db, other.id, "admin", "master_admin").role == "admin"

    def test_admin_manages_other_accounts(self, db, make_user, make_role):
        clinical = make_role("ClinicalStaff")
        doctor = make_user(role="doctor")

        assert user_service.assign_roles(db, doctor.id, [clinical.id], "admin").roles == [clinical]
        assert user_service.set_legacy_role(db, doctor.id, "admin", "admin").role == "admin"


def test_unknown_legacy_role(db, make_user):
    user = make_user()

    with pytest.raises(ValidationError):
        user_service.set_legacy_role(db, user.id, "superuser", "master_admin")


def test_create_user_requires_password_change(db):
    user, password = user_service.create_user(
        db, "Ana", "Lopez", " Ana@Clinic.test ", creator_id=None, creator_role="admin",
    )

    assert user.email == "ana@clinic.test"
    assert user.role == "patient"
    assert user.require_password_change is True
    assert password and user.hashed_password != password
