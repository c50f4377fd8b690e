"""Role registry service: operator-defined roles and the built-in RBAC seed."""

import logging
from typing import Optional, List, Dict, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicflow.models.permission import Permission, PermissionCategory
from clinicflow.models.role import Role
from clinicflow.models.user import LegacyRole
from clinicflow.core.exceptions import (
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)
from clinicflow.services.permission_service import permission_service
from clinicflow.services.route_scanner import scan_routes, group_routes_by_category

logger = logging.getLogger(__name__)

# Pages reserved for master admins
MASTER_ONLY_ROUTES = ("/admin/seed-rbac", "/admin/permissions")

DOCTOR_CATEGORIES = {
    PermissionCategory.patients.value,
    PermissionCategory.appointments.value,
    PermissionCategory.prescriptions.value,
    PermissionCategory.ehr.value,
    PermissionCategory.billing.value,
    PermissionCategory.inventory.value,
    PermissionCategory.email.value,
    PermissionCategory.profile.value,
    PermissionCategory.dashboard.value,
}


def _is_patient_permission(p: Permission) -> bool:
    if p.category in (PermissionCategory.profile.value, PermissionCategory.dashboard.value):
        return True
    return p.category == PermissionCategory.patients.value and "/profile" in p.route


DEFAULT_ROLES: List[Dict[str, Any]] = [
    {
        "name": LegacyRole.master_admin.value,
        "description": "Full system administrator with all permissions",
        "grants": lambda p: True,
    },
    {
        "name": LegacyRole.admin.value,
        "description": "Administrator with most permissions except system management",
        "grants": lambda p: not p.route.startswith(MASTER_ONLY_ROUTES),
    },
    {
        "name": LegacyRole.doctor.value,
        "description": "Medical professional with patient and appointment management",
        "grants": lambda p: p.category in DOCTOR_CATEGORIES,
    },
    {
        "name": LegacyRole.patient.value,
        "description": "Patient with limited access to their own records",
        "grants": _is_patient_permission,
    },
]


class RoleService:
    """CRUD over roles plus seeding of the system roles."""

    @staticmethod
    def list_roles(db: Session) -> List[Role]:
        """All roles ordered by name; empty on database errors."""
        try:
            return db.query(Role).order_by(Role.name.asc()).all()
        except SQLAlchemyError:
            logger.exception("Error fetching roles")
            return []

    @staticmethod
    def get_role(db: Session, role_id: int) -> Role:
        role = db.query(Role).filter(Role.id == role_id).first()
        if not role:
            raise ResourceNotFoundError(f"Role {role_id} not found")
        return role

    @staticmethod
    def _load_permissions(db: Session, permission_ids: List[int]) -> List[Permission]:
        if not permission_ids:
            return []
        permissions = db.query(Permission).filter(Permission.id.in_(permission_ids)).all()
        missing = set(permission_ids) - {p.id for p in permissions}
        if missing:
            raise ResourceNotFoundError(f"Permissions not found: {sorted(missing)}")
        return permissions

    @staticmethod
    def create_role(
        db: Session,
        name: str,
        description: str,
        permission_ids: Optional[List[int]] = None,
    ) -> Role:
        """Create an operator-defined role."""
        if db.query(Role).filter(Role.name == name).first():
            raise ResourceConflictError(f"Role '{name}' already exists")

        role = Role(
            name=name,
            description=description,
            is_active=True,
            is_system=False,
            permissions=RoleService._load_permissions(db, permission_ids or []),
        )
        db.add(role)
        db.commit()
        db.refresh(role)
        logger.info("Created role %s", name)
        return role

    @staticmethod
    def update_role(
        db: Session,
        role_id: int,
        name: Optional[str] = None,
        description: Optional[str] = None,
        permission_ids: Optional[List[int]] = None,
        is_active: Optional[bool] = None,
    ) -> Role:
        """Update an operator-defined role. System roles are read-only."""
        role = RoleService.get_role(db, role_id)
        if role.is_system:
            raise ValidationError("Cannot modify system roles")

        if name is not None and name != role.name:
            if db.query(Role).filter(Role.name == name).first():
                raise ResourceConflictError(f"Role '{name}' already exists")
            role.name = name
        if description is not None:
            role.description = description
        if permission_ids is not None:
            role.permissions = RoleService._load_permissions(db, permission_ids)
        if is_active is not None:
            role.is_active = is_active
        db.commit()
        db.refresh(role)
        return role

    @staticmethod
    def delete_role(db: Session, role_id: int) -> None:
        """Delete an operator-defined role.

        Users holding it lose its permissions and keep their legacy role.
        """
        role = RoleService.get_role(db, role_id)
        if role.is_system:
            raise ValidationError("Cannot delete system roles")
        name, holders = role.name, len(role.users)
        db.delete(role)
        db.commit()
        logger.info("Deleted role %s (removed from %d users)", name, holders)

    @staticmethod
    def seed_rbac(db: Session, base_dir: Optional[str] = None) -> Dict[str, Any]:
        """Reconcile permissions from the route tree and upsert the system roles."""
        routes = scan_routes(base_dir)
        categories = group_routes_by_category(routes)
        sync = permission_service.sync_permissions(db, routes=routes)

        all_permissions = db.query(Permission).filter(Permission.is_active == True).all()  # noqa: E712

        created_roles = 0
        updated_roles = 0
        for role_data in DEFAULT_ROLES:
            granted = [p for p in all_permissions if role_data["grants"](p)]
            existing = db.query(Role).filter(Role.name == role_data["name"]).first()
            if existing:
                existing.description = role_data["description"]
                existing.permissions = granted
                existing.is_system = True
                updated_roles += 1
            else:
                db.add(Role(
                    name=role_data["name"],
                    description=role_data["description"],
                    permissions=granted,
                    is_active=True,
                    is_system=True,
                ))
                created_roles += 1
        db.commit()

        logger.info("Seeded RBAC: %d roles created, %d updated", created_roles, updated_roles)
        return {
            "permissions": {
                "created": sync["created"],
                "updated": sync["updated"],
                "total": len(all_permissions),
            },
            "roles": {
                "created": created_roles,
                "updated": updated_roles,
                "total": len(DEFAULT_ROLES),
            },
            "routes": {
                "scanned": len(routes),
                "categories": len(categories),
            },
        }


role_service = RoleService()
