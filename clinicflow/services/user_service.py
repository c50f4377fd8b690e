"""User service: account listing, creation and role assignment."""

import logging
import math
import secrets
from typing import Optional, List, Dict, Any, Tuple

from sqlalchemy.orm import Session

from clinicflow.models.role import Role
from clinicflow.models.user import User, LegacyRole
from clinicflow.core.security import hash_password
from clinicflow.core.exceptions import (
    AuthorizationError,
    ResourceConflictError,
    ResourceNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

LEGACY_ROLES = {r.value for r in LegacyRole}


def generate_temporary_password() -> str:
    return secrets.token_urlsafe(9)


class UserService:
    """Administrative user management."""

    @staticmethod
    def get_user(db: Session, user_id: int) -> User:
        user = db.query(User).filter(User.id == user_id).first()
        if not user:
            raise ResourceNotFoundError(f"User {user_id} not found")
        return user

    @staticmethod
    def list_users(
        db: Session,
        viewer_role: str,
        role: Optional[str] = None,
        page: int = 1,
        limit: int = 10,
    ) -> Dict[str, Any]:
        """List users newest first. Only master admins see master admins."""
        q = db.query(User)
        if role:
            q = q.filter(User.role == role)
        if viewer_role != LegacyRole.master_admin.value:
            q = q.filter(User.role != LegacyRole.master_admin.value)
        total = q.count()
        users = (
            q.order_by(User.created_at.desc(), User.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return {
            "users": users,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    @staticmethod
    def create_user(
        db: Session,
        first_name: str,
        last_name: str,
        email: str,
        creator_id: Optional[int],
        creator_role: str,
        role: str = LegacyRole.patient.value,
    ) -> Tuple[User, str]:
        """Create an account with a temporary password.

        The system role named like the legacy role is attached when it
        exists. Returns the user and the temporary password, which is not
        stored in clear anywhere.
        """
        if role not in LEGACY_ROLES:
            raise ValidationError(f"Unknown role '{role}'")
        if role == LegacyRole.master_admin.value and creator_role != LegacyRole.master_admin.value:
            raise AuthorizationError("Only master admins can create master admin accounts")

        email = email.strip().lower()
        if db.query(User).filter(User.email == email).first():
            raise ResourceConflictError(f"User with email {email} already exists")

        password = generate_temporary_password()
        default_role = db.query(Role).filter(Role.name == role, Role.is_system == True).first()  # noqa: E712

        user = User(
            first_name=first_name,
            last_name=last_name,
            email=email,
            hashed_password=hash_password(password),
            role=role,
            roles=[default_role] if default_role else [],
            require_password_change=True,
            created_by=creator_id,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info("Created user %s with role %s", email, role)
        return user, password

    @staticmethod
    def _guard_master_admin(user: User, actor_role: str, roles=()) -> None:
        """Only master admins may touch master admin accounts or hand out that role."""
        if actor_role == LegacyRole.master_admin.value:
            return
        if user.role == LegacyRole.master_admin.value:
            raise AuthorizationError("Only master admins can change master admin accounts")
        if any(r.name == LegacyRole.master_admin.value for r in roles):
            raise AuthorizationError("Only master admins can assign the master admin role")

    @staticmethod
    def assign_roles(db: Session, user_id: int, role_ids: List[int], actor_role: str) -> User:
        """Replace the set of roles assigned to a user."""
        user = UserService.get_user(db, user_id)
        roles = db.query(Role).filter(Role.id.in_(role_ids)).all() if role_ids else []
        missing = set(role_ids) - {r.id for r in roles}
        if missing:
            raise ResourceNotFoundError(f"Roles not found: {sorted(missing)}")
        UserService._guard_master_admin(user, actor_role, roles)
        user.roles = roles
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def set_legacy_role(db: Session, user_id: int, role: str, actor_role: str) -> User:
        """Change a user's legacy role."""
        if role not in LEGACY_ROLES:
            raise ValidationError(f"Unknown role '{role}'")
        if role == LegacyRole.master_admin.value and actor_role != LegacyRole.master_admin.value:
            raise AuthorizationError("Only master admins can grant the master admin role")
        user = UserService.get_user(db, user_id)
        UserService._guard_master_admin(user, actor_role)
        user.role = role
        db.commit()
        db.refresh(user)
        return user


user_service = UserService()
