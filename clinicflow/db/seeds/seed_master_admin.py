"""Seed the first master admin user from env vars."""

from sqlalchemy.orm import Session

from clinicflow.models.role import Role
from clinicflow.models.user import User, LegacyRole
from clinicflow.core.security import hash_password
from clinicflow.core.config import settings


def seed_master_admin(db: Session) -> None:
    """Create the master admin user if not already present."""
    existing = db.query(User).filter(User.email == settings.MASTER_ADMIN_EMAIL.lower()).first()
    if existing:
        print(f"ℹ️  Master admin '{settings.MASTER_ADMIN_EMAIL}' already exists, skipping.")
        return

    master_role = db.query(Role).filter(Role.name == LegacyRole.master_admin.value).first()
    if not master_role:
        print("⚠️  master_admin role not found; the user gets the legacy role only.")

    admin = User(
        email=settings.MASTER_ADMIN_EMAIL.lower(),
        hashed_password=hash_password(settings.MASTER_ADMIN_PASSWORD),
        first_name=settings.MASTER_ADMIN_FIRST_NAME,
        last_name=settings.MASTER_ADMIN_LAST_NAME,
        role=LegacyRole.master_admin.value,
        roles=[master_role] if master_role else [],
        is_active=True,
        require_password_change=False,
    )
    db.add(admin)
    db.commit()
    print(f"✅ Created master admin: {admin.full_name} <{admin.email}>")
