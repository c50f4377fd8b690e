"""Seed the permission registry and the system roles."""

from typing import Optional, Dict, Any

from sqlalchemy.orm import Session

from clinicflow.services.role_service import role_service


def seed_rbac(db: Session, base_dir: Optional[str] = None) -> Dict[str, Any]:
    """Scan routes into permissions and upsert the built-in roles."""
    result = role_service.seed_rbac(db, base_dir)
    print(
        f"✅ Seeded {result['roles']['total']} roles over "
        f"{result['permissions']['total']} permissions"
    )
    return result
