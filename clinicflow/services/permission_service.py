"""Permission registry service: listing, toggling and route reconciliation."""

import logging
import math
from typing import Optional, List, Dict, Any

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from clinicflow.models.permission import Permission
from clinicflow.core.exceptions import ResourceNotFoundError
from clinicflow.services.route_scanner import (
    RouteInfo,
    scan_routes,
    group_routes_by_category,
    generate_permission_name,
    generate_permission_description,
)

logger = logging.getLogger(__name__)


class PermissionService:
    """Reads and maintains the (route, method) permission registry."""

    @staticmethod
    def list_permissions(
        db: Session,
        category: Optional[str] = None,
        page: int = 1,
        limit: int = 50,
    ) -> Dict[str, Any]:
        """List permissions, optionally filtered by category.

        Database errors are logged and produce an empty page.
        """
        try:
            q = db.query(Permission)
            if category and category != "all":
                q = q.filter(Permission.category == category)
            total = q.count()
            permissions = (
                q.order_by(Permission.category.asc(), Permission.name.asc())
                .offset((page - 1) * limit)
                .limit(limit)
                .all()
            )
        except SQLAlchemyError:
            logger.exception("Error fetching permissions")
            total, permissions = 0, []

        return {
            "permissions": permissions,
            "total": total,
            "page": page,
            "limit": limit,
            "pages": math.ceil(total / limit) if limit else 0,
        }

    @staticmethod
    def get_permission(db: Session, permission_id: int) -> Permission:
        permission = db.query(Permission).filter(Permission.id == permission_id).first()
        if not permission:
            raise ResourceNotFoundError(f"Permission {permission_id} not found")
        return permission

    @staticmethod
    def set_permission_active(db: Session, permission_id: int, is_active: bool) -> Permission:
        """Enable or disable a permission."""
        permission = PermissionService.get_permission(db, permission_id)
        permission.is_active = is_active
        permission.deactivated_by_sync = False
        db.commit()
        db.refresh(permission)
        logger.info("Permission %s %s set active=%s", permission.route, permission.method, is_active)
        return permission

    @staticmethod
    def upsert_permission(db: Session, route: RouteInfo, method: str, category: str) -> bool:
        """Create or refresh one permission. Returns True when it was created.

        Existing records keep their description and active flag; only the
        derived name and the category are refreshed. A record that an earlier
        reconciliation deactivated because its route vanished is reactivated.
        Each upsert commits on its own, and the (route, method) unique
        constraint resolves races between concurrent reconciliations.
        """
        name = generate_permission_name(route)
        existing = (
            db.query(Permission)
            .filter(Permission.route == route.path, Permission.method == method)
            .first()
        )
        if existing:
            existing.name = name
            existing.category = category
            if existing.deactivated_by_sync:
                existing.is_active = True
                existing.deactivated_by_sync = False
                logger.info("Permission %s %s reactivated, route is back", route.path, method)
            db.commit()
            return False

        db.add(Permission(
            route=route.path,
            method=method,
            name=name,
            description=generate_permission_description(route),
            category=category,
            is_active=True,
        ))
        try:
            db.commit()
        except IntegrityError:
            # Another reconciliation inserted the same key first
            db.rollback()
            logger.info("Permission %s %s created concurrently", route.path, method)
            return False
        return True

    @staticmethod
    def sync_permissions(
        db: Session,
        routes: Optional[List[RouteInfo]] = None,
        base_dir: Optional[str] = None,
        deactivate_stale: bool = False,
    ) -> Dict[str, int]:
        """Reconcile the registry with the current route tree.

        Permissions whose route disappeared are left as they are unless
        ``deactivate_stale`` is set, in which case they are marked inactive
        until their route shows up again. Permissions an operator disabled
        stay disabled.
        """
        if routes is None:
            routes = scan_routes(base_dir)
        categories = group_routes_by_category(routes)

        created = 0
        updated = 0
        seen = set()
        for category in categories:
            for route in category.routes:
                for method in route.methods:
                    seen.add((route.path, method))
                    if PermissionService.upsert_permission(db, route, method, category.name):
                        created += 1
                    else:
                        updated += 1

        deactivated = 0
        if deactivate_stale:
            for permission in db.query(Permission).filter(Permission.is_active == True).all():  # noqa: E712
                if (permission.route, permission.method) not in seen:
                    permission.is_active = False
                    permission.deactivated_by_sync = True
                    deactivated += 1
            db.commit()

        logger.info(
            "Permission sync: %d created, %d updated, %d deactivated from %d routes",
            created, updated, deactivated, len(routes),
        )
        return {
            "created": created,
            "updated": updated,
            "deactivated": deactivated,
            "total_routes": len(routes),
            "categories": len(categories),
        }


permission_service = PermissionService()
