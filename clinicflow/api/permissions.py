"""Permission registry API router."""

from typing import Optional, List
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from clinicflow.db.session import get_db
from clinicflow.schemas.schemas import (
    PermissionOut, PermissionListResponse, PermissionToggleRequest,
    PermissionSyncResponse, RouteCategoryOut,
)
from clinicflow.services.permission_service import permission_service
from clinicflow.services.route_scanner import scan_routes, group_routes_by_category
from clinicflow.core.security import require_admin, require_master_admin

router = APIRouter(prefix="/admin/permissions", tags=["permissions"])


@router.get("", response_model=PermissionListResponse)
async def list_permissions(
    category: Optional[str] = Query(None, description="Filter by category, 'all' for none"),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    payload: dict = Depends(require_admin),
):
    """List permissions (admin only)."""
    result = permission_service.list_permissions(db, category, page, limit)
    return PermissionListResponse(
        permissions=[PermissionOut.model_validate(p) for p in result["permissions"]],
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        pages=result["pages"],
    )


@router.post("", response_model=PermissionSyncResponse)
async def sync_permissions(
    deactivate_stale: bool = Query(False, description="Deactivate permissions whose route is gone"),
    db: Session = Depends(get_db),
    payload: dict = Depends(require_master_admin),
):
    """Scan the route tree and upsert the permission registry (master admin only)."""
    result = permission_service.sync_permissions(db, deactivate_stale=deactivate_stale)
    return PermissionSyncResponse(**result)


@router.put("", response_model=PermissionOut)
async def toggle_permission(
    body: PermissionToggleRequest,
    db: Session = Depends(get_db),
    payload: dict = Depends(require_master_admin),
):
    """Enable or disable a permission (master admin only)."""
    permission = permission_service.set_permission_active(db, body.permission_id, body.is_active)
    return PermissionOut.model_validate(permission)


@router.get("/routes", response_model=List[RouteCategoryOut])
async def list_routes(payload: dict = Depends(require_master_admin)):
    """Routes discovered in the route tree, grouped by category."""
    return [
        RouteCategoryOut.model_validate(category)
        for category in group_routes_by_category(scan_routes())
    ]
