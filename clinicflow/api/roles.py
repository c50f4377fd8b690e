"""Roles API router."""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clinicflow.db.session import get_db
from clinicflow.schemas.schemas import (
    RoleCreate, RoleUpdate, RoleOut, RoleWithPermissionsOut, MessageResponse,
)
from clinicflow.services.role_service import role_service
from clinicflow.core.security import require_admin, require_master_admin

router = APIRouter(prefix="/admin/roles", tags=["roles"])


@router.get("")
async def list_roles(
    include_permissions: bool = Query(False),
    db: Session = Depends(get_db),
    payload: dict = Depends(require_admin),
):
    """List roles (admin only)."""
    schema = RoleWithPermissionsOut if include_permissions else RoleOut
    return {"roles": [schema.model_validate(r) for r in role_service.list_roles(db)]}


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_role(
    body: RoleCreate,
    db: Session = Depends(get_db),
    payload: dict = Depends(require_master_admin),
):
    """Create an operator-defined role (master admin only)."""
    role = role_service.create_role(db, body.name, body.description, body.permission_ids)
    return {"role": RoleWithPermissionsOut.model_validate(role)}


@router.put("")
async def update_role(
    body: RoleUpdate,
    db: Session = Depends(get_db),
    payload: dict = Depends(require_master_admin),
):
    """Update an operator-defined role (master admin only)."""
    role = role_service.update_role(
        db,
        body.role_id,
        name=body.name,
        description=body.description,
        permission_ids=body.permission_ids,
        is_active=body.is_active,
    )
    return {"role": RoleWithPermissionsOut.model_validate(role)}


@router.delete("", response_model=MessageResponse)
async def delete_role(
    role_id: int = Query(...),
    db: Session = Depends(get_db),
    payload: dict = Depends(require_master_admin),
):
    """Delete an operator-defined role (master admin only)."""
    role_service.delete_role(db, role_id)
    return MessageResponse(message="Role deleted successfully")
