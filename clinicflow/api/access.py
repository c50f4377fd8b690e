"""Access API router: what the signed-in user may do."""

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from clinicflow.db.session import get_db
from clinicflow.schemas.schemas import PermissionCheckRequest, PermissionCheckResponse
from clinicflow.services.permission_checker import (
    check_user_permission, get_user_permissions, get_user_roles,
)
from clinicflow.core.security import get_current_user_id

router = APIRouter(prefix="/access", tags=["access"])


@router.post("/check", response_model=PermissionCheckResponse)
async def check_permission(
    body: PermissionCheckRequest,
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Check one route/method for the current user."""
    result = check_user_permission(db, user_id, body.route, body.method.value)
    return PermissionCheckResponse(
        decision=result.decision.value,
        has_permission=result.has_permission,
        reason=result.reason,
        user_roles=result.user_roles,
        required_permissions=result.required_permissions,
    )


@router.get("/me/permissions")
async def my_permissions(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Permission tokens granted to the current user."""
    return {"permissions": get_user_permissions(db, user_id)}


@router.get("/me/roles")
async def my_roles(
    db: Session = Depends(get_db),
    user_id: int = Depends(get_current_user_id),
):
    """Role names held by the current user."""
    return {"roles": get_user_roles(db, user_id)}
