"""Admin API router: user accounts and RBAC seeding."""

from typing import Optional
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from clinicflow.db.session import get_db
from clinicflow.models.user import User
from clinicflow.schemas.schemas import (
    UserOut, UserCreateRequest, UserCreateResponse,
    UserRolesUpdate, UserLegacyRoleUpdate, SeedRbacResponse,
)
from clinicflow.services.role_service import role_service
from clinicflow.services.user_service import user_service
from clinicflow.core.security import require_admin, require_master_admin

router = APIRouter(prefix="/admin", tags=["admin"])


def _user_out(user: User) -> UserOut:
    return UserOut(
        id=user.id,
        email=user.email,
        first_name=user.first_name,
        last_name=user.last_name,
        role=user.role,
        roles=[r.name for r in user.roles],
        is_active=user.is_active,
        require_password_change=user.require_password_change,
        created_at=user.created_at,
    )


@router.post("/seed-rbac", response_model=SeedRbacResponse)
async def seed_rbac(
    db: Session = Depends(get_db),
    payload: dict = Depends(require_master_admin),
):
    """Seed permissions from the route tree and the default roles (master admin only)."""
    return SeedRbacResponse(**role_service.seed_rbac(db))


@router.get("/users")
async def admin_list_users(
    role: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    payload: dict = Depends(require_admin),
):
    """List users (admin only). Admins do not see master admins."""
    result = user_service.list_users(db, payload.get("role"), role, page, limit)
    return {
        "users": [_user_out(u) for u in result["users"]],
        "pagination": {
            "total": result["total"],
            "page": result["page"],
            "limit": result["limit"],
            "pages": result["pages"],
        },
    }


@router.post("/users", response_model=UserCreateResponse, status_code=status.HTTP_201_CREATED)
async def admin_create_user(
    body: UserCreateRequest,
    db: Session = Depends(get_db),
    payload: dict = Depends(require_admin),
):
    """Create a user with a temporary password (admin only)."""
    creator_id = payload.get("sub")
    user, password = user_service.create_user(
        db,
        first_name=body.first_name,
        last_name=body.last_name,
        email=body.email,
        creator_id=int(creator_id) if creator_id is not None else None,
        creator_role=payload.get("role"),
        role=body.role.value,
    )
    return UserCreateResponse(user=_user_out(user), temporary_password=password)


@router.put("/users/{user_id}/roles", response_model=UserOut)
async def admin_assign_roles(
    user_id: int,
    body: UserRolesUpdate,
    db: Session = Depends(get_db),
    payload: dict = Depends(require_admin),
):
    """Replace a user's assigned roles (admin only)."""
    user = user_service.assign_roles(db, user_id, body.role_ids, payload.get("role"))
    return _user_out(user)


@router.put("/users/{user_id}/role", response_model=UserOut)
async def admin_set_legacy_role(
    user_id: int,
    body: UserLegacyRoleUpdate,
    db: Session = Depends(get_db),
    payload: dict = Depends(require_admin),
):
    """Change a user's legacy role (admin only)."""
    user = user_service.set_legacy_role(db, user_id, body.role.value, payload.get("role"))
    return _user_out(user)
