"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Any
from datetime import datetime

from clinicflow.models.permission import HttpMethod
from clinicflow.models.user import LegacyRole


# ---- Permission ----
class PermissionOut(BaseModel):
    id: int
    route: str
    method: str
    name: str
    description: str
    category: str
    is_active: bool
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PermissionListResponse(BaseModel):
    permissions: List[PermissionOut]
    total: int
    page: int
    limit: int
    pages: int

class PermissionToggleRequest(BaseModel):
    permission_id: int
    is_active: bool

class PermissionSyncResponse(BaseModel):
    message: str = "Permissions updated successfully"
    created: int
    updated: int
    deactivated: int = 0
    total_routes: int
    categories: int


# ---- Route scan ----
class RouteInfoOut(BaseModel):
    path: str
    methods: List[str]
    file_path: str
    category: str

    class Config:
        from_attributes = True

class RouteCategoryOut(BaseModel):
    name: str
    description: str
    routes: List[RouteInfoOut]

    class Config:
        from_attributes = True


# ---- Role ----
class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = Field(..., min_length=1)
    permission_ids: List[int] = []

class RoleUpdate(BaseModel):
    role_id: int
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    permission_ids: Optional[List[int]] = None
    is_active: Optional[bool] = None

class RoleOut(BaseModel):
    id: int
    name: str
    description: str
    is_active: bool
    is_system: bool
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class RoleWithPermissionsOut(RoleOut):
    permissions: List[PermissionOut] = []


# ---- Seeding ----
class SeedCounts(BaseModel):
    created: int
    updated: int
    total: int

class SeedRouteCounts(BaseModel):
    scanned: int
    categories: int

class SeedRbacResponse(BaseModel):
    message: str = "RBAC system seeded successfully"
    permissions: SeedCounts
    roles: SeedCounts
    routes: SeedRouteCounts


# ---- User ----
class UserOut(BaseModel):
    id: int
    email: str
    first_name: str
    last_name: str
    role: str
    roles: List[str] = []
    is_active: bool = True
    require_password_change: bool = False
    created_at: Optional[datetime] = None

class UserCreateRequest(BaseModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    email: str = Field(..., min_length=4)
    role: LegacyRole = LegacyRole.patient

class UserCreateResponse(BaseModel):
    message: str = "User created successfully"
    user: UserOut
    temporary_password: str

class UserRolesUpdate(BaseModel):
    role_ids: List[int]

class UserLegacyRoleUpdate(BaseModel):
    role: LegacyRole


# ---- Access ----
class PermissionCheckRequest(BaseModel):
    route: str = Field(..., min_length=1)
    method: HttpMethod = HttpMethod.GET

class PermissionCheckResponse(BaseModel):
    decision: str
    has_permission: bool
    reason: Optional[str] = None
    user_roles: List[str] = []
    required_permissions: List[str] = []


# ---- Common ----
class MessageResponse(BaseModel):
    message: str
    detail: Optional[Any] = None
