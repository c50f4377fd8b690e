"""Models package: import all models so metadata.create_all can discover them."""

from clinicflow.models.permission import Permission, PermissionCategory, HttpMethod
from clinicflow.models.role import Role, role_permissions
from clinicflow.models.user import User, LegacyRole, user_roles

__all__ = [
    "Permission", "PermissionCategory", "HttpMethod",
    "Role", "role_permissions",
    "User", "LegacyRole", "user_roles",
]
