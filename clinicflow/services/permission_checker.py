"""Permission checker: decides (user, route, method) access.

A user's access is resolved once per call into an ``AccessProfile``: the
legacy ``master_admin`` role is an explicit bypass flag, any other legacy
role is only a label, and permission tokens come from the active
permissions of the user's active roles. Every public function re-reads the
user and role graph; nothing is cached between calls.

The checker is fail-closed: lookup errors are logged and turned into a
denied result, never raised.
"""

import enum
import logging
import re
from dataclasses import dataclass, field
from typing import List, Optional, Set

from sqlalchemy.orm import Session

from clinicflow.models.user import User, LegacyRole

logger = logging.getLogger(__name__)

REASON_USER_NOT_FOUND = "User not found"
REASON_MISSING_PERMISSION = "User does not have required permission"
REASON_CHECK_ERROR = "Error checking permissions"

_BRACKET_PARAM_RE = re.compile(r"\[([^\]]+)\]")
_BRACE_PARAM_RE = re.compile(r"\{([^}:]+)(?::[^}]*)?\}")


class Decision(str, enum.Enum):
    allowed = "allowed"
    denied = "denied"
    error = "error"


@dataclass
class PermissionCheckResult:
    decision: Decision
    reason: Optional[str] = None
    user_roles: List[str] = field(default_factory=list)
    required_permissions: List[str] = field(default_factory=list)

    @property
    def has_permission(self) -> bool:
        return self.decision == Decision.allowed


@dataclass
class AccessProfile:
    bypass: bool
    roles: List[str]
    permissions: Set[str]


def normalize_route(route: str) -> str:
    """Canonical registry form of a request path or route template.

    Drops the query string and fragment and rewrites ``[id]`` / ``{id}``
    segments to ``:id``. Normalizing twice gives the same result.
    """
    clean = route.split("?", 1)[0].split("#", 1)[0]
    clean = _BRACKET_PARAM_RE.sub(r":\1", clean)
    return _BRACE_PARAM_RE.sub(r":\1", clean)


def permission_token(route: str, method: str) -> str:
    return f"{route}:{method.upper()}"


def resolve_access(user: User) -> AccessProfile:
    """Compute the single capability set for a loaded user."""
    roles: List[str] = []
    permissions: Set[str] = set()

    if user.role:
        roles.append(user.role)

    for role in user.roles or []:
        if not role.is_active:
            continue
        roles.append(role.name)
        for permission in role.permissions or []:
            if permission.is_active:
                permissions.add(permission_token(permission.route, permission.method))

    return AccessProfile(
        bypass=user.role == LegacyRole.master_admin.value,
        roles=roles,
        permissions=permissions,
    )


def _load_user(db: Session, user_id: int) -> Optional[User]:
    return (
        db.query(User)
        .populate_existing()
        .filter(User.id == user_id)
        .first()
    )


def check_user_permission(
    db: Session,
    user_id: int,
    route: str,
    method: str = "GET",
) -> PermissionCheckResult:
    """Decide whether a user may call ``method`` on ``route``."""
    try:
        user = _load_user(db, user_id)
        if user is None:
            return PermissionCheckResult(Decision.denied, reason=REASON_USER_NOT_FOUND)

        if user.role == LegacyRole.master_admin.value:
            return PermissionCheckResult(Decision.allowed, user_roles=[user.role])

        profile = resolve_access(user)
        required = permission_token(normalize_route(route), method)
        if required in profile.permissions:
            return PermissionCheckResult(
                Decision.allowed,
                user_roles=profile.roles,
                required_permissions=[required],
            )
        return PermissionCheckResult(
            Decision.denied,
            reason=REASON_MISSING_PERMISSION,
            user_roles=profile.roles,
            required_permissions=[required],
        )
    except Exception:
        logger.exception("Error checking permission for user %s on %s %s", user_id, method, route)
        return PermissionCheckResult(Decision.error, reason=REASON_CHECK_ERROR)


def get_user_permissions(db: Session, user_id: int) -> List[str]:
    """All permission tokens the user holds through active roles."""
    try:
        user = _load_user(db, user_id)
        if user is None:
            return []
        return sorted(resolve_access(user).permissions)
    except Exception:
        logger.exception("Error getting permissions for user %s", user_id)
        return []


def get_user_roles(db: Session, user_id: int) -> List[str]:
    """Legacy role name followed by the names of active assigned roles."""
    try:
        user = _load_user(db, user_id)
        if user is None:
            return []
        return resolve_access(user).roles
    except Exception:
        logger.exception("Error getting roles for user %s", user_id)
        return []
