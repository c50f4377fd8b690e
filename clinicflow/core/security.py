"""Token verification and RBAC authorization helpers.

Access tokens are minted by the external identity provider; this module only
verifies them. The ``sub`` claim carries the user id and ``role`` the legacy
role.
"""

import bcrypt
from typing import Optional

from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from clinicflow.core.config import settings
from clinicflow.core.exceptions import forbidden, unauthorized
from clinicflow.db.session import get_db
from clinicflow.models.user import LegacyRole
from clinicflow.services.permission_checker import check_user_permission

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    pwd_bytes = password.encode("utf-8")
    salt = bcrypt.gensalt()
    hashed = bcrypt.hashpw(pwd_bytes, salt)
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    pwd_bytes = plain_password.encode("utf-8")
    hashed_bytes = hashed_password.encode("utf-8")
    return bcrypt.checkpw(pwd_bytes, hashed_bytes)


def try_decode_token(token: str) -> Optional[dict]:
    """Decode a JWT, returning None when it is invalid or expired."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    payload = try_decode_token(token)
    if payload is None:
        raise unauthorized("Invalid or expired token")
    return payload


def _require_payload(credentials: Optional[HTTPAuthorizationCredentials]) -> dict:
    if credentials is None:
        raise unauthorized()
    return decode_token(credentials.credentials)


def _user_id_from(payload: dict) -> int:
    try:
        return int(payload["sub"])
    except (KeyError, TypeError, ValueError):
        raise unauthorized("Invalid token payload")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> int:
    """Extract user_id from the JWT Bearer token."""
    return _user_id_from(_require_payload(credentials))


class RequireRole:
    """Dependency that checks the legacy role carried in the token."""

    ROLE_LEVELS = {
        LegacyRole.patient.value: 20,
        LegacyRole.doctor.value: 40,
        LegacyRole.admin.value: 80,
        LegacyRole.master_admin.value: 100,
    }

    def __init__(self, min_role: str):
        self.min_level = self.ROLE_LEVELS.get(min_role, 0)

    async def __call__(
        self,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
    ) -> dict:
        payload = _require_payload(credentials)
        user_role = payload.get("role", LegacyRole.patient.value)
        user_level = self.ROLE_LEVELS.get(user_role, 0)
        if user_level < self.min_level:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Role '{user_role}' insufficient. Requires level {self.min_level}+.",
            )
        return payload


class RequirePermission:
    """Dependency that gates an endpoint through the permission checker.

    The required permission is the matched route template (``{id}`` rewritten
    to ``:id``) with the request method, unless an explicit route/method is
    given.
    """

    def __init__(self, route: Optional[str] = None, method: Optional[str] = None):
        self.route = route
        self.method = method

    async def __call__(
        self,
        request: Request,
        credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
        db: Session = Depends(get_db),
    ):
        user_id = _user_id_from(_require_payload(credentials))
        route = self.route
        if route is None:
            matched = request.scope.get("route")
            route = getattr(matched, "path", request.url.path)
        result = check_user_permission(db, user_id, route, self.method or request.method)
        if not result.has_permission:
            raise forbidden(result.reason or "Insufficient permissions")
        return result


# Convenience dependency factories
require_admin = RequireRole(LegacyRole.admin.value)
require_master_admin = RequireRole(LegacyRole.master_admin.value)
