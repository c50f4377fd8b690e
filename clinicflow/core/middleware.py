"""CORS, request-id, logging, and section access middleware."""

import uuid
import time
import logging
from typing import Optional

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import RedirectResponse
from starlette.middleware.base import BaseHTTPMiddleware

from clinicflow.core.config import settings
from clinicflow.core.security import try_decode_token
from clinicflow.models.user import LegacyRole

logger = logging.getLogger("clinicflow")

CHANGE_PASSWORD_PATH = "/auth/change-password"
PATIENT_ALLOWED_PATHS = ("/dashboard/profile", CHANGE_PASSWORD_PATH)


def _is_under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix.rstrip("/") + "/")


def evaluate_access(
    role: Optional[str],
    path: str,
    require_password_change: bool = False,
) -> Optional[str]:
    """Decide where a signed-in user is sent for ``path``.

    Returns the redirect target, or None when the request may continue.
    """
    if require_password_change:
        if path == CHANGE_PASSWORD_PATH or _is_under(path, "/api"):
            return None
        return CHANGE_PASSWORD_PATH

    if role == LegacyRole.master_admin.value:
        return None

    if _is_under(path, "/admin"):
        if role != LegacyRole.admin.value:
            return "/dashboard"
        if _is_under(path, "/admin/permissions") or _is_under(path, "/admin/seed-rbac"):
            return "/admin"

    if role == LegacyRole.patient.value:
        if path == "/dashboard" or any(_is_under(path, p) for p in PATIENT_ALLOWED_PATHS):
            return None
        return "/dashboard"

    return None


class AccessMiddleware(BaseHTTPMiddleware):
    """Redirect signed-in users away from sections their legacy role may not enter.

    Requests without a valid token pass through; authentication is the
    identity provider's concern.
    """

    def __init__(self, app, protected_prefixes=None):
        super().__init__(app)
        self.protected_prefixes = list(protected_prefixes or settings.PROTECTED_PREFIXES)

    @staticmethod
    def _token_from(request: Request) -> Optional[str]:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            return auth_header[7:]
        return request.cookies.get("access_token")

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if not any(_is_under(path, p) for p in self.protected_prefixes):
            return await call_next(request)

        token = self._token_from(request)
        payload = try_decode_token(token) if token else None
        if payload is None:
            return await call_next(request)

        target = evaluate_access(
            payload.get("role"),
            path,
            payload.get("require_password_change") is True,
        )
        if target is not None and target != path:
            logger.info("Access redirect %s -> %s (role=%s)", path, target, payload.get("role"))
            return RedirectResponse(url=target, status_code=307)
        return await call_next(request)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Add a unique request ID to every request/response."""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id
        start_time = time.time()

        response: Response = await call_next(request)

        duration = round((time.time() - start_time) * 1000, 2)
        response.headers["X-Request-Id"] = request_id
        response.headers["X-Response-Time-Ms"] = str(duration)

        logger.info(
            "%s %s %s %sms",
            request.method,
            request.url.path,
            response.status_code,
            duration,
        )
        return response


def setup_middleware(app: FastAPI) -> None:
    """Configure all middleware for the application."""
    # Section gate
    app.add_middleware(AccessMiddleware)

    # CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Request ID + timing
    app.add_middleware(RequestIdMiddleware)
