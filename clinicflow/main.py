"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Depends
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clinicflow import __version__
from clinicflow.core.config import settings
from clinicflow.core.middleware import setup_middleware
from clinicflow.core.exceptions import ClinicFlowError, status_code_for
from clinicflow.db.session import get_db

from clinicflow.api.access import router as access_router
from clinicflow.api.admin import router as admin_router
from clinicflow.api.permissions import router as permissions_router
from clinicflow.api.roles import router as roles_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("clinicflow")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("🚀 Starting %s (route root: %s)", settings.APP_NAME, settings.ROUTE_ROOT)
    yield
    logger.info("🔻 Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title="ClinicFlow Access Control API",
    description="Permission registry, roles and route-level RBAC for ClinicFlow",
    version=__version__,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(ClinicFlowError)
async def clinicflow_exception_handler(request: Request, exc: ClinicFlowError):
    return JSONResponse(
        status_code=status_code_for(exc),
        content={"detail": exc.message},
    )

# Register routers
app.include_router(permissions_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(admin_router, prefix="/api")
app.include_router(access_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": __version__,
        "docs": "/docs",
    }


@app.get("/api/health")
async def health(db: Session = Depends(get_db)):
    """Health check, including the database."""
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)

    return {
        "database": "ok" if db_ok else "error",
        "status": "healthy" if db_ok else "degraded",
    }
