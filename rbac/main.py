"""FastAPI main application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from rbac.core.config import settings
from rbac.core.middleware import setup_middleware
from rbac.core.exceptions import (
    RBACError,
    AuthenticationError,
    AuthorizationError,
    ResourceNotFoundError,
    ResourceConflictError,
    ValidationError,
    DataIntegrityError,
    PropagationError,
)

from rbac.api.auth import router as auth_router
from rbac.api.users import router as users_router
from rbac.api.roles import router as roles_router
from rbac.api.permissions import router as permissions_router
from rbac.api.sessions import router as sessions_router
from rbac.api.activities import router as activities_router
from rbac.api.admin import router as admin_router

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("rbac")

# Most specific first; the first matching class wins.
STATUS_CODES = (
    (AuthenticationError, 401),
    (AuthorizationError, 403),
    (ResourceNotFoundError, 404),
    (ResourceConflictError, 409),
    (ValidationError, 400),
    (DataIntegrityError, 500),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown events."""
    logger.info("Starting %s", settings.APP_NAME)
    if settings.SEED_ON_STARTUP:
        from rbac.db.session import SessionLocal, init_db
        from rbac.db.seeds.seed_all import seed_all

        init_db()
        db = SessionLocal()
        try:
            seed_all(db)
        finally:
            db.close()

    yield

    logger.info("Shutting down %s", settings.APP_NAME)


app = FastAPI(
    title=f"{settings.APP_NAME} API",
    description="Role-based access control administration",
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Middleware
setup_middleware(app)


@app.exception_handler(RBACError)
async def rbac_exception_handler(request: Request, exc: RBACError):
    status_code = next(
        (code for cls, code in STATUS_CODES if isinstance(exc, cls)), 400
    )
    headers = {"WWW-Authenticate": "Bearer"} if status_code == 401 else None
    if isinstance(exc, PropagationError):
        logger.error(
            "Level propagation failed at role %s after updating %s: %s",
            exc.failed_role_id, exc.updated_role_ids, exc.message,
        )
    elif status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message},
        headers=headers,
    )


# Register routers
app.include_router(auth_router, prefix="/api")
app.include_router(users_router, prefix="/api")
app.include_router(roles_router, prefix="/api")
app.include_router(permissions_router, prefix="/api")
app.include_router(sessions_router, prefix="/api")
app.include_router(activities_router, prefix="/api")
app.include_router(admin_router, prefix="/api")


@app.get("/")
async def root():
    return {
        "name": settings.APP_NAME,
        "version": "0.1.0",
        "docs": "/docs",
    }


@app.get("/api/health")
async def health():
    """Quick health check endpoint."""
    return {"status": "ok"}
