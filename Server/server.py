"""
RouteWarden Server - Main FastAPI Application

This module contains the main FastAPI application for the RouteWarden server.
It serves the RBAC administration API and the protected users API.
"""

import logging
from logging.handlers import RotatingFileHandler
from datetime import datetime
from contextlib import asynccontextmanager
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from managers.database_manager import DatabaseManager
from permission_catalog import PermissionCatalog
from exceptions import RouteWardenError, ValidationError, FieldAccessDeniedError

# Configure logging to write to both console and file
# Create logs directory if it doesn't exist
logs_dir = Path("logs")
logs_dir.mkdir(exist_ok=True)

# Create log filename with timestamp
log_filename = logs_dir / f"routewarden-server-{datetime.now().strftime('%Y-%m-%d')}.log"

# Configure logging with both console and file handlers
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        # Console handler
        logging.StreamHandler(),
        # File handler with rotation (max 10MB per file, keep 10 backup files)
        RotatingFileHandler(
            log_filename,
            maxBytes=10 * 1024 * 1024,  # 10MB
            backupCount=10,
            encoding='utf-8'
        )
    ]
)
logger = logging.getLogger(__name__)

# Import database module for shared db_manager instance
import database


# ==================== Lifespan Events ====================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    FastAPI lifespan event handler for startup and shutdown
    Manages database initialization and the permission catalog
    """
    # Startup
    logger.info("RouteWarden Server starting up...")

    # Initialize database manager in database module
    database.db_manager = DatabaseManager()

    # Initialize database (creates tables if needed, but won't recreate admin if exists)
    admin_password = database.db_manager.InitializeDatabase()
    if admin_password:
        logger.warning("=" * 60)
        logger.warning("NEW ADMIN USER CREATED")
        logger.warning("Email: admin@localhost")
        logger.warning(f"Password: {admin_password}")
        logger.warning("SAVE THIS PASSWORD - IT WILL NOT BE SHOWN AGAIN!")
        logger.warning("=" * 60)

    logger.info("Database initialized successfully")

    session = database.db_manager.GetSession()
    try:
        cache_ttl = database.db_manager.GetIntSetting(session, "permission_cache_ttl_seconds")
    finally:
        session.close()
    database.permission_catalog = PermissionCatalog(database.db_manager, ttl_seconds=cache_ttl)
    logger.info(f"Permission catalog initialized (cache TTL {cache_ttl}s)")

    logger.info("Server startup complete")

    yield

    # Shutdown
    logger.info("RouteWarden Server shutting down...")
    logger.info("Shutdown complete")


# ==================== FastAPI Application ====================

app = FastAPI(
    title="RouteWarden Server",
    description="Role-based access control for API routes, with field-level permissions",
    version="1.0.0",
    lifespan=lifespan
)

# ==================== CORS Middleware ====================

# Admin UIs are served from other origins; restrict allow_origins per deployment
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ==================== Exception Handlers ====================

@app.exception_handler(RouteWardenError)
async def routewarden_error_handler(request: Request, exc: RouteWardenError):
    """
    Render RouteWarden errors as {success: false, message[, errors][, denied_fields]}
    """
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}", exc_info=exc)
    else:
        logger.warning(f"{request.method} {request.url.path} rejected ({exc.status_code}): {exc.message}")

    content = {"success": False, "message": exc.message}
    if isinstance(exc, ValidationError) and exc.errors:
        content["errors"] = exc.errors
    if isinstance(exc, FieldAccessDeniedError):
        content["denied_fields"] = exc.denied_fields

    return JSONResponse(status_code=exc.status_code, content=content)


# ==================== Import Routers ====================

from routes import status, auth, users
from routes.admin import permissions as admin_permissions, role_permissions as admin_role_permissions
from routes.admin import field_permissions as admin_field_permissions
from routes.admin import roles as admin_roles, settings as admin_settings


# ==================== Include Routers ====================

# Include all route modules
app.include_router(status.router)
app.include_router(auth.router)
app.include_router(users.router)

# Include admin route modules
app.include_router(admin_permissions.router)
app.include_router(admin_role_permissions.router)
app.include_router(admin_field_permissions.router)
app.include_router(admin_roles.router)
app.include_router(admin_settings.router)


# ==================== Main Entry Point ====================

if __name__ == "__main__":
    """
    Run the server using uvicorn
    """
    logger.info("Starting RouteWarden Server...")

    # Route permissions are derived from this process's route table, so no reload
    uvicorn.run(
        "server:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info"
    )
