"""
FastAPI application factory and entry point.

This module creates and configures the FastAPI application:
  1. Lifespan manager: logging setup, DB table creation, cleanup
  2. CORS middleware: allows the portal frontend to make cross-origin requests
  3. Exception handlers: maps domain errors to HTTP responses
  4. Router registration: mounts the auth and admin endpoint groups

Running locally:
    SECRET_KEY=dev-secret uvicorn egp_api.main:app --reload

The --reload flag watches for file changes and restarts automatically,
which is ideal for development but should not be used in production.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

import egp_api.models  # noqa: F401  (registers every table on Base.metadata)
from egp_api.config import settings
from egp_api.database import engine, Base, ensure_sqlite_directory
from egp_api.exceptions import register_exception_handlers
from egp_api.logger import setup_logging
from egp_api.routers import admin, auth


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
      Configures logging, then creates all database tables if they don't
      exist. In production, schema changes belong in versioned migrations.

    Shutdown:
      Disposes of the database engine, closing all connections cleanly.
    """
    # --- Startup ---
    setup_logging(settings.LOG_LEVEL, settings.LOG_DIR)
    ensure_sqlite_directory()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started (mail: {settings.MAIL_BACKEND})")
    yield
    # --- Shutdown ---
    await engine.dispose()


# Create the FastAPI application instance
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Identity lifecycle API for the PNG e-Government Procurement portal: "
                "registration, email verification, sign-in and password reset",
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware
# ---------------------------------------------------------------------------

# CORS: Allow specified frontend origins to make requests.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

register_exception_handlers(app)

# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(auth.router, prefix="/auth", tags=["Auth"])
app.include_router(admin.router, prefix="/admin", tags=["Admin"])


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint for deployment probes.

    Returns a simple JSON response indicating the service is running.
    """
    return {"status": "ok", "version": settings.APP_VERSION}
