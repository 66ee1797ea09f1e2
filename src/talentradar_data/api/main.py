"""
FastAPI application for the TalentRadar population admin API.

Hosts the population scheduler for the lifetime of the process:
- Daily population run at the configured time
- Manual trigger and status endpoints under /admin
- Health checks
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR, HTTP_503_SERVICE_UNAVAILABLE

from .routers import admin
from ..core.config import get_settings
from ..services.scheduler import PopulationScheduler

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Manage application lifecycle.

    Startup:
    - Build the scheduler on the PostgreSQL repositories (unless one was injected)
    - Start the daily trigger loop

    Shutdown:
    - Interrupt and cancel any running population
    - Close database connections
    """
    logger.info("Starting TalentRadar Data API...")
    settings = get_settings()

    if app.state.scheduler is None:
        from ..pg_connection import get_db
        from ..repositories import get_repositories

        app.state.scheduler = PopulationScheduler(settings, get_repositories(get_db()))

    scheduler: PopulationScheduler = app.state.scheduler
    await scheduler.start()

    yield

    logger.info("Shutting down TalentRadar Data API...")
    await scheduler.shutdown()

    try:
        from ..pg_connection import close_db

        close_db()
    except Exception as e:
        logger.warning("Error closing database connections: %s", e)


def create_app(scheduler: Optional[PopulationScheduler] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        scheduler: Pre-built scheduler (tests); built during startup if omitted

    Returns:
        Configured FastAPI application instance
    """
    settings = get_settings()
    app = FastAPI(
        title=settings.app_name,
        description="Admin endpoints for the U21 player population pipeline",
        version=settings.app_version,
        lifespan=lifespan,
    )
    app.state.scheduler = scheduler

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Handle unexpected exceptions with consistent format."""
        logger.error("Unhandled exception: %s", exc, exc_info=True)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "error": {
                    "code": "INTERNAL_ERROR",
                    "message": "An internal error occurred",
                    "detail": str(exc) if settings.debug else None,
                }
            },
        )

    @app.get("/health", tags=["health"])
    async def health_check():
        """Basic health check endpoint."""
        return {"status": "healthy", "timestamp": datetime.now(tz=timezone.utc).isoformat()}

    @app.get("/health/db", tags=["health"])
    async def health_check_db():
        """Database connectivity health check."""
        from ..pg_connection import get_db

        try:
            get_db().fetchone("SELECT 1 AS test")
            return {
                "status": "healthy",
                "database": "connected",
                "timestamp": datetime.now(tz=timezone.utc).isoformat(),
            }
        except Exception as e:
            logger.error("Database health check failed: %s", e)
            return JSONResponse(
                status_code=HTTP_503_SERVICE_UNAVAILABLE,
                content={
                    "status": "unhealthy",
                    "database": "disconnected",
                    "timestamp": datetime.now(tz=timezone.utc).isoformat(),
                },
            )

    app.include_router(admin.router, prefix="/admin", tags=["admin"])

    return app
