"""
FastAPI Application Entry Point.

This is the main application file for the CrewMap Backend.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI
from starlette.exceptions import HTTPException as StarletteHTTPException
from fastapi.exceptions import RequestValidationError
from crewmap.app.core.config import settings
from crewmap.app.api.v1.router import router as api_v1_router
from crewmap.app.core.observability import ObservabilityMiddleware, configure_logging
from crewmap.app.core.redis_client import close_redis, ping_redis
from crewmap.app.db.session import engine, Base
from crewmap.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from crewmap.app.models.crew import Crew
from crewmap.app.models.driver import Driver
from crewmap.app.models.location import LocationSample
from crewmap.app.models.audit_log import AuditLog

configure_logging(settings.log_level)
logger = logging.getLogger("crewmap")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Creates database tables on startup.
    2. Checks the fan-out channel is reachable (ingestion works without it).
    3. Closes Redis and the engine pool on shutdown.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    if not await ping_redis():
        logger.warning("Redis unreachable at startup; live streams will be empty")
    yield
    await close_redis()
    await engine.dispose()


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Live location ingestion and crew trails",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check():
    """
    Health check endpoint.

    Returns:
        dict: Status and application information
    """
    return {
        "status": "healthy",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """
    Root endpoint.

    Returns:
        dict: Welcome message and API documentation links
    """
    return {
        "message": "Welcome to CrewMap Backend API",
        "docs": "/docs",
        "health": "/health",
        "webhooks": {
            "osmand": f"/{settings.api_version}/webhooks/osmand",
            "overland": f"/{settings.api_version}/webhooks/overland",
            "traccar": f"/{settings.api_version}/webhooks/traccar",
        },
    }
