"""
FastAPI Application Entry Point.

This is the main application file for the Boxinator Shipping Backend.
"""

from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from sqlalchemy import text
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession

from backend.app.core.config import settings
from backend.app.api.v1.router import router as api_v1_router
from backend.app.db.session import engine, get_db, Base
from backend.app.core.observability import ObservabilityMiddleware, configure_logging
from backend.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    persistence_exception_handler,
    generic_exception_handler
)
from backend.app.services.notification_service import notification_dispatcher

# Import models to ensure they are registered with Base
from backend.app.models.user import User
from backend.app.models.box_type import BoxType
from backend.app.models.country import Country
from backend.app.models.country_multiplier_log import CountryMultiplierLog
from backend.app.models.shipment import Shipment
from backend.app.models.shipment_status_history import ShipmentStatusHistory
from backend.app.models.admin_action_log import AdminActionLog
from backend.app.models.notification import Notification


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    1. Configures logging and creates database tables on startup.
    2. Waits for pending notifications on shutdown.
    """
    configure_logging(settings.log_level)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await notification_dispatcher.drain()
    await engine.dispose()

# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Shipment brokerage backend: pricing, tracking and shipment lifecycle",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(OperationalError, persistence_exception_handler)
app.add_exception_handler(InterfaceError, persistence_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(db: AsyncSession = Depends(get_db)):
    """
    Health check endpoint.

    Performs a database round-trip; an unreachable database answers 503.

    Returns:
        dict: Status and application information
    """
    await db.execute(text("SELECT 1"))
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
        "message": "Welcome to Boxinator Shipping Backend API",
        "docs": "/docs",
        "health": "/health",
    }
