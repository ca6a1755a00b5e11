"""
FastAPI Application Entry Point.

Admin back-office API for the rental fleet: customers, vehicles and
reservations with availability checks.
"""

import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from rental_admin.app.core.config import settings
from rental_admin.app.api.v1.router import router as api_v1_router
from rental_admin.app.core.observability import ObservabilityMiddleware
from rental_admin.app.core.redis_client import get_redis, ping_redis
from rental_admin.app.db.session import engine, Base
from rental_admin.app.core.exceptions import (
    AppException,
    app_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    generic_exception_handler
)

# Import models to ensure they are registered with Base
from rental_admin.app.models.customer import Customer
from rental_admin.app.models.vehicle import Vehicle
from rental_admin.app.models.reservation import Reservation
from rental_admin.app.models.legacy_booking import LegacyBooking
from rental_admin.app.models.audit_log import AuditLog
from rental_admin.app.models.ticket import CommercialOperationTicket

logging.basicConfig(
    level=logging.DEBUG if settings.debug else logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifespan context manager for application startup/shutdown.

    Creates database tables on startup.
    """
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


# Initialize FastAPI application
app = FastAPI(
    title=settings.app_name,
    version=settings.api_version,
    debug=settings.debug,
    description="Admin back-office API for vehicle rentals",
    lifespan=lifespan,
)

app.add_middleware(ObservabilityMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_methods=["GET", "POST", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)

# Register global exception handlers
app.add_exception_handler(AppException, app_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, generic_exception_handler)


@app.get("/health", tags=["Health"])
async def health_check(redis=Depends(get_redis)):
    """
    Health check endpoint.

    Reservations cannot be written while the lock backend is down, so its
    state is reported alongside the app info.
    """
    redis_ok = await ping_redis(redis)
    return {
        "status": "healthy" if redis_ok else "degraded",
        "redis": "ok" if redis_ok else "unavailable",
        "app_name": settings.app_name,
        "version": settings.api_version,
    }


# Include API v1 router
app.include_router(api_v1_router, prefix=f"/{settings.api_version}")


@app.get("/", tags=["Root"])
async def root():
    """Welcome message and API documentation links."""
    return {
        "message": "Welcome to the Rental Admin API",
        "docs": "/docs",
        "health": "/health",
    }
