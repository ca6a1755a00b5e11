"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

from rental_admin.app.domain.availability.validator import Rejection

logger = logging.getLogger("rental_admin.errors")


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class ReservationRejectedError(AppException):
    """
    Raised when a proposed reservation breaks a business calendar rule
    or collides with an existing booking.

    The rule code (CLOSED_DAY, SATURDAY_CUTOFF, VEHICLE_UNAVAILABLE) is the
    error code; the localized message is surfaced verbatim.
    """

    def __init__(self, rejection: Rejection):
        self.rejection = rejection
        details: Dict[str, Any] = {"reason": rejection.reason.value}
        if rejection.conflict is not None:
            details["conflict"] = {
                "source": rejection.conflict.source.value,
                "start_at": rejection.conflict.start_at.isoformat(),
                "end_at": rejection.conflict.end_at.isoformat(),
            }
        super().__init__(
            message=rejection.message,
            error_code=rejection.reason.value,
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class StoreReadError(AppException):
    """Raised when conflict data could not be read. Validation fails closed."""

    def __init__(self, source: str):
        super().__init__(
            message="An internal server error occurred",
            error_code="STORE_READ_FAILURE",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"source": source}
        )


class VehicleBusyError(AppException):
    """Raised when another reservation write for the same vehicle is in flight."""

    def __init__(self, vehicle_id: Any):
        super().__init__(
            message="Another reservation for this vehicle is being processed, retry shortly",
            error_code="ERR_VEHICLE_BUSY",
            status_code=status.HTTP_409_CONFLICT,
            details={"vehicle_id": vehicle_id}
        )


class ReservationLockUnavailableError(AppException):
    """Raised when the reservation lock backend cannot be reached."""

    def __init__(self):
        super().__init__(
            message="Reservation service temporarily unavailable",
            error_code="ERR_LOCK_UNAVAILABLE",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class CalendarUnavailableError(AppException):
    """Raised when a calendar block could not be written."""

    def __init__(self, reason: str):
        super().__init__(
            message="Calendar event could not be created",
            error_code="ERR_CALENDAR_UNAVAILABLE",
            status_code=status.HTTP_502_BAD_GATEWAY,
            details={"reason": reason}
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
    if exc.status_code >= 500:
        logger.error(
            "%s on %s %s: %s", exc.error_code, request.method, request.url.path, exc.details
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details
        }
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handler for FastAPI HTTPException with standardized format."""
    # Map status code to error code
    error_code_map = {
        400: "ERR_BAD_REQUEST",
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        }
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": jsonable_encoder(exc.errors())
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception: %s: %s", type(exc).__name__, exc)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
