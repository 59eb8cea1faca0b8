"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
Every ingestion failure maps onto one of three errors:

- InvalidPayloadError (400): malformed or missing required field.
- UnknownDeviceError (404): identifier resolves to no driver.
- StorageFailureError (500): backing store read/write failed, safe to retry.

Partial batch failures are not errors; they are reported as counts.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger("crewmap.errors")

UNKNOWN_DEVICE_HINT = (
    'Set Device ID (or "Identifier" field) to your driver UUID in the tracking app, '
    'or use the "CREWCODE:nickname" form'
)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class InvalidPayloadError(AppException):
    """Raised when a position report is missing or has malformed required fields."""

    def __init__(self, message: str, hint: str = None):
        details = {"hint": hint} if hint else {}
        super().__init__(
            message=message,
            error_code="ERR_INVALID_PAYLOAD",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


class UnknownDeviceError(AppException):
    """Raised when a device identifier does not resolve to a driver."""

    def __init__(self, token: str, hint: str = UNKNOWN_DEVICE_HINT):
        self.token = token
        super().__init__(
            message="Driver not found",
            error_code="ERR_UNKNOWN_DEVICE",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"hint": hint, "device_id_received": token}
        )


class StorageFailureError(AppException):
    """Raised when the backing store fails a read or write."""

    def __init__(self, message: str = "Failed to save location", operation: str = None):
        super().__init__(
            message=message,
            error_code="ERR_STORAGE",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"operation": operation} if operation else {}
        )


class ResourceNotFoundError(AppException):
    """Raised when requested resource is not found."""

    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id:
            message = f"{resource} {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class ConflictError(AppException):
    """Raised when a write would violate a uniqueness rule."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


# Global Exception Handlers

async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """Handler for custom application exceptions."""
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
        404: "ERR_NOT_FOUND",
        405: "ERR_METHOD_NOT_ALLOWED",
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
                "errors": exc.errors()
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
