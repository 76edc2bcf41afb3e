"""
Custom exceptions and error handlers for consistent error responses.

Every domain failure of the shipment core is an AppException subclass with a
stable error code, so the HTTP boundary can map it without inspecting messages.
"""

import logging
from typing import Any, Dict, List

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from backend.app.core.observability import get_correlation_id

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationFailedError(AppException):
    """Raised when request input is malformed or incomplete.

    Carries every offending field, never just the first one.
    """

    def __init__(self, errors: List[Dict[str, str]], message: str = "Validation failed"):
        self.errors = errors
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"errors": errors}
        )

    @property
    def fields(self) -> List[str]:
        return [error["field"] for error in self.errors]


class InvalidReferenceError(AppException):
    """Raised when a box type or country reference is missing or inactive."""

    def __init__(self, errors: List[Dict[str, Any]]):
        self.errors = errors
        super().__init__(
            message="Invalid catalog reference",
            error_code="ERR_REFERENCE_001",
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details={"errors": errors}
        )

    @property
    def fields(self) -> List[str]:
        return [error["field"] for error in self.errors]


class InsufficientPermissionsError(AppException):
    """Raised when user doesn't have permission to perform an action."""

    def __init__(self, message: str = "Insufficient permissions", details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_PERM_001",
            status_code=status.HTTP_403_FORBIDDEN,
            details=details
        )


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


class IllegalTransitionError(AppException):
    """Raised when a status change is not an edge of the shipment state machine."""

    def __init__(self, current_status: str, requested_status: str):
        self.current_status = current_status
        self.requested_status = requested_status
        super().__init__(
            message=f"Cannot change shipment status from {current_status} to {requested_status}",
            error_code="ERR_STATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"current_status": current_status, "requested_status": requested_status}
        )


class ConflictError(AppException):
    """Raised on concurrent mutation or when a terminal record must stay immutable."""

    def __init__(self, message: str, details: Dict[str, Any] = None):
        super().__init__(
            message=message,
            error_code="ERR_CONFLICT_001",
            status_code=status.HTTP_409_CONFLICT,
            details=details
        )


class PersistenceUnavailableError(AppException):
    """Raised when the database cannot be reached. Not retried within the request."""

    def __init__(self, message: str = "Persistence layer unavailable"):
        super().__init__(
            message=message,
            error_code="ERR_FATAL_001",
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


def format_validation_errors(errors) -> List[Dict[str, str]]:
    """Flatten pydantic error dicts into [{"field": "sender.email", "message": ...}]."""
    return [
        {
            "field": ".".join(str(part) for part in error["loc"]),
            "message": error["msg"]
        }
        for error in errors
    ]


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
        401: "ERR_UNAUTHORIZED",
        403: "ERR_FORBIDDEN",
        404: "ERR_NOT_FOUND",
        409: "ERR_CONFLICT",
        500: "ERR_INTERNAL_SERVER"
    }

    error_code = error_code_map.get(exc.status_code, "ERR_UNKNOWN")

    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": error_code,
            "message": exc.detail,
            "details": {}
        },
        headers=getattr(exc, "headers", None)
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Handler for Pydantic validation errors."""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "error_code": "ERR_VALIDATION",
            "message": "Validation error",
            "details": {
                "errors": format_validation_errors(exc.errors())
            }
        }
    )


async def persistence_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for database connectivity failures (OperationalError / InterfaceError)."""
    logger.error("Persistence layer unavailable [%s]: %s", get_correlation_id(request), exc)
    return await app_exception_handler(request, PersistenceUnavailableError())


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception(
        "Unhandled exception on %s %s [%s]", request.method, request.url.path, get_correlation_id(request)
    )

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
