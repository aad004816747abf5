"""
Custom exceptions and error handlers for consistent error responses.

Provides standardized error codes and global exception handlers.
"""

import logging
from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from typing import Any, Dict

logger = logging.getLogger(__name__)


class AppException(Exception):
    """Base application exception."""

    def __init__(self, message: str, error_code: str, status_code: int = 500, details: Dict[str, Any] = None):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ValidationError(AppException):
    """Raised for malformed input that passed schema parsing."""

    def __init__(self, message: str, field: str = None, details: Dict[str, Any] = None):
        details = dict(details or {})
        if field:
            details.setdefault("field", field)
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=status.HTTP_400_BAD_REQUEST,
            details=details
        )


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
            message = f"No {resource.lower()} found with identifier {resource_id}"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id}
        )


class ConflictError(AppException):
    """Raised when a unique field is already taken."""

    def __init__(self, message: str, field: str = None, error_code: str = "ERR_CONFLICT_001"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_409_CONFLICT,
            details={"field": field} if field else {}
        )


class ConcurrentUpdateError(ConflictError):
    """Raised when another request changed the record first."""

    def __init__(self, resource: str = "Shipment"):
        super().__init__(
            message=f"{resource} was modified by another request, please retry",
            error_code="ERR_CONFLICT_002"
        )


class InvalidStatusTransitionError(AppException):
    """Raised when a tracking event would move a shipment illegally."""

    def __init__(self, current_status: str, target_status: str):
        super().__init__(
            message=f"Cannot move shipment from '{current_status}' to '{target_status}'",
            error_code="ERR_STATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"current_status": current_status, "target_status": target_status}
        )


class DeliveryAttemptsExhaustedError(AppException):
    """Raised when the delivery-attempt counter is already at its cap."""

    def __init__(self, max_attempts: int):
        super().__init__(
            message=f"Maximum of {max_attempts} delivery attempts already recorded",
            error_code="ERR_STATE_002",
            status_code=status.HTTP_409_CONFLICT,
            details={"max_attempts": max_attempts}
        )


class AuthenticationError(AppException):
    """Raised for authentication failures."""

    def __init__(self, message: str = "Authentication failed"):
        super().__init__(
            message=message,
            error_code="ERR_AUTH_001",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class TokenRevokedError(AppException):
    """Raised when token has been revoked."""

    def __init__(self):
        super().__init__(
            message="Token has been revoked",
            error_code="ERR_AUTH_002",
            status_code=status.HTTP_401_UNAUTHORIZED
        )


class AccountLockedError(AppException):
    """Raised when the account is inside its lockout window."""

    def __init__(self):
        super().__init__(
            message="Account temporarily locked due to too many failed login attempts. Please try again later.",
            error_code="ERR_AUTH_003",
            status_code=status.HTTP_423_LOCKED
        )


class ResourceExhaustedError(AppException):
    """Raised when the operation cannot complete for lack of a resource."""

    def __init__(self, message: str, error_code: str = "ERR_RESOURCE_001"):
        super().__init__(
            message=message,
            error_code=error_code,
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE
        )


class TrackingNumberExhaustedError(ResourceExhaustedError):
    """Raised when no free tracking number was found within the retry budget."""

    def __init__(self, attempts: int):
        super().__init__(
            message=f"Could not allocate a unique tracking number after {attempts} attempts",
            error_code="ERR_RESOURCE_002"
        )


class StorageUnavailableError(ResourceExhaustedError):
    """Raised when the database cannot be reached."""

    def __init__(self, message: str = "Storage is currently unavailable"):
        super().__init__(message=message, error_code="ERR_RESOURCE_003")


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
                "errors": [
                    {"loc": list(err.get("loc", ())), "msg": err.get("msg"), "type": err.get("type")}
                    for err in exc.errors()
                ]
            }
        }
    )


async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Handler for unhandled exceptions."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error_code": "ERR_INTERNAL_SERVER",
            "message": "An internal server error occurred",
            "details": {}
        }
    )
