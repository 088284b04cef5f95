"""
Standardized error response utilities for the PawLedger API.

Provides consistent error response format across all endpoints:
{
    "error": {
        "message": "User-friendly error message",
        "code": "ERROR_CODE"
    }
}

Usage:
    from pawledger.utils.errors import error_response, ErrorCode

    return error_response("Client not found", ErrorCode.NOT_FOUND, 404)
"""
import logging
from enum import Enum
from flask import jsonify
from typing import Optional

from .exceptions import (
    PawLedgerError,
    NotFoundError,
    ValidationError,
    InsufficientBalanceError,
    InvalidStatusTransitionError,
    ConfigError,
    ConcurrencyConflictError,
    StoreError,
)

logger = logging.getLogger(__name__)


class ErrorCode(str, Enum):
    """Standardized error codes for API responses."""

    # Authentication & Authorization (401, 403)
    AUTH_REQUIRED = "AUTH_REQUIRED"
    MODULE_DISABLED = "MODULE_DISABLED"

    # Validation Errors (400)
    INVALID_REQUEST = "INVALID_REQUEST"
    MISSING_FIELD = "MISSING_FIELD"
    VALIDATION_ERROR = "VALIDATION_ERROR"

    # Not Found (404)
    NOT_FOUND = "NOT_FOUND"

    # Conflict (409)
    STATE_CONFLICT = "STATE_CONFLICT"

    # Business Logic Errors (422)
    INSUFFICIENT_BALANCE = "INSUFFICIENT_BALANCE"
    INVALID_STATUS = "INVALID_STATUS"
    CONFIGURATION_ERROR = "CONFIGURATION_ERROR"

    # Infrastructure (503)
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"

    # Server Errors (500)
    INTERNAL_ERROR = "INTERNAL_ERROR"


def error_response(
    message: str,
    code: ErrorCode = ErrorCode.INTERNAL_ERROR,
    status_code: int = 500,
    log_error: bool = True,
    details: Optional[dict] = None
) -> tuple:
    """
    Create a standardized error response.

    Args:
        message: User-friendly error message
        code: Error code from ErrorCode enum (or a raw string code)
        status_code: HTTP status code
        log_error: Whether to log the error
        details: Optional additional details (only logged, not returned to user)

    Returns:
        Tuple of (response, status_code) for Flask
    """
    if log_error and status_code >= 500:
        logger.error(f"API Error [{code}]: {message}", extra={"details": details})
    elif log_error and status_code >= 400:
        logger.warning(f"API Error [{code}]: {message}", extra={"details": details})

    response = {
        "error": {
            "message": message,
            "code": code.value if isinstance(code, ErrorCode) else code
        }
    }

    return jsonify(response), status_code


def bad_request(message: str, code: ErrorCode = ErrorCode.INVALID_REQUEST) -> tuple:
    """400 Bad Request error."""
    return error_response(message, code, 400, log_error=False)


def unauthorized(message: str = "Authentication required", code: ErrorCode = ErrorCode.AUTH_REQUIRED) -> tuple:
    """401 Unauthorized error."""
    return error_response(message, code, 401, log_error=False)


def forbidden(message: str, code: ErrorCode = ErrorCode.MODULE_DISABLED) -> tuple:
    """403 Forbidden error."""
    return error_response(message, code, 403, log_error=False)


def not_found(message: str, code: ErrorCode = ErrorCode.NOT_FOUND) -> tuple:
    """404 Not Found error."""
    return error_response(message, code, 404, log_error=False)


def exception_response(error: PawLedgerError) -> tuple:
    """Map a business exception onto its HTTP error response."""
    if isinstance(error, NotFoundError):
        status = 404
    elif isinstance(error, ValidationError):
        status = 400
    elif isinstance(error, ConcurrencyConflictError):
        status = 409
    elif isinstance(error, (InsufficientBalanceError, InvalidStatusTransitionError, ConfigError)):
        status = 422
    elif isinstance(error, StoreError):
        status = 503
    else:
        status = 500
    return error_response(error.message, error.code, status, log_error=status >= 500)
