"""
prize_portal/errors.py
Centralized Error Handling

ERROR RESPONSE STRUCTURE:
{
    "success": false,
    "error": "ErrorType",
    "message": "Human-readable description",
    "code": "UNIQUE_ERROR_CODE",
    "details": {} (optional, for validation errors)
}

HTTP STATUS CODE DISCIPLINE:
- 400: Invalid input / invalid team composition
- 401: Authentication missing or expired
- 403: Access forbidden (role / membership / leadership)
- 404: Resource does not exist
- 409: Already submitted / invalid state transition
- 422: Validation error (Pydantic)
- 429: Rate limit exceeded
- 500: Never caused by user input (cipher failures, internal errors)
- 503: Storage unavailable
"""
import logging
import uuid
from typing import Any, Dict, Optional, Union

from fastapi import status
from fastapi.responses import JSONResponse
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class ErrorCode:
    """Unique error codes for machine-readable error handling"""

    VALIDATION_ERROR = "VALIDATION_ERROR"
    INVALID_INPUT = "INVALID_INPUT"
    INVALID_TEAM_COMPOSITION = "INVALID_TEAM_COMPOSITION"

    AUTH_REQUIRED = "AUTH_REQUIRED"
    AUTH_INVALID = "AUTH_INVALID"
    INVALID_CREDENTIALS = "INVALID_CREDENTIALS"

    FORBIDDEN = "FORBIDDEN"

    NOT_FOUND = "NOT_FOUND"

    ALREADY_SUBMITTED = "ALREADY_SUBMITTED"
    INVALID_TRANSITION = "INVALID_TRANSITION"
    DUPLICATE_EMAIL = "DUPLICATE_EMAIL"

    CIPHER_INVALID_FORMAT = "CIPHER_INVALID_FORMAT"
    CIPHER_AUTHENTICATION_FAILURE = "CIPHER_AUTHENTICATION_FAILURE"

    RATE_LIMITED = "RATE_LIMITED"
    STORAGE_UNAVAILABLE = "STORAGE_UNAVAILABLE"
    INTERNAL_ERROR = "INTERNAL_ERROR"


class ErrorResponse(BaseModel):
    """Standard error response model"""
    success: bool = False
    error: str
    message: str
    code: str
    details: Optional[Dict[str, Any]] = None


def error_content(
    error: str,
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None
) -> Dict[str, Any]:
    body = ErrorResponse(error=error, message=message, code=code, details=details or None)
    return body.model_dump(exclude_none=True)


def error_response(
    status_code: int,
    error: str,
    message: str,
    code: str,
    details: Optional[Dict[str, Any]] = None
) -> JSONResponse:
    """Build a JSONResponse in the standard error shape."""
    return JSONResponse(status_code=status_code, content=error_content(error, message, code, details))


def internal_error_response(error: Exception, context: str = "") -> JSONResponse:
    """Log an internal error with a short id and return a safe 500 response"""
    log_id = str(uuid.uuid4())[:8]
    logger.error(f"[{log_id}] Internal error in {context}: {type(error).__name__}")
    return error_response(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "Internal Error",
        "An internal error occurred. Please try again later.",
        ErrorCode.INTERNAL_ERROR,
        {"log_id": log_id}
    )


ERROR_MAPPING = {
    400: ("Bad Request", ErrorCode.INVALID_INPUT),
    401: ("Unauthorized", ErrorCode.AUTH_REQUIRED),
    403: ("Forbidden", ErrorCode.FORBIDDEN),
    404: ("Not Found", ErrorCode.NOT_FOUND),
    409: ("Conflict", ErrorCode.INVALID_TRANSITION),
    422: ("Validation Error", ErrorCode.VALIDATION_ERROR),
    429: ("Too Many Requests", ErrorCode.RATE_LIMITED),
    500: ("Internal Error", ErrorCode.INTERNAL_ERROR),
    503: ("Service Unavailable", ErrorCode.STORAGE_UNAVAILABLE),
}

# OpenAPI documentation of the error body, attached to every API route
ERROR_RESPONSES: Dict[Union[int, str], Dict[str, Any]] = {
    code: {"model": ErrorResponse, "description": label}
    for code, (label, _) in ERROR_MAPPING.items()
    if code != 422
}


def get_error_summary() -> Dict[str, Any]:
    """Return summary of error handling system for documentation"""
    return {
        "service": "prize-portal-error-handler",
        "response_structure": {
            "success": "boolean (always false for errors)",
            "error": "string (error type)",
            "message": "string (human-readable)",
            "code": "string (machine-readable)",
            "details": "object (optional)"
        },
        "status_codes": {
            str(code): label for code, (label, _) in ERROR_MAPPING.items()
        },
        "error_codes": [
            attr for attr in dir(ErrorCode)
            if not attr.startswith('_')
        ]
    }
