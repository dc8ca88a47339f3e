"""
Shared error handling for the ReviewAI edge gateway.

Every failure a client can observe maps to one class below, and every class
renders as ``{error, message?, details?}`` with a fixed status code.
"""

from enum import Enum
from typing import Any, Dict, Optional

from fastapi.responses import JSONResponse
from pydantic import BaseModel


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization, x-app-token",
    "Access-Control-Max-Age": "86400",
}


class ErrorResponse(BaseModel):
    """Standard error response format."""

    error: str
    message: Optional[str] = None
    details: Optional[Any] = None


class GatewayException(Exception):
    """Base exception for gateway services."""

    status_code = 500

    def __init__(self, error: str, message: Optional[str] = None, details: Optional[Any] = None,
                 status_code: Optional[int] = None):
        self.error = error
        self.message = message
        self.details = details
        if status_code is not None:
            self.status_code = status_code
        super().__init__(message or error)

    def to_response(self) -> ErrorResponse:
        """Convert to error response."""
        return ErrorResponse(error=self.error, message=self.message, details=self.details)


class ValidationError(GatewayException):
    """Missing or malformed client input."""

    status_code = 400

    def __init__(self, error: str = "Validation failed", message: Optional[str] = None,
                 details: Optional[Any] = None):
        super().__init__(error, message, details)


class AuthFailureReason(str, Enum):
    """Why a bearer credential was refused."""

    MISSING = "missing"
    MALFORMED = "malformed"
    EXPIRED = "expired"
    INVALID_SIGNATURE = "invalid_signature"
    WRONG_TYPE = "wrong_type"


class AuthenticationError(GatewayException):
    """Authentication-related errors."""

    status_code = 401

    def __init__(self, reason: AuthFailureReason, error: str = "Invalid token",
                 message: Optional[str] = "Authentication failed", details: Optional[Any] = None):
        self.reason = reason
        super().__init__(error, message, details)


class NotFoundError(GatewayException):
    """No route matched the request."""

    status_code = 404

    def __init__(self, error: str = "Not Found", message: Optional[str] = None):
        super().__init__(error, message)


class RateLimitError(GatewayException):
    """Rate limiting errors."""

    status_code = 429

    def __init__(self, error: str = "Too many requests",
                 message: Optional[str] = "Rate limit exceeded. Please try again later.",
                 details: Optional[Any] = None):
        super().__init__(error, message, details)


class UpstreamError(GatewayException):
    """A third-party API answered with a failure or could not be reached."""

    def __init__(self, error: str, message: Optional[str] = None,
                 details: Optional[Any] = None, status_code: Optional[int] = None):
        super().__init__(error, message, details, status_code=status_code or 500)


class ConfigurationError(GatewayException):
    """A server-side secret or setting is missing."""

    status_code = 500

    def __init__(self, error: str = "API key not configured", message: Optional[str] = None):
        super().__init__(error, message)


def error_response(exc: GatewayException, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    """Render an exception as a JSON response carrying the CORS header set."""
    merged = dict(CORS_HEADERS)
    if headers:
        merged.update(headers)
    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_response().model_dump(exclude_none=True),
        headers=merged,
    )


def internal_error_response() -> JSONResponse:
    """Generic 500 for failures that fit no other class."""
    return error_response(GatewayException("Internal server error"))
