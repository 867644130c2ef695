"""Shared error models and utilities for consistent error handling across APIs"""

from enum import Enum
from typing import Optional, Dict, Any

from fastapi import HTTPException, status
from pydantic import BaseModel, ConfigDict


class ErrorCode(str, Enum):
    """Standard error codes for API responses"""

    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    SERVICE_UNAVAILABLE = "service_unavailable"
    BAD_GATEWAY = "bad_gateway"
    INTERNAL_ERROR = "internal_error"


class ErrorDetail(BaseModel):
    """Structured error detail for API responses"""

    model_config = ConfigDict(use_enum_values=True)

    code: ErrorCode
    message: str
    detail: Optional[str] = None
    metadata: Optional[Dict[str, Any]] = None


class ServiceError(Exception):
    """
    Base class for failures surfaced by the identity integration layer.

    Every provider, transport and policy failure is raised as exactly one of
    the subclasses below so callers can branch on the kind, not the text.
    """

    code: ErrorCode = ErrorCode.INTERNAL_ERROR
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message: str = "Unexpected identity service failure"

    def __init__(self, message: Optional[str] = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class AuthenticationError(ServiceError):
    """Inactive or expired token, missing refresh token, incomplete identity."""

    code = ErrorCode.UNAUTHORIZED
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Failed to perform authentication over the entity"


class AuthorizationError(ServiceError):
    """A policy check or grant was rejected."""

    code = ErrorCode.FORBIDDEN
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Failed to perform authorization over the entity"


class TransportError(ServiceError):
    """Network failure or timeout while reaching a remote service."""

    code = ErrorCode.SERVICE_UNAVAILABLE
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Identity provider unavailable"


class DecodingError(ServiceError):
    """A remote response body could not be decoded."""

    code = ErrorCode.BAD_GATEWAY
    status_code = status.HTTP_502_BAD_GATEWAY
    default_message = "Failed to decode identity provider response"


def create_error_response(
    code: ErrorCode,
    message: str,
    detail: Optional[str] = None,
    status_code: int = 500,
    metadata: Optional[Dict[str, Any]] = None
) -> dict:
    """
    Create a standardized error response dictionary.

    Args:
        code: Error code from ErrorCode enum
        message: User-friendly error message
        detail: Optional technical detail for debugging
        status_code: HTTP status code
        metadata: Optional additional error context

    Returns:
        Dictionary suitable for HTTPException detail
    """
    error = ErrorDetail(
        code=code,
        message=message,
        detail=detail,
        metadata=metadata
    )

    return {
        "error": error.model_dump(exclude_none=True),
        "status_code": status_code
    }


def to_http_exception(error: ServiceError) -> HTTPException:
    """
    Convert a ServiceError into an HTTPException for route handlers.

    The provider diagnostic is kept in ``detail`` while the user-facing
    message stays generic for the error kind.
    """
    body = create_error_response(
        code=error.code,
        message=error.default_message,
        detail=error.message if error.message != error.default_message else None,
        status_code=error.status_code,
    )
    headers = None
    if isinstance(error, AuthenticationError):
        headers = {"WWW-Authenticate": "Bearer"}
    return HTTPException(status_code=error.status_code, detail=body, headers=headers)


def http_status_to_error_code(status_code: int) -> ErrorCode:
    """Map HTTP status codes to ErrorCode enum values"""

    mapping = {
        401: ErrorCode.UNAUTHORIZED,
        403: ErrorCode.FORBIDDEN,
        502: ErrorCode.BAD_GATEWAY,
        503: ErrorCode.SERVICE_UNAVAILABLE,
    }

    return mapping.get(status_code, ErrorCode.INTERNAL_ERROR)
