"""Normalize identity provider failures into the shared error taxonomy."""

import json
import logging
from typing import Optional

import httpx

from apis.shared.errors import (
    AuthenticationError,
    AuthorizationError,
    DecodingError,
    ErrorCode,
    ServiceError,
    TransportError,
    http_status_to_error_code,
)

logger = logging.getLogger(__name__)


def _parse_error_body(body: bytes) -> Optional[str]:
    """
    Extract the diagnostic from an ``{"error": {"message", "reason"}}`` body.

    Returns None if the body is empty or does not have that shape.
    """
    if not body:
        return None
    try:
        content = json.loads(body)
    except ValueError:
        return None

    if not isinstance(content, dict):
        return None
    error = content.get("error")
    if not isinstance(error, dict):
        return None

    message = error.get("message")
    reason = error.get("reason")
    if not isinstance(message, str) or not isinstance(reason, str):
        return None
    return f"error: {message}, reason: {reason}"


def error_detail(response: httpx.Response) -> Optional[str]:
    """Diagnostic text from a provider error response, if it carries one."""
    return _parse_error_body(response.content)


def status_error(response: httpx.Response, message: str) -> ServiceError:
    """
    Error for a non-success provider status.

    403 maps to an authorization error, everything else to an authentication
    error. The provider diagnostic is used as the message when present.
    """
    detail = error_detail(response) or f"{message} (status {response.status_code})"
    if http_status_to_error_code(response.status_code) == ErrorCode.FORBIDDEN:
        return AuthorizationError(detail)
    return AuthenticationError(detail)


def decode_error(response: httpx.Response) -> ServiceError:
    """
    Strictly decode a provider error response.

    Unlike ``status_error``, a body that does not match the structured error
    shape yields a DecodingError instead of a generic authentication error.
    """
    detail = error_detail(response)
    if detail is None:
        logger.warning(
            f"Undecodable identity provider error body (status {response.status_code})"
        )
        return DecodingError(
            f"error decoding identity provider response (status {response.status_code})"
        )
    if http_status_to_error_code(response.status_code) == ErrorCode.FORBIDDEN:
        return AuthorizationError(detail)
    return AuthenticationError(detail)


def transport_error(exc: Exception) -> TransportError:
    """Wrap a network failure or timeout."""
    return TransportError(f"identity provider request failed: {exc.__class__.__name__}: {exc}")
