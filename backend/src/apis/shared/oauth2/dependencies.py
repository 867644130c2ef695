"""FastAPI dependencies for bearer token validation."""

import logging
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from apis.shared.errors import AuthenticationError, ServiceError, to_http_exception

from .provider import Provider

logger = logging.getLogger(__name__)

# auto_error=False: a missing token is reported with the shared error body
security = HTTPBearer(auto_error=False)


def get_provider(request: Request) -> Provider:
    """The identity provider installed on the app by the startup lifespan."""
    return request.app.state.oauth_provider


async def require_active_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    provider: Provider = Depends(get_provider),
) -> str:
    """
    FastAPI dependency that admits only requests with an active access token.

    The token is checked by provider introspection on every request.

    Returns:
        The bearer token

    Raises:
        HTTPException: 401 if the token is missing or inactive, 403 if the
            provider forbids the check, 502/503 if the provider cannot answer
    """
    if credentials is None:
        raise to_http_exception(AuthenticationError("Missing bearer token"))

    try:
        await provider.validate(credentials.credentials)
    except ServiceError as e:
        logger.warning(f"Token rejected by {provider.name}: {e.code.value}")
        raise to_http_exception(e) from e

    return credentials.credentials
