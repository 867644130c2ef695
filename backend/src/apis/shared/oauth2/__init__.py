"""OAuth2 identity provider integration.

This module provides login through an external identity provider: the
provider contract, the Kratos/Hydra implementation, and the normalization of
provider failures into the shared error taxonomy.
"""

from .models import ExternalIdentity, Token
from .provider import DEFAULT_SCOPES, Provider, ProviderConfig
from .errors import decode_error, error_detail, status_error, transport_error
from .transport import RetryTransport
from .kratos import KratosProvider, basic_auth, get_oauth_provider
from .dependencies import get_provider, require_active_token

__all__ = [
    # Models
    "ExternalIdentity",
    "Token",
    # Contract
    "DEFAULT_SCOPES",
    "Provider",
    "ProviderConfig",
    # Errors
    "decode_error",
    "error_detail",
    "status_error",
    "transport_error",
    # Implementations
    "RetryTransport",
    "KratosProvider",
    "basic_auth",
    "get_oauth_provider",
    # Dependencies
    "get_provider",
    "require_active_token",
]
