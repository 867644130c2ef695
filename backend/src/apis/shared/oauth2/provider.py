"""Identity provider contract for OAuth2 login."""

import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Tuple

from users.models import Account

from .models import Token


# Scopes requested on authorization and echoed verbatim on refresh
DEFAULT_SCOPES: Tuple[str, ...] = ("email", "profile", "offline_access")

DEFAULT_RETRY_COUNT = 10
DEFAULT_RETRY_WAIT_MAX = 60.0


@dataclass(frozen=True)
class ProviderConfig:
    """
    Static OAuth2 client configuration for one identity provider.

    Built once at startup and shared read-only across requests.
    """

    client_id: str = ""
    client_secret: str = field(default="", repr=False)
    redirect_url: str = ""
    state: str = ""
    base_url: str = "http://localhost:4433"
    api_key: str = field(default="", repr=False)
    ui_redirect_url: str = "http://localhost:9095/domains"
    ui_error_url: str = "http://localhost:9095/error"
    scopes: Tuple[str, ...] = DEFAULT_SCOPES
    retry_count: int = DEFAULT_RETRY_COUNT
    retry_wait_max: float = DEFAULT_RETRY_WAIT_MAX

    @property
    def enabled(self) -> bool:
        return bool(self.client_id and self.client_secret)

    @classmethod
    def from_env(cls) -> "ProviderConfig":
        """Load provider configuration from KRATOS_* / OAUTH_* environment variables."""
        return cls(
            client_id=os.getenv("KRATOS_CLIENT_ID", ""),
            client_secret=os.getenv("KRATOS_CLIENT_SECRET", ""),
            redirect_url=os.getenv("KRATOS_REDIRECT_URL", ""),
            state=os.getenv("KRATOS_STATE", ""),
            base_url=os.getenv("KRATOS_URL", "http://localhost:4433").rstrip("/"),
            api_key=os.getenv("KRATOS_API_KEY", ""),
            ui_redirect_url=os.getenv("OAUTH_UI_REDIRECT_URL", "http://localhost:9095/domains"),
            ui_error_url=os.getenv("OAUTH_UI_ERROR_URL", "http://localhost:9095/error"),
            retry_count=int(os.getenv("KRATOS_RETRY_COUNT", str(DEFAULT_RETRY_COUNT))),
            retry_wait_max=float(os.getenv("KRATOS_RETRY_WAIT_MAX", str(DEFAULT_RETRY_WAIT_MAX))),
        )


class Provider(ABC):
    """
    Abstract interface for OAuth2 identity providers.

    Callers depend on this contract only; adding a provider means adding a
    subclass, never branching on ``name``.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Provider name, also recorded in account metadata."""
        pass

    @property
    @abstractmethod
    def state(self) -> str:
        """CSRF state token echoed through the authorization redirect."""
        pass

    @property
    @abstractmethod
    def redirect_url(self) -> str:
        """UI destination after a successful login."""
        pass

    @property
    @abstractmethod
    def error_url(self) -> str:
        """UI destination after a failed login."""
        pass

    @abstractmethod
    def is_enabled(self) -> bool:
        """Whether the provider has client credentials configured."""
        pass

    @abstractmethod
    def authorization_url(self) -> str:
        """URL the browser is redirected to in order to start the login."""
        pass

    @abstractmethod
    async def user_details(self, code: str) -> Tuple[Account, Token]:
        """
        Exchange an authorization code and resolve the account it belongs to.

        Args:
            code: Authorization code from the provider callback

        Returns:
            Tuple of (account, token)

        Raises:
            ServiceError: One of the authentication, transport or decoding errors
        """
        pass

    @abstractmethod
    async def validate(self, token: str) -> None:
        """
        Check that an access token is still active.

        Raises:
            ServiceError: If the token is inactive or cannot be checked
        """
        pass

    @abstractmethod
    async def refresh(self, refresh_token: str) -> Token:
        """
        Obtain a new token set from a refresh token.

        Raises:
            ServiceError: If the provider rejects the refresh or is unreachable
        """
        pass
