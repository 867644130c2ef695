"""OAuth2 login against Ory Kratos / Hydra."""

import asyncio
import base64
import logging
from typing import Any, Optional, Tuple
from urllib.parse import quote, urlencode

import httpx
from authlib.integrations.base_client import OAuthError
from authlib.integrations.httpx_client import AsyncOAuth2Client

from apis.shared.errors import AuthenticationError, DecodingError, TransportError
from users.models import Account, AccountStatus, Credentials

from .errors import decode_error, status_error, transport_error
from .models import ExternalIdentity, Token
from .provider import Provider, ProviderConfig

logger = logging.getLogger(__name__)

PROVIDER_NAME = "kratos"

# Ceiling for every outbound call to the provider (seconds)
DEFAULT_TIMEOUT = 60.0

AUTH_ENDPOINT = "/oauth2/auth"
TOKEN_ENDPOINT = "/oauth2/token"
USERINFO_ENDPOINT = "/userinfo"
INTROSPECT_ENDPOINT = "/admin/oauth2/introspect"


def basic_auth(client_id: str, client_secret: str) -> str:
    """Encode client credentials for an HTTP Basic Authorization header."""
    return base64.b64encode(f"{client_id}:{client_secret}".encode("utf-8")).decode("ascii")


class KratosProvider(Provider):
    """
    Kratos/Hydra implementation of the identity provider contract.

    Handles:
    - Authorization URL construction
    - Authorization code exchange and userinfo lookup
    - Token introspection through the admin API
    - Token refresh with the original scope set
    """

    def __init__(
        self,
        config: ProviderConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the provider.

        Args:
            config: Static client configuration
            transport: Optional httpx transport for all outbound calls
        """
        self._config = config
        self._transport = transport
        self._timeout = httpx.Timeout(DEFAULT_TIMEOUT)

        self.auth_url = f"{config.base_url}{AUTH_ENDPOINT}"
        self.token_url = f"{config.base_url}{TOKEN_ENDPOINT}"
        self.userinfo_url = f"{config.base_url}{USERINFO_ENDPOINT}"

    @property
    def name(self) -> str:
        return PROVIDER_NAME

    @property
    def state(self) -> str:
        return self._config.state

    @property
    def redirect_url(self) -> str:
        return self._config.ui_redirect_url

    @property
    def error_url(self) -> str:
        return self._config.ui_error_url

    def is_enabled(self) -> bool:
        return self._config.enabled

    def authorization_url(self) -> str:
        params = {
            "client_id": self._config.client_id,
            "redirect_uri": self._config.redirect_url,
            "response_type": "code",
            "scope": " ".join(self._config.scopes),
            "state": self._config.state,
        }
        return f"{self.auth_url}?{urlencode(params)}"

    # =========================================================================
    # Login
    # =========================================================================

    async def user_details(self, code: str) -> Tuple[Account, Token]:
        token = await self._exchange_code(code)
        if not token.refresh_token:
            logger.warning("Token exchange succeeded without a refresh token")
            raise AuthenticationError("identity provider did not issue a refresh token")

        identity = await self._fetch_identity(token.access_token)

        account = Account(
            id=identity.id,
            name=identity.name,
            credentials=Credentials(identity=identity.email),
            metadata={"oauth_provider": self.name},
            status=AccountStatus.ENABLED,
        )
        return account, token

    async def _exchange_code(self, code: str) -> Token:
        """Run the authorization-code grant against the token endpoint."""
        try:
            async with AsyncOAuth2Client(
                client_id=self._config.client_id,
                client_secret=self._config.client_secret,
                token_endpoint=self.token_url,
                redirect_uri=self._config.redirect_url,
                transport=self._transport,
                timeout=self._timeout,
            ) as client:
                client.register_compliance_hook("access_token_response", self._check_token_response)
                data = await client.fetch_token(
                    url=self.token_url,
                    grant_type="authorization_code",
                    code=code,
                )
            return Token.from_response(dict(data))
        except OAuthError as e:
            logger.warning(f"Token exchange rejected: {e.error}")
            raise AuthenticationError(f"error: {e.error}, reason: {e.description}") from e
        except httpx.TransportError as e:
            logger.error(f"Token exchange request failed: {e}")
            raise transport_error(e) from e
        except ValueError as e:
            raise DecodingError("error decoding token exchange response") from e

    @staticmethod
    def _check_token_response(response: httpx.Response) -> httpx.Response:
        if response.status_code != httpx.codes.OK:
            logger.warning(f"Token exchange failed with status {response.status_code}")
            raise status_error(response, "token exchange failed")
        return response

    async def _fetch_identity(self, access_token: str) -> ExternalIdentity:
        """Look up the identity behind an access token."""
        try:
            async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
                response = await client.get(
                    self.userinfo_url,
                    params={"access_token": access_token},
                )
        except httpx.TransportError as e:
            logger.error(f"Userinfo request failed: {e}")
            raise transport_error(e) from e

        if response.status_code != httpx.codes.OK:
            logger.warning(f"Userinfo request failed with status {response.status_code}")
            raise status_error(response, "userinfo request failed")

        try:
            identity = ExternalIdentity.model_validate(response.json())
        except ValueError as e:
            raise DecodingError("error decoding userinfo response") from e

        if not identity.complete:
            logger.warning("Identity provider returned an incomplete identity")
            raise AuthenticationError("identity is missing subject, name or email")
        return identity

    # =========================================================================
    # Token Management
    # =========================================================================

    async def validate(self, token: str) -> None:
        try:
            async with self._admin_client() as client:
                response = await client.post(INTROSPECT_ENDPOINT, data={"token": token})
        except httpx.TransportError as e:
            logger.error(f"Token introspection request failed: {e}")
            raise transport_error(e) from e

        if not response.is_success:
            raise decode_error(response)

        active = self._parse_active(response)
        if not active:
            raise AuthenticationError("token is not active")

    @staticmethod
    def _parse_active(response: httpx.Response) -> bool:
        try:
            active = response.json()["active"]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodingError("error decoding introspection response") from e
        if not isinstance(active, bool):
            raise DecodingError("introspection response has a non-boolean 'active' field")
        return active

    async def refresh(self, refresh_token: str) -> Token:
        # Hydra requires the original scope list on refresh, so this does not
        # go through the generic OAuth2 client refresh.
        body = urlencode(
            {
                "grant_type": "refresh_token",
                "refresh_token": refresh_token,
                "scope": " ".join(self._config.scopes),
            },
            quote_via=quote,
        )
        headers = {
            "Content-Type": "application/x-www-form-urlencoded",
            "Authorization": f"Basic {basic_auth(self._config.client_id, self._config.client_secret)}",
        }

        try:
            response = await asyncio.wait_for(
                self._post_refresh(body, headers), timeout=DEFAULT_TIMEOUT
            )
        except asyncio.TimeoutError as e:
            logger.error("Token refresh timed out")
            raise TransportError("identity provider refresh timed out") from e
        except httpx.TransportError as e:
            logger.error(f"Token refresh request failed: {e}")
            raise transport_error(e) from e

        if response.status_code != httpx.codes.OK:
            logger.warning(f"Token refresh failed with status {response.status_code}")
            raise status_error(response, "token refresh failed")

        return self._decode_token(response)

    async def _post_refresh(self, body: str, headers: dict) -> httpx.Response:
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            return await client.post(self.token_url, content=body, headers=headers)

    @staticmethod
    def _decode_token(response: httpx.Response) -> Token:
        try:
            data: Any = response.json()
            if not isinstance(data, dict):
                raise ValueError("token response is not an object")
            return Token.from_response(data)
        except ValueError as e:
            raise DecodingError("error decoding token response") from e

    def _admin_client(self) -> httpx.AsyncClient:
        """Client for the provider admin API, authenticated with the API key."""
        return httpx.AsyncClient(
            base_url=self._config.base_url,
            headers={"Authorization": f"Bearer {self._config.api_key}"},
            transport=self._transport,
            timeout=self._timeout,
        )


# Global provider instance
_provider: Optional[KratosProvider] = None


def get_oauth_provider() -> KratosProvider:
    """Get or create the global Kratos provider instance."""
    global _provider
    if _provider is None:
        _provider = KratosProvider(ProviderConfig.from_env())
        if not _provider.is_enabled():
            logger.info("Kratos OAuth provider disabled - no client credentials configured")
    return _provider
