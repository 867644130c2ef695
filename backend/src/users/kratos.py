"""Account repository backed by the Kratos admin identity API."""

import logging
import os
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from apis.shared.errors import DecodingError
from apis.shared.oauth2.errors import status_error, transport_error
from apis.shared.oauth2.kratos import DEFAULT_TIMEOUT
from apis.shared.oauth2.provider import ProviderConfig
from apis.shared.oauth2.transport import RetryTransport

from .models import Account, AccountRole, AccountStatus, Credentials
from .repository import AccountConflictError, AccountRepository

logger = logging.getLogger(__name__)

IDENTITIES_ENDPOINT = "/admin/identities"


class KratosAccountRepository(AccountRepository):
    """
    Stores accounts as Kratos identities.

    Every request goes through a RetryTransport, so transient provider
    failures during startup are retried with backoff. Kratos enforces unique
    credential identifiers and answers 409 on duplicates.
    """

    def __init__(
        self,
        base_url: str,
        api_key: str = "",
        schema_id: str = "",
        retry_count: int = 10,
        retry_wait_max: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._schema_id = schema_id
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers={"Authorization": f"Bearer {api_key}"},
            transport=RetryTransport(transport, retry_count, retry_wait_max),
            timeout=httpx.Timeout(DEFAULT_TIMEOUT),
        )

    @classmethod
    def from_config(
        cls,
        config: ProviderConfig,
        schema_id: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> "KratosAccountRepository":
        """Build a repository sharing the provider's URL, API key and retry policy."""
        return cls(
            base_url=config.base_url,
            api_key=config.api_key,
            schema_id=schema_id if schema_id is not None else os.getenv("KRATOS_SCHEMA_ID", ""),
            retry_count=config.retry_count,
            retry_wait_max=config.retry_wait_max,
            transport=transport,
        )

    async def retrieve_by_identity(self, identity: str) -> Optional[Account]:
        try:
            response = await self._client.get(
                IDENTITIES_ENDPOINT,
                params={"credentials_identifier": identity},
            )
        except httpx.TransportError as e:
            logger.error(f"Error getting identity {identity}: {e}")
            raise transport_error(e) from e

        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        if not response.is_success:
            raise status_error(response, "identity lookup failed")

        try:
            identities = response.json()
        except ValueError as e:
            raise DecodingError("error decoding identities response") from e
        if not isinstance(identities, list):
            raise DecodingError("identities response is not a list")
        if not identities:
            return None

        return self._identity_to_account(identities[0])

    async def save(self, account: Account) -> str:
        body: Dict[str, Any] = {
            "traits": {
                "email": account.identity,
                "username": account.name,
            },
            "metadata_public": {**account.metadata, "role": account.role.value},
            "state": "active" if account.status == AccountStatus.ENABLED else "inactive",
        }
        if self._schema_id:
            body["schema_id"] = self._schema_id
        if account.credentials.secret:
            body["credentials"] = {"password": {"config": {"password": account.credentials.secret}}}

        try:
            response = await self._client.post(IDENTITIES_ENDPOINT, json=body)
        except httpx.TransportError as e:
            logger.error(f"Error creating identity {account.identity}: {e}")
            raise transport_error(e) from e

        if response.status_code == httpx.codes.CONFLICT:
            raise AccountConflictError(account.identity)
        if not response.is_success:
            raise status_error(response, "identity creation failed")

        try:
            account_id = response.json()["id"]
        except (ValueError, KeyError, TypeError) as e:
            raise DecodingError("error decoding created identity") from e

        logger.info(f"Created identity: {account_id} ({account.identity})")
        return account_id

    async def aclose(self) -> None:
        await self._client.aclose()

    def _identity_to_account(self, identity: Dict[str, Any]) -> Account:
        """Convert a Kratos identity to an Account."""
        try:
            traits = identity.get("traits") or {}
            metadata = dict(identity.get("metadata_public") or {})
            created_at = identity.get("created_at")
            updated_at = identity.get("updated_at") or created_at
            return Account(
                id=identity["id"],
                name=traits.get("username", ""),
                credentials=Credentials(identity=traits["email"]),
                metadata=metadata,
                role=AccountRole(metadata.get("role", AccountRole.USER.value)),
                status=AccountStatus.ENABLED if identity.get("state", "active") == "active" else AccountStatus.DISABLED,
                created_at=_parse_time(created_at),
                updated_at=_parse_time(updated_at),
            )
        except (KeyError, TypeError, AttributeError, ValueError) as e:
            raise DecodingError("error decoding identity") from e


def _parse_time(value: Optional[str]) -> datetime:
    if not value:
        return datetime.now(timezone.utc)
    return datetime.fromisoformat(value.replace("Z", "+00:00"))
