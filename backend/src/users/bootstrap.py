"""Bootstrap the platform administrator on startup."""

import logging
import os
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, Pattern

from apis.shared.errors import AuthorizationError
from apis.shared.rbac.authorization import (
    ADMINISTRATOR_RELATION,
    PLATFORM_OBJECT,
    PLATFORM_TYPE,
    USER_TYPE,
    AuthorizationService,
)

from .models import Account, AccountRole, AccountStatus, Credentials
from .repository import AccountConflictError, AccountRepository

logger = logging.getLogger(__name__)

ADMIN_NAME = "admin-client"
DEFAULT_PASSWORD_REGEX = "^.{8,}$"


class AdminBootstrapError(Exception):
    """The administrator could not be established; the service must not start."""


class CredentialIssuer(ABC):
    """Issues login credentials through the normal login path."""

    @abstractmethod
    async def issue_token(self, identity: str, secret: str, scope: str) -> Any:
        """Log in with identity and secret, validating the secret against the password policy."""
        pass


@dataclass(frozen=True)
class AdminConfig:
    """Administrator identity and the deployment password policy."""

    email: str = "admin@example.com"
    password: str = field(default="12345678", repr=False)
    password_regex: Pattern[str] = re.compile(DEFAULT_PASSWORD_REGEX)

    @classmethod
    def from_env(cls) -> "AdminConfig":
        """
        Load from USERS_ADMIN_EMAIL, USERS_ADMIN_PASSWORD and USERS_PASS_REGEX.

        Raises:
            ValueError: If USERS_PASS_REGEX is not a valid regular expression
        """
        regex_text = os.getenv("USERS_PASS_REGEX", DEFAULT_PASSWORD_REGEX)
        try:
            password_regex = re.compile(regex_text)
        except re.error as e:
            raise ValueError(f"Invalid password validation rules {regex_text}") from e

        return cls(
            email=os.getenv("USERS_ADMIN_EMAIL", "admin@example.com"),
            password=os.getenv("USERS_ADMIN_PASSWORD", "12345678"),
            password_regex=password_regex,
        )


class BootstrapState(str, Enum):
    CHECK = "check"
    CREATE = "create"
    AUTHORIZED_CHECK = "authorized_check"
    GRANT = "grant"
    DONE = "done"
    FATAL = "fatal"


class AdminBootstrap:
    """
    Makes sure the administrator account exists and holds the platform
    administrator relation.

    CHECK -> (found) AUTHORIZED_CHECK | (missing) CREATE -> AUTHORIZED_CHECK
    AUTHORIZED_CHECK -> (granted) DONE | GRANT -> (added) DONE | FATAL

    Against an already bootstrapped deployment a run performs one account
    lookup and one authorization check, and writes nothing.
    """

    def __init__(
        self,
        config: AdminConfig,
        repository: AccountRepository,
        issuer: CredentialIssuer,
        authz: AuthorizationService,
    ):
        self._config = config
        self._repository = repository
        self._issuer = issuer
        self._authz = authz

    async def run(self) -> str:
        """
        Run the bootstrap to completion.

        Returns:
            The administrator account id

        Raises:
            AdminBootstrapError: If any step fails or the grant is not added
        """
        state = BootstrapState.CHECK
        account_id = ""
        failure: Optional[Exception] = None

        while True:
            logger.debug(f"Admin bootstrap state: {state.value}")

            if state == BootstrapState.DONE:
                logger.info(f"Administrator {self._config.email} ready: {account_id}")
                return account_id

            if state == BootstrapState.FATAL:
                raise AdminBootstrapError(
                    f"Failed to bootstrap administrator {self._config.email}: {failure}"
                ) from failure

            try:
                if state == BootstrapState.CHECK:
                    account = await self._repository.retrieve_by_identity(self._config.email)
                    if account is None:
                        state = BootstrapState.CREATE
                    else:
                        account_id = account.id
                        state = BootstrapState.AUTHORIZED_CHECK

                elif state == BootstrapState.CREATE:
                    account_id = await self._create_admin()
                    state = BootstrapState.AUTHORIZED_CHECK

                elif state == BootstrapState.AUTHORIZED_CHECK:
                    state = (
                        BootstrapState.DONE
                        if await self._is_admin(account_id)
                        else BootstrapState.GRANT
                    )

                elif state == BootstrapState.GRANT:
                    await self._grant_admin(account_id)
                    state = BootstrapState.DONE

            except Exception as e:
                logger.error(f"Admin bootstrap failed in state {state.value}: {e}", exc_info=True)
                failure = e
                state = BootstrapState.FATAL

    async def _create_admin(self) -> str:
        if not self._config.password_regex.search(self._config.password):
            raise ValueError("Administrator password does not satisfy the password policy")

        admin = Account(
            id=str(uuid.uuid4()),
            name=ADMIN_NAME,
            credentials=Credentials(
                identity=self._config.email,
                secret=self._config.password,
            ),
            metadata={"role": "admin"},
            role=AccountRole.ADMIN,
            status=AccountStatus.ENABLED,
        )

        try:
            account_id = await self._repository.save(admin)
        except AccountConflictError:
            # Another replica created it first
            existing = await self._repository.retrieve_by_identity(self._config.email)
            if existing is None:
                raise
            logger.info(f"Administrator {self._config.email} created concurrently, reusing it")
            return existing.id

        await self._issuer.issue_token(self._config.email, self._config.password, "")
        logger.info(f"Created administrator account: {account_id}")
        return account_id

    async def _is_admin(self, account_id: str) -> bool:
        try:
            return await self._authz.authorize(
                USER_TYPE,
                account_id,
                ADMINISTRATOR_RELATION,
                PLATFORM_OBJECT,
                PLATFORM_TYPE,
            )
        except Exception as e:
            logger.warning(f"Administrator authorization check failed, granting: {e}")
            return False

    async def _grant_admin(self, account_id: str) -> None:
        added = await self._authz.add_policy(
            USER_TYPE,
            account_id,
            ADMINISTRATOR_RELATION,
            PLATFORM_OBJECT,
            PLATFORM_TYPE,
        )
        if not added:
            raise AuthorizationError("administrator policy was not added")
        logger.info(f"Granted platform administrator relation to {account_id}")


async def ensure_admin(
    repository: AccountRepository,
    issuer: CredentialIssuer,
    authz: AuthorizationService,
    config: Optional[AdminConfig] = None,
) -> str:
    """
    Ensure the administrator exists and is authorized.

    Convenience wrapper for AdminBootstrap that loads configuration from the
    environment when none is given.
    """
    return await AdminBootstrap(config or AdminConfig.from_env(), repository, issuer, authz).run()
