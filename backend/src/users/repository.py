"""Account repositories."""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
import boto3
from botocore.exceptions import ClientError
import logging
import os

from .models import Account, AccountRole, AccountStatus, Credentials

logger = logging.getLogger(__name__)


class AccountConflictError(Exception):
    """An account with the same identity already exists."""

    def __init__(self, identity: str):
        super().__init__(f"Account with identity {identity} already exists")
        self.identity = identity


class AccountRepository(ABC):
    """Storage contract for accounts."""

    @abstractmethod
    async def retrieve_by_identity(self, identity: str) -> Optional[Account]:
        """Get an account by its credentials identity, or None if absent."""
        pass

    @abstractmethod
    async def save(self, account: Account) -> str:
        """
        Persist a new account.

        Returns:
            The stored account id

        Raises:
            AccountConflictError: If the identity is already taken
        """
        pass


class DynamoDBAccountRepository(AccountRepository):
    """DynamoDB repository for accounts.

    Table Schema:
        PK: ACCOUNT#<account_id>    SK: PROFILE
        PK: IDENTITY#<identity>     SK: IDENTITY   (uniqueness marker, holds accountId)

    Both items are written in one transaction so an identity can only ever
    belong to a single account.
    """

    def __init__(self, table_name: str = None):
        """Initialize repository with table name from env or parameter."""
        if table_name is None:
            table_name = os.getenv("DYNAMODB_ACCOUNTS_TABLE_NAME", "")

        self._table_name = table_name
        self._enabled = bool(table_name)

        if self._enabled:
            self.dynamodb = boto3.resource('dynamodb')
            self.table = self.dynamodb.Table(table_name)
            logger.info(f"DynamoDBAccountRepository initialized with table: {table_name}")
        else:
            self.dynamodb = None
            self.table = None
            logger.info("DynamoDBAccountRepository disabled - no table configured")

    @property
    def enabled(self) -> bool:
        """Check if the repository is enabled."""
        return self._enabled

    async def retrieve_by_identity(self, identity: str) -> Optional[Account]:
        if not self._enabled:
            return None

        try:
            marker = self.table.get_item(
                Key={
                    "PK": f"IDENTITY#{identity.lower()}",
                    "SK": "IDENTITY"
                }
            )
            if 'Item' not in marker:
                return None

            response = self.table.get_item(
                Key={
                    "PK": f"ACCOUNT#{marker['Item']['accountId']}",
                    "SK": "PROFILE"
                }
            )
            if 'Item' not in response:
                logger.warning(f"Identity marker for {identity} points to a missing account")
                return None

            return self._item_to_account(response['Item'])
        except ClientError as e:
            logger.error(f"Error getting account by identity {identity}: {e}")
            raise

    async def save(self, account: Account) -> str:
        if not self._enabled:
            raise RuntimeError("DynamoDBAccountRepository is not enabled - no table configured")

        identity = account.identity.lower()
        try:
            self.dynamodb.meta.client.transact_write_items(
                TransactItems=[
                    {
                        "Put": {
                            "TableName": self._table_name,
                            "Item": {
                                "PK": f"IDENTITY#{identity}",
                                "SK": "IDENTITY",
                                "accountId": account.id,
                            },
                            "ConditionExpression": "attribute_not_exists(PK)",
                        }
                    },
                    {
                        "Put": {
                            "TableName": self._table_name,
                            "Item": self._account_to_item(account),
                            "ConditionExpression": "attribute_not_exists(PK)",
                        }
                    },
                ]
            )
        except ClientError as e:
            if self._is_condition_failure(e):
                raise AccountConflictError(account.identity) from e
            logger.error(f"Error creating account: {e}")
            raise

        logger.info(f"Created account: {account.id} ({account.identity})")
        return account.id

    # ========== Helper Methods ==========

    @staticmethod
    def _is_condition_failure(error: ClientError) -> bool:
        """Whether a cancelled transaction failed on an existence condition.

        Throttling and transaction conflicts also cancel the transaction, but
        say nothing about the identity being taken.
        """
        if error.response.get("Error", {}).get("Code") != "TransactionCanceledException":
            return False
        reasons = error.response.get("CancellationReasons") or []
        return any(r.get("Code") == "ConditionalCheckFailed" for r in reasons)

    def _account_to_item(self, account: Account) -> dict:
        """Convert Account to DynamoDB item. Secrets are never stored."""
        return {
            "PK": f"ACCOUNT#{account.id}",
            "SK": "PROFILE",
            "accountId": account.id,
            "name": account.name,
            "identity": account.identity.lower(),
            "metadata": account.metadata,
            "role": account.role.value,
            "status": account.status.value,
            "createdAt": account.created_at.isoformat(),
            "updatedAt": account.updated_at.isoformat(),
        }

    def _item_to_account(self, item: dict) -> Account:
        """Convert DynamoDB item to Account."""
        return Account(
            id=item["accountId"],
            name=item.get("name", ""),
            credentials=Credentials(identity=item["identity"]),
            metadata=item.get("metadata", {}),
            role=AccountRole(item.get("role", "user")),
            status=AccountStatus(item.get("status", "enabled")),
            created_at=datetime.fromisoformat(item["createdAt"]),
            updated_at=datetime.fromisoformat(item.get("updatedAt", item["createdAt"])),
        )
