"""Account models shared by the identity integration and the repositories."""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class AccountStatus(str, Enum):
    """Account lifecycle status."""

    ENABLED = "enabled"
    DISABLED = "disabled"


class AccountRole(str, Enum):
    """Account role."""

    USER = "user"
    ADMIN = "admin"


class Credentials(BaseModel):
    """Login credentials; identity is the account's email address."""

    identity: str
    secret: Optional[str] = Field(None, repr=False)


class Account(BaseModel):
    """Internal account record."""

    id: str = ""
    name: str = ""
    credentials: Credentials
    metadata: Dict[str, Any] = Field(default_factory=dict)
    role: AccountRole = AccountRole.USER
    status: AccountStatus = AccountStatus.ENABLED
    created_at: datetime = Field(default_factory=_utcnow)
    updated_at: datetime = Field(default_factory=_utcnow)

    @property
    def identity(self) -> str:
        return self.credentials.identity
