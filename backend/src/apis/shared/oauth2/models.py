"""Token and identity models exchanged with the identity provider."""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Token(BaseModel):
    """OAuth2 token set returned by the provider's token endpoint."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1, description="Access token")
    refresh_token: str = Field(default="", description="Refresh token (empty if not issued)")
    token_type: str = Field(default="Bearer", description="Token type")
    expiry: Optional[datetime] = Field(None, description="Access token expiration time (UTC)")

    @classmethod
    def from_response(cls, data: Dict[str, Any]) -> "Token":
        """
        Build a Token from a token endpoint JSON body.

        Accepts either ``expires_at`` (unix seconds, as set by Authlib) or
        ``expires_in`` (seconds from now, RFC 6749).

        Raises:
            pydantic.ValidationError: If the body has no usable access token
        """
        expiry = None
        if data.get("expires_at"):
            expiry = datetime.fromtimestamp(int(data["expires_at"]), tz=timezone.utc)
        elif data.get("expires_in"):
            expiry = datetime.now(timezone.utc) + timedelta(seconds=int(data["expires_in"]))

        return cls.model_validate({
            "access_token": data.get("access_token"),
            "refresh_token": data.get("refresh_token") or "",
            "token_type": data.get("token_type") or "Bearer",
            "expiry": expiry,
        })


class ExternalIdentity(BaseModel):
    """Identity attributes reported by the provider's userinfo endpoint."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(default="", alias="sub")
    name: str = Field(default="", alias="preferred_username")
    email: str = Field(default="")

    @property
    def complete(self) -> bool:
        """All of subject, display name and email are present."""
        return bool(self.id and self.name and self.email)

    @field_validator("id", "name", "email", mode="before")
    @classmethod
    def null_as_empty(cls, v: Any) -> Any:
        """A JSON null attribute counts as absent, not as undecodable."""
        return "" if v is None else v
