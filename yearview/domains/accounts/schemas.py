"""Linked account domain schemas."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, StrictStr


class Provider(str, Enum):
    """Calendar providers a user can link."""

    GOOGLE = "google"
    MICROSOFT = "microsoft"


class LinkedAccount(BaseModel):
    """One OAuth-authorized provider identity belonging to a user."""

    model_config = ConfigDict(populate_by_name=True)

    provider: Provider
    account_id: str = Field(..., alias="accountId", min_length=1)
    email: Optional[str] = None
    access_token: Optional[str] = Field(None, alias="accessToken")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    access_token_expires_at: Optional[datetime] = Field(
        None, alias="accessTokenExpiresAt"
    )

    @property
    def key(self) -> tuple[Provider, str]:
        """Identity of the account, stable across token refreshes."""
        return (self.provider, self.account_id)

    def expires_within(self, leeway: timedelta) -> bool:
        """Whether the access token expires before now + leeway."""
        if self.access_token_expires_at is None:
            return False
        expires_at = self.access_token_expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= datetime.now(timezone.utc) + leeway

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> "LinkedAccount":
        """Build an account from a `linked_accounts` row."""
        return cls(
            provider=row["provider"],
            account_id=row["account_id"],
            email=row.get("email"),
            access_token=row.get("access_token"),
            refresh_token=row.get("refresh_token"),
            access_token_expires_at=row.get("expires_at"),
        )

    def to_row(self) -> Dict[str, Any]:
        """Serialize to `linked_accounts` columns (user_id excluded)."""
        return {
            "provider": self.provider.value,
            "account_id": self.account_id,
            "email": self.email,
            "access_token": self.access_token,
            "refresh_token": self.refresh_token,
            "expires_at": (
                self.access_token_expires_at.isoformat()
                if self.access_token_expires_at
                else None
            ),
        }


class RefreshedToken(BaseModel):
    """Result of exchanging a refresh token."""

    access_token: str
    expires_at: datetime
    # Only set when the provider rotated the refresh token
    refresh_token: Optional[str] = None


class SessionContext(BaseModel):
    """Credential context of the signed-in user for one request."""

    user_id: str
    accounts: List[LinkedAccount] = Field(default_factory=list)

    def session_accounts(self, provider: Provider) -> List[LinkedAccount]:
        return [account for account in self.accounts if account.provider == provider]


class DisconnectRequest(BaseModel):
    account_id: StrictStr = Field(..., alias="accountId", min_length=1)


class DisconnectResponse(BaseModel):
    ok: bool = True
    deleted: int
