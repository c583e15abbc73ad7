"""Repository for linked account database operations."""

from __future__ import annotations

from typing import Any, Dict, List

from postgrest import APIError

from yearview.db.session import get_service_client
from yearview.domains.accounts.schemas import LinkedAccount, Provider
from yearview.utils.errors import SupabaseStorageError

TABLE = "linked_accounts"


def _without_none(data: Dict[str, Any]) -> Dict[str, Any]:
    """Remove None values from dict."""
    return {key: value for key, value in data.items() if value is not None}


class LinkedAccountRepository:
    """Repository for `linked_accounts` rows. Every query is scoped to a user."""

    def __init__(self, client: Any | None = None) -> None:
        self._client = client

    @property
    def client(self) -> Any:
        if self._client is None:
            self._client = get_service_client()
        return self._client

    def list_accounts(self, user_id: str, provider: Provider) -> List[Dict[str, Any]]:
        """Get all linked accounts of one provider for a user."""
        try:
            result = (
                self.client.table(TABLE)
                .select("*")
                .eq("user_id", user_id)
                .eq("provider", provider.value)
                .execute()
            )
        except APIError as exc:
            raise SupabaseStorageError(exc.message) from exc
        return result.data or []

    def upsert_account(self, user_id: str, account: LinkedAccount) -> Dict[str, Any]:
        """Insert or update a linked account for a user."""
        row = account.to_row()
        payload = _without_none({"user_id": user_id, **row})
        # Keep the stored refresh token when the provider did not send one
        if row["refresh_token"] is None:
            payload.pop("refresh_token", None)
        try:
            result = (
                self.client.table(TABLE)
                .upsert(payload, on_conflict="user_id,provider,account_id")
                .execute()
            )
        except APIError as exc:
            raise SupabaseStorageError(exc.message) from exc
        if not result.data:
            raise SupabaseStorageError(
                "Supabase did not return inserted linked account data."
            )
        return result.data[0]

    def update_tokens(
        self,
        user_id: str,
        provider: Provider,
        account_id: str,
        *,
        access_token: str,
        refresh_token: str | None,
        expires_at: str | None,
    ) -> Dict[str, Any] | None:
        """Update the tokens of one account. Returns None when no row matched."""
        payload = _without_none(
            {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "expires_at": expires_at,
            }
        )
        try:
            result = (
                self.client.table(TABLE)
                .update(payload)
                .eq("user_id", user_id)
                .eq("provider", provider.value)
                .eq("account_id", account_id)
                .execute()
            )
        except APIError as exc:
            raise SupabaseStorageError(exc.message) from exc
        if not result.data:
            return None
        return result.data[0]

    def delete_accounts(self, user_id: str, account_id: str) -> int:
        """Delete every row of `account_id` owned by `user_id`. Returns the count."""
        try:
            result = (
                self.client.table(TABLE)
                .delete()
                .eq("user_id", user_id)
                .eq("account_id", account_id)
                .execute()
            )
        except APIError as exc:
            raise SupabaseStorageError(exc.message) from exc
        return len(result.data or [])
