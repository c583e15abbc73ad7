"""Credential store merging durable and session-scoped linked accounts."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Dict, List

from yearview.domains.accounts.repository import LinkedAccountRepository
from yearview.domains.accounts.schemas import LinkedAccount, Provider, SessionContext
from yearview.utils.errors import SupabaseStorageError

logger = logging.getLogger(__name__)

def _expiry(account: LinkedAccount) -> datetime:
    expires_at = account.access_token_expires_at
    if expires_at is None:
        return datetime.min.replace(tzinfo=timezone.utc)
    if expires_at.tzinfo is None:
        return expires_at.replace(tzinfo=timezone.utc)
    return expires_at


def _merge(durable: LinkedAccount, current: LinkedAccount) -> LinkedAccount:
    """Overlay a session account on its durable row, keeping the fresher token."""
    merged = durable.model_copy(
        update={
            key: value
            for key, value in current.model_dump(exclude={"provider", "account_id"}).items()
            if value is not None
        }
    )
    if durable.access_token and _expiry(durable) > _expiry(current):
        merged = merged.model_copy(
            update={
                "access_token": durable.access_token,
                "access_token_expires_at": durable.access_token_expires_at,
                "refresh_token": durable.refresh_token or current.refresh_token,
            }
        )
    return merged


class CredentialStore:
    """Per-user, per-provider linked accounts with their OAuth tokens."""

    def __init__(self, repository: LinkedAccountRepository | None = None) -> None:
        self.repository = repository or LinkedAccountRepository()

    def list_linked_accounts(
        self, session: SessionContext, provider: Provider
    ) -> List[LinkedAccount]:
        """
        Merge the durable accounts of a user with the session-scoped ones.

        Accounts are de-duplicated by (provider, account_id). Session data wins
        for profile fields, with gaps filled from the durable row. Tokens come
        from whichever side expires later: refreshes are persisted but the
        session token is not reissued, so the session copy may be stale.

        Args:
            session: Credential context of the signed-in user
            provider: Provider to list accounts for

        Returns:
            Linked accounts, durable order first, then session-only accounts
        """
        try:
            rows = self.repository.list_accounts(session.user_id, provider)
        except SupabaseStorageError as exc:
            logger.warning(
                "Durable account lookup failed user_id=%s provider=%s: %s",
                session.user_id,
                provider.value,
                exc,
            )
            rows = []

        merged: Dict[str, LinkedAccount] = {}
        for row in rows:
            account = LinkedAccount.from_row(row)
            merged[account.account_id] = account

        for account in session.session_accounts(provider):
            durable = merged.get(account.account_id)
            if durable is None:
                merged[account.account_id] = account
                continue
            merged[account.account_id] = _merge(durable, account)
        return list(merged.values())

    def list_all_linked_accounts(self, session: SessionContext) -> List[LinkedAccount]:
        """Linked accounts of every provider, Google first."""
        accounts: List[LinkedAccount] = []
        for provider in Provider:
            accounts.extend(self.list_linked_accounts(session, provider))
        return accounts

    def find_account(self, session: SessionContext, account_id: str) -> LinkedAccount | None:
        """Locate a linked account of the user by its provider account id."""
        for account in self.list_all_linked_accounts(session):
            if account.account_id == account_id:
                return account
        return None

    def link_account(self, user_id: str, account: LinkedAccount) -> LinkedAccount:
        """Persist an account after a successful sign-in."""
        row = self.repository.upsert_account(user_id, account)
        return LinkedAccount.from_row(row)

    def save_tokens(self, user_id: str, account: LinkedAccount) -> bool:
        """
        Persist refreshed tokens of an account.

        Returns False when the account exists only in the session, which is
        not an error: the session layer persists it once linking completes.
        """
        if not account.access_token:
            return False
        updated = self.repository.update_tokens(
            user_id,
            account.provider,
            account.account_id,
            access_token=account.access_token,
            refresh_token=account.refresh_token,
            expires_at=(
                account.access_token_expires_at.isoformat()
                if account.access_token_expires_at
                else None
            ),
        )
        return updated is not None

    def disconnect_account(self, user_id: str, account_id: str) -> int:
        """Remove the durable rows of `account_id` owned by `user_id`."""
        deleted = self.repository.delete_accounts(user_id, account_id)
        logger.info(
            "Disconnected account user_id=%s account_id=%s deleted=%s",
            user_id,
            account_id,
            deleted,
        )
        return deleted
