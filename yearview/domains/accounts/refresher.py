"""OAuth access-token refresh for linked Google and Microsoft accounts."""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Tuple

import httpx
from pydantic import BaseModel, ConfigDict
from pydantic import ValidationError as SchemaError

from yearview.core.config import Settings, get_settings
from yearview.domains.accounts.schemas import LinkedAccount, Provider, RefreshedToken
from yearview.utils.errors import AuthError

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


def _safe_json(response: httpx.Response) -> Any:
    """Safely parse JSON from response."""
    try:
        return response.json()
    except ValueError:
        return None


class TokenResponse(BaseModel):
    """Successful refresh-token grant response."""

    model_config = ConfigDict(extra="ignore")

    access_token: str
    expires_in: int | None = None
    refresh_token: str | None = None


class TokenRefresher:
    """Exchanges refresh tokens at the provider token endpoints."""

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        settings: Settings | None = None,
    ) -> None:
        self.http_client = http_client
        self.settings = settings or get_settings()
        self._locks: Dict[Tuple[Provider, str], asyncio.Lock] = {}
        self._refreshed: Dict[Tuple[Provider, str], LinkedAccount] = {}

    def _token_request(self, provider: Provider, refresh_token: str) -> Tuple[str, Dict[str, str]]:
        if provider == Provider.GOOGLE:
            endpoint = self.settings.google_token_endpoint
            client_id = self.settings.google_client_id
            client_secret = self.settings.google_client_secret
        else:
            endpoint = self.settings.microsoft_token_endpoint_resolved
            client_id = self.settings.microsoft_client_id
            client_secret = self.settings.microsoft_client_secret
        payload = {
            "client_id": client_id or "",
            "client_secret": client_secret or "",
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        return endpoint, payload

    async def refresh(self, provider: Provider, refresh_token: str | None) -> RefreshedToken:
        """
        Exchange a refresh token for a new access token.

        Args:
            provider: Provider that issued the refresh token
            refresh_token: The refresh token to exchange

        Returns:
            The new access token and its expiry; `refresh_token` is set only
            when the provider rotated it

        Raises:
            AuthError: If the refresh token is absent or the endpoint fails
        """
        if not refresh_token:
            raise AuthError(f"{provider.value} account has no refresh token.")

        endpoint, payload = self._token_request(provider, refresh_token)
        try:
            response = await self.http_client.post(
                endpoint, data=payload, headers={"Accept": "application/json"}
            )
        except httpx.HTTPError as exc:
            raise AuthError(f"{provider.value} token refresh failed: {exc}") from exc

        data = _safe_json(response)
        if not response.is_success:
            message = None
            if isinstance(data, dict):
                message = data.get("error_description") or data.get("error")
            raise AuthError(
                f"{provider.value} token refresh failed with status "
                f"{response.status_code}: {message or 'unknown error'}"
            )
        if not isinstance(data, dict) or not data.get("access_token"):
            raise AuthError(
                f"{provider.value} token refresh response did not include an access token."
            )

        try:
            token = TokenResponse.model_validate(data)
        except SchemaError as exc:
            raise AuthError(
                f"{provider.value} token refresh response was malformed."
            ) from exc

        expires_in = token.expires_in or DEFAULT_EXPIRES_IN
        return RefreshedToken(
            access_token=token.access_token,
            expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in),
            refresh_token=token.refresh_token,
        )

    async def refresh_account(
        self, account: LinkedAccount, stale_token: str | None
    ) -> LinkedAccount:
        """
        Refresh an account's access token, serialized per account.

        Callers holding the same stale token share one refresh: a caller that
        acquires the lock after another refreshed the account gets that result.
        """
        lock = self._locks.setdefault(account.key, asyncio.Lock())
        async with lock:
            latest = self._refreshed.get(account.key)
            if latest is not None and latest.access_token != stale_token:
                return latest

            token = await self.refresh(account.provider, account.refresh_token)
            logger.info(
                "Refreshed access token provider=%s account_id=%s",
                account.provider.value,
                account.account_id,
            )
            updated = account.model_copy(
                update={
                    "access_token": token.access_token,
                    "access_token_expires_at": token.expires_at,
                    # Providers may omit refresh_token on refresh responses
                    "refresh_token": token.refresh_token or account.refresh_token,
                }
            )
            self._refreshed[account.key] = updated
            return updated
