"""Pytest fixtures for yearview tests."""

import os
from typing import Any, Callable, Dict, List, Tuple, Union

import httpx
import pytest

# Set required env vars for tests
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-key")
os.environ.setdefault("SESSION_SECRET", "test-session-secret")
os.environ.setdefault("GOOGLE_CLIENT_ID", "google-client")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "google-secret")
os.environ.setdefault("MICROSOFT_CLIENT_ID", "microsoft-client")
os.environ.setdefault("MICROSOFT_CLIENT_SECRET", "microsoft-secret")
os.environ.setdefault("EVENT_FETCH_DELAY_SECONDS", "0")
os.environ.setdefault("RATE_LIMIT_BASE_DELAY_SECONDS", "0")

from yearview.core.config import Settings
from yearview.domains.accounts.schemas import LinkedAccount, Provider, SessionContext
from yearview.domains.accounts.store import CredentialStore

GOOGLE_API = "https://www.googleapis.com/calendar/v3"
GRAPH_API = "https://graph.microsoft.com/v1.0"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
MICROSOFT_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"

Reply = Union[httpx.Response, Exception, Callable[[httpx.Request], httpx.Response]]


def json_response(status_code: int, body: Any = None) -> httpx.Response:
    """Build a JSON response, or an empty one when `body` is None."""
    if body is None:
        return httpx.Response(status_code)
    return httpx.Response(status_code, json=body)


class FakeUpstream:
    """
    Scripted Google, Microsoft and OAuth endpoints behind httpx.MockTransport.

    Replies registered for a (method, url) are consumed in order and the last
    one repeats. A reply may be a response, an exception to raise, or a
    callable receiving the request.
    """

    def __init__(self) -> None:
        self.routes: Dict[Tuple[str, str], List[Reply]] = {}
        self.requests: List[httpx.Request] = []

    def add(self, method: str, url: str, *replies: Reply) -> None:
        self.routes[(method, url)] = list(replies)

    def calls(self, method: str, url: str) -> List[httpx.Request]:
        return [
            request
            for request in self.requests
            if request.method == method and _base_url(request) == url
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        replies = self.routes.get((request.method, _base_url(request)))
        if not replies:
            return json_response(404, {"error": {"message": f"No route for {request.url}"}})
        reply = replies.pop(0) if len(replies) > 1 else replies[0]
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            return reply(request)
        return reply

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def _base_url(request: httpx.Request) -> str:
    return f"{request.url.scheme}://{request.url.host}{request.url.path}"


def bearer(request: httpx.Request) -> str:
    return request.headers.get("Authorization", "").removeprefix("Bearer ")


class FakeRepository:
    """In-memory stand-in for LinkedAccountRepository."""

    def __init__(self, rows: List[Dict[str, Any]] | None = None) -> None:
        self.rows: List[Dict[str, Any]] = rows or []
        self.token_updates: List[Dict[str, Any]] = []

    def list_accounts(self, user_id: str, provider: Provider) -> List[Dict[str, Any]]:
        return [
            dict(row)
            for row in self.rows
            if row["user_id"] == user_id and row["provider"] == provider.value
        ]

    def upsert_account(self, user_id: str, account: LinkedAccount) -> Dict[str, Any]:
        row = {"user_id": user_id, **account.to_row()}
        self.rows = [
            existing
            for existing in self.rows
            if (existing["user_id"], existing["provider"], existing["account_id"])
            != (user_id, row["provider"], row["account_id"])
        ]
        self.rows.append(row)
        return dict(row)

    def update_tokens(self, user_id, provider, account_id, **tokens) -> Dict[str, Any] | None:
        self.token_updates.append({"user_id": user_id, "account_id": account_id, **tokens})
        for row in self.rows:
            if (row["user_id"], row["provider"], row["account_id"]) == (
                user_id,
                provider.value,
                account_id,
            ):
                row.update({key: value for key, value in tokens.items() if value is not None})
                return dict(row)
        return None

    def delete_accounts(self, user_id: str, account_id: str) -> int:
        before = len(self.rows)
        self.rows = [
            row
            for row in self.rows
            if not (row["user_id"] == user_id and row["account_id"] == account_id)
        ]
        return before - len(self.rows)


class FakeSleep:
    """Records requested delays instead of sleeping."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def settings():
    """Settings with zero delays and fixed OAuth clients."""
    return Settings(
        supabase_url="https://test.supabase.co",
        supabase_service_role_key="test-key",
        session_secret="test-session-secret",
        google_client_id="google-client",
        google_client_secret="google-secret",
        microsoft_client_id="microsoft-client",
        microsoft_client_secret="microsoft-secret",
        event_fetch_delay_seconds=0,
        rate_limit_base_delay_seconds=2.0,
    )


@pytest.fixture
def upstream():
    return FakeUpstream()


@pytest.fixture
def repository():
    return FakeRepository()


@pytest.fixture
def store(repository):
    return CredentialStore(repository=repository)


@pytest.fixture
def fake_sleep():
    return FakeSleep()


@pytest.fixture
def google_account():
    return LinkedAccount(
        provider=Provider.GOOGLE,
        account_id="g-123",
        email="ada@example.com",
        access_token="google-token",
        refresh_token="google-refresh",
    )


@pytest.fixture
def microsoft_account():
    return LinkedAccount(
        provider=Provider.MICROSOFT,
        account_id="m-456",
        email="ada@contoso.com",
        access_token="graph-token",
        refresh_token="graph-refresh",
    )


@pytest.fixture
def session(google_account, microsoft_account):
    return SessionContext(user_id="user-1", accounts=[google_account, microsoft_account])
