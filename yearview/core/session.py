"""Signed session tokens carrying the user id and session-scoped accounts."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable

import jwt
from pydantic import ValidationError as SchemaError

from yearview.core.config import get_settings
from yearview.domains.accounts.schemas import LinkedAccount, SessionContext

SESSION_AUDIENCE = "yearview-session"
SESSION_LIFETIME = timedelta(days=30)


class SessionTokenError(RuntimeError):
    """Raised when a session token is invalid or expired."""


def _session_secret() -> str:
    settings = get_settings()
    if not settings.session_secret:
        raise RuntimeError("SESSION_SECRET must be configured to verify session tokens.")
    return settings.session_secret


def create_session_token(
    user_id: str,
    accounts: Iterable[LinkedAccount] = (),
    *,
    lifetime: timedelta = SESSION_LIFETIME,
) -> str:
    """Sign a session token for `user_id` with its session-scoped accounts."""
    now = datetime.now(timezone.utc)
    payload: Dict[str, Any] = {
        "sub": user_id,
        "aud": SESSION_AUDIENCE,
        "iat": int(now.timestamp()),
        "exp": int((now + lifetime).timestamp()),
        "accounts": [
            account.model_dump(mode="json", by_alias=True) for account in accounts
        ],
    }
    return jwt.encode(payload, _session_secret(), algorithm=get_settings().session_algorithm)


def decode_session_token(token: str) -> SessionContext:
    """Verify a session token and build the request's credential context."""
    try:
        claims = jwt.decode(
            token,
            _session_secret(),
            algorithms=[get_settings().session_algorithm],
            audience=SESSION_AUDIENCE,
        )
    except jwt.PyJWTError as exc:
        raise SessionTokenError("Invalid or expired session token") from exc

    user_id = claims.get("sub")
    if not user_id:
        raise SessionTokenError("Session token has no subject")
    try:
        return SessionContext(user_id=user_id, accounts=claims.get("accounts") or [])
    except SchemaError as exc:
        raise SessionTokenError("Session token carries malformed accounts") from exc
