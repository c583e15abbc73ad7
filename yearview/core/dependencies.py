from __future__ import annotations

import logging
from typing import Annotated, AsyncIterator

import httpx
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from yearview.core.config import get_settings
from yearview.core.session import SessionTokenError, decode_session_token
from yearview.domains.accounts.schemas import SessionContext
from yearview.domains.accounts.store import CredentialStore
from yearview.domains.calendars.service import CalendarService

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


async def get_optional_session(
    request: Request,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> SessionContext | None:
    """
    Dependency returning the signed-in user's credential context, or None.

    Read endpoints use this so anonymous viewers get an empty calendar
    instead of an error. A present but invalid token is treated the same as
    no token. Also stores user_id in request.state for middleware access.
    """
    if credentials is None:
        return None
    try:
        session = decode_session_token(credentials.credentials)
    except SessionTokenError as exc:
        logger.info("Ignoring invalid session token: %s", exc)
        return None

    request.state.user_id = session.user_id
    return session


async def get_current_session(
    session: Annotated[SessionContext | None, Depends(get_optional_session)],
) -> SessionContext:
    """Dependency requiring a signed-in user."""
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


async def get_http_client() -> AsyncIterator[httpx.AsyncClient]:
    """HTTP client shared by the provider calls of one request."""
    settings = get_settings()
    async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
        yield client


def get_credential_store() -> CredentialStore:
    return CredentialStore()


def get_calendar_service(
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
    store: Annotated[CredentialStore, Depends(get_credential_store)],
) -> CalendarService:
    return CalendarService(http_client, store=store)
