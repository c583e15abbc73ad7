"""Linked account management routes."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, status

from yearview.core.dependencies import get_credential_store, get_current_session
from yearview.domains.accounts.schemas import (
    DisconnectRequest,
    DisconnectResponse,
    SessionContext,
)
from yearview.domains.accounts.store import CredentialStore
from yearview.utils.errors import SupabaseStorageError

router = APIRouter(prefix="/accounts", tags=["accounts"])
logger = logging.getLogger(__name__)


@router.post("/disconnect", response_model=DisconnectResponse)
async def disconnect_account(
    payload: DisconnectRequest,
    session: SessionContext = Depends(get_current_session),
    store: CredentialStore = Depends(get_credential_store),
) -> DisconnectResponse:
    """Remove the signed-in user's stored credentials for one account."""
    try:
        deleted = store.disconnect_account(session.user_id, payload.account_id)
    except SupabaseStorageError as exc:
        logger.error("Disconnect failed user_id=%s: %s", session.user_id, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc)
        ) from exc
    return DisconnectResponse(deleted=deleted)
