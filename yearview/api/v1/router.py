"""API router aggregating all v1 routes."""

from __future__ import annotations

from fastapi import APIRouter

from .accounts import router as accounts_router
from .calendars import router as calendars_router
from .events import router as events_router

router = APIRouter()

router.include_router(calendars_router, tags=["calendars"])
router.include_router(events_router, tags=["events"])
router.include_router(accounts_router, tags=["accounts"])
