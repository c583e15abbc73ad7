"""HTTP request/response logging middleware."""

from __future__ import annotations

import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

logger = logging.getLogger(__name__)

# Paths to skip logging (health checks, etc.)
SKIP_LOGGING_PATHS = {"/healthz", "/"}


def _outcome(status_code: int) -> str:
    if status_code >= 400:
        return "ERROR"
    if status_code >= 300:
        return "REDIRECT"
    return "OK"


def _user(request: Request) -> str:
    # Set by the session dependencies once the bearer token is decoded
    return getattr(request.state, "user_id", None) or "anonymous"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Log one line per request and one per response.

    Query strings are left out because calendarIds carry account ids.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        path = request.url.path
        if path in SKIP_LOGGING_PATHS:
            return await call_next(request)

        method = request.method
        started = time.perf_counter()
        logger.info("%s %s", method, path)

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "%s %s user_id=%s ERROR %.3fs: %s: %s",
                method,
                path,
                _user(request),
                time.perf_counter() - started,
                type(exc).__name__,
                exc,
                exc_info=True,
            )
            raise

        logger.info(
            "%s %s user_id=%s %s %s %.3fs",
            method,
            path,
            _user(request),
            response.status_code,
            _outcome(response.status_code),
            time.perf_counter() - started,
        )
        return response
