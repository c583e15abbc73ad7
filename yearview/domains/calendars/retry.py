"""Retry policies applied uniformly to provider calls."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from yearview.domains.calendars.providers.base import ProviderResult
from yearview.domains.calendars.schemas import ProviderFailure
from yearview.utils.errors import AuthError

logger = logging.getLogger(__name__)

TokenCall = Callable[[str], Awaitable[ProviderResult]]
Refresh = Callable[[str], Awaitable[str]]
Sleep = Callable[[float], Awaitable[None]]


async def with_refresh_retry(
    call: TokenCall,
    *,
    access_token: str,
    refresh: Refresh | None,
) -> ProviderResult:
    """
    Run `call`, refreshing the token and retrying exactly once on HTTP 401.

    Args:
        call: Provider call taking the access token to use
        access_token: Token for the first attempt
        refresh: Exchanges the stale token for a new one, raising AuthError on
            failure; None when the account has no refresh token

    Returns:
        The retried result, or the first failure when no refresh is possible
        or the refresh itself fails
    """
    result = await call(access_token)
    if not isinstance(result, ProviderFailure) or not result.unauthorized or refresh is None:
        return result

    try:
        new_token = await refresh(access_token)
    except AuthError as exc:
        logger.warning("Token refresh after 401 failed: %s", exc)
        return result
    return await call(new_token)


async def with_rate_limit_backoff(
    call: Callable[[], Awaitable[ProviderResult]],
    *,
    max_retries: int,
    base_delay: float,
    sleep: Sleep = asyncio.sleep,
) -> ProviderResult:
    """Retry HTTP 429 failures with exponential backoff (base, 2*base, 4*base...)."""
    result = await call()
    for attempt in range(1, max_retries + 1):
        if not isinstance(result, ProviderFailure) or not result.rate_limited:
            break
        delay = base_delay * (2 ** (attempt - 1))
        logger.info("Rate limited, retrying in %.1fs (attempt %s/%s)", delay, attempt, max_retries)
        await sleep(delay)
        result = await call()
    return result
