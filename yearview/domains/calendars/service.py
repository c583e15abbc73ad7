"""Service aggregating calendars and all-day events across linked accounts."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, Awaitable, Callable, Dict, List, Tuple

import httpx
from fastapi import status

from yearview.core.config import Settings, get_settings
from yearview.domains.accounts.refresher import TokenRefresher
from yearview.domains.accounts.schemas import LinkedAccount, SessionContext
from yearview.domains.accounts.store import CredentialStore
from yearview.domains.calendars import composite
from yearview.domains.calendars.dates import to_exclusive_end
from yearview.domains.calendars.providers import CalendarProvider, ProviderResult, get_provider
from yearview.domains.calendars.retry import with_rate_limit_backoff, with_refresh_retry
from yearview.domains.calendars.schemas import (
    AccountStatus,
    AllDayEvent,
    CanonicalCalendar,
    CanonicalEvent,
    FetchOutcome,
    ProviderFailure,
)
from yearview.utils.errors import (
    AuthError,
    NotFoundError,
    SupabaseStorageError,
    UpstreamError,
    ValidationError,
)

logger = logging.getLogger(__name__)

MISSING_TOKEN = "missing access token"
PRIMARY_CALENDAR = "primary"


@dataclass
class AccountContext:
    """A linked account paired with the adapter selected for its provider."""

    account: LinkedAccount
    provider: CalendarProvider

    @property
    def account_id(self) -> str:
        return self.account.account_id

    @property
    def access_token(self) -> str | None:
        return self.account.access_token


class CalendarService:
    """
    Fan-out reads and routed writes over every linked account of a user.

    Calendar listing runs every account concurrently and waits for all of
    them. Event listing walks the (account, calendar) pairs one at a time
    with `event_fetch_delay_seconds` between requests, trading latency for
    staying under Google and Microsoft rate limits.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        store: CredentialStore | None = None,
        refresher: TokenRefresher | None = None,
        settings: Settings | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self.http_client = http_client
        self.settings = settings or get_settings()
        self.store = store or CredentialStore()
        self.refresher = refresher or TokenRefresher(http_client, self.settings)
        self._sleep = sleep

    # Reads

    async def list_calendars(
        self, session: SessionContext, *, debug: bool = False
    ) -> Dict[str, Any]:
        """List the calendars of every linked account with per-account diagnostics."""
        contexts = self._build_contexts(session)
        if not contexts:
            return {"calendars": [], "accounts": []}

        results = await asyncio.gather(
            *(self._fetch_calendars(session, context) for context in contexts),
            return_exceptions=True,
        )

        outcomes: List[FetchOutcome] = []
        for context, result in zip(contexts, results):
            if isinstance(result, BaseException):
                logger.error(
                    "Calendar fetch crashed account_id=%s",
                    context.account_id,
                    exc_info=result,
                )
                result = self._outcome(context, error=str(result) or type(result).__name__)
            outcomes.append(result)

        calendars: List[CanonicalCalendar] = []
        for outcome in outcomes:
            for entry in outcome.items:
                calendars.append(
                    CanonicalCalendar(
                        composite_id=composite.encode(outcome.account_id, entry.calendar_id),
                        calendar_id=entry.calendar_id,
                        account_id=outcome.account_id,
                        account_email=outcome.email,
                        provider=outcome.provider,
                        title=entry.title,
                        is_primary=entry.is_primary,
                        color=entry.color,
                        access_role=entry.access_role,
                    )
                )

        response: Dict[str, Any] = {
            "calendars": calendars,
            "accounts": [
                AccountStatus(
                    account_id=outcome.account_id,
                    email=outcome.email,
                    provider=outcome.provider,
                    status=outcome.status,
                    error=outcome.error,
                )
                for outcome in outcomes
            ],
        }
        if debug:
            response["debug"] = [_diagnostic(outcome) for outcome in outcomes]
        return response

    async def list_events(
        self,
        session: SessionContext,
        *,
        year: int,
        calendar_ids: List[str],
        debug: bool = False,
    ) -> Dict[str, Any]:
        """
        List all-day events of `year` for the selected calendars.

        Args:
            session: Credential context of the signed-in user
            year: Calendar year to fetch
            calendar_ids: Composite calendar ids; empty selects each account's
                primary calendar. Malformed ids are skipped.
            debug: Include per-calendar diagnostics

        Returns:
            Dict with the merged `events` ordered by start date
        """
        contexts = self._build_contexts(session)
        if not contexts:
            return {"events": []}

        ids_by_account: Dict[str, List[str]] = {}
        for raw_id in calendar_ids:
            try:
                parsed = composite.decode_calendar_id(raw_id)
            except ValidationError:
                logger.info("Skipping malformed calendar id in event query")
                continue
            ids_by_account.setdefault(parsed.account_id, []).append(parsed.calendar_id)

        units: List[Tuple[AccountContext, str]] = []
        for context in contexts:
            if ids_by_account:
                calendars = ids_by_account.get(context.account_id, [])
            else:
                calendars = [PRIMARY_CALENDAR]
            units.extend((context, calendar_id) for calendar_id in calendars)

        outcomes: List[FetchOutcome] = []
        for index, (context, calendar_id) in enumerate(units):
            if index and self.settings.event_fetch_delay_seconds > 0:
                await self._sleep(self.settings.event_fetch_delay_seconds)
            try:
                outcome = await self._fetch_events(session, context, calendar_id, year)
            except Exception as exc:
                logger.error(
                    "Event fetch crashed account_id=%s calendar_id=%s",
                    context.account_id,
                    calendar_id,
                    exc_info=exc,
                )
                outcome = self._outcome(
                    context,
                    calendar_id=calendar_id,
                    error=str(exc) or type(exc).__name__,
                )
            outcomes.append(outcome)

        events: List[CanonicalEvent] = []
        for outcome in outcomes:
            calendar_id = outcome.calendar_id or PRIMARY_CALENDAR
            for item in outcome.items:
                try:
                    events.append(_canonical_event(outcome.account_id, calendar_id, item))
                except ValidationError as exc:
                    logger.warning("Skipping unroutable event id account_id=%s: %s", outcome.account_id, exc)
        events.sort(key=lambda event: event.start_date)

        response: Dict[str, Any] = {"events": events}
        if debug:
            response["debug"] = [_diagnostic(outcome) for outcome in outcomes]
        return response

    # Writes

    async def create_event(
        self,
        session: SessionContext,
        *,
        calendar_id: str,
        title: str,
        start_date: date,
        end_date: date,
    ) -> CanonicalEvent:
        """Create an all-day event. `end_date` is inclusive; the result's is exclusive."""
        target = composite.decode_calendar_id(calendar_id)
        context = self._resolve(session, target.account_id)
        end_exclusive = to_exclusive_end(end_date)

        result = await self._call(
            session,
            context,
            lambda token: context.provider.create_event(
                token,
                target.calendar_id,
                title=title,
                start_date=start_date,
                end_date=end_exclusive,
            ),
        )
        if isinstance(result, ProviderFailure):
            raise UpstreamError(result.error or "Failed to create event", status_code=result.status)
        return _canonical_event(target.account_id, target.calendar_id, result.data)

    async def update_event(
        self,
        session: SessionContext,
        *,
        event_id: str,
        calendar_id: str,
        title: str,
        start_date: date,
        end_date: date,
    ) -> CanonicalEvent:
        """
        Update an event in place, or move it when `calendar_id` differs.

        A move deletes from the source and then creates in the destination.
        It is not atomic: when the create fails after the delete succeeded the
        raised UpstreamError has `source_deleted=True`.

        Raises:
            ValidationError: If either composite id is malformed
            NotFoundError: If the source or destination account is unknown
            UpstreamError: If a provider call fails
        """
        source = composite.decode(event_id)
        target = composite.decode_calendar_id(calendar_id)
        source_context = self._resolve(session, source.account_id)
        target_context = self._resolve(
            session, target.account_id, missing_message="New account not found"
        )
        end_exclusive = to_exclusive_end(end_date)

        if source.calendar_key == target.calendar_key:
            result = await self._call(
                session,
                source_context,
                lambda token: source_context.provider.update_event(
                    token,
                    source.calendar_id,
                    source.event_id,
                    title=title,
                    start_date=start_date,
                    end_date=end_exclusive,
                ),
            )
            if isinstance(result, ProviderFailure):
                raise UpstreamError(
                    result.error or "Failed to update event", status_code=result.status
                )
            updated = result.data.model_copy(update={"event_id": source.event_id})
            return _canonical_event(source.account_id, source.calendar_id, updated)

        if not target_context.provider.supports_writes:
            raise UpstreamError(
                f"{target_context.provider.display_name} calendars are read-only; "
                "events cannot be moved there.",
                status_code=status.HTTP_501_NOT_IMPLEMENTED,
                source_deleted=False,
            )

        deleted = await self._call(
            session,
            source_context,
            lambda token: source_context.provider.delete_event(
                token, source.calendar_id, source.event_id
            ),
        )
        if isinstance(deleted, ProviderFailure):
            raise UpstreamError(
                deleted.error or "Failed to delete event from old calendar",
                status_code=deleted.status,
                source_deleted=False,
            )

        created = await self._call(
            session,
            target_context,
            lambda token: target_context.provider.create_event(
                token,
                target.calendar_id,
                title=title,
                start_date=start_date,
                end_date=end_exclusive,
            ),
        )
        if isinstance(created, ProviderFailure):
            logger.error(
                "Event move left source deleted without destination copy "
                "source=%s target=%s status=%s",
                source.calendar_key,
                target.calendar_key,
                created.status,
            )
            raise UpstreamError(
                "Event was removed from the source calendar but could not be "
                f"created in the new calendar: {created.error or 'unknown error'}",
                status_code=created.status,
                source_deleted=True,
            )
        return _canonical_event(target.account_id, target.calendar_id, created.data)

    async def delete_event(self, session: SessionContext, *, event_id: str) -> None:
        """Delete an event addressed by its composite id."""
        target = composite.decode(event_id)
        context = self._resolve(session, target.account_id)
        result = await self._call(
            session,
            context,
            lambda token: context.provider.delete_event(
                token, target.calendar_id, target.event_id
            ),
        )
        if isinstance(result, ProviderFailure):
            raise UpstreamError(result.error or "Failed to delete event", status_code=result.status)

    # Helpers

    def _build_contexts(self, session: SessionContext) -> List[AccountContext]:
        return [
            AccountContext(account=account, provider=get_provider(account.provider, self.http_client))
            for account in self.store.list_all_linked_accounts(session)
        ]

    def _resolve(
        self,
        session: SessionContext,
        account_id: str,
        *,
        missing_message: str = "Account not found",
    ) -> AccountContext:
        account = self.store.find_account(session, account_id)
        if account is None:
            raise NotFoundError(missing_message)
        return AccountContext(
            account=account, provider=get_provider(account.provider, self.http_client)
        )

    def _outcome(self, context: AccountContext, **fields: Any) -> FetchOutcome:
        return FetchOutcome(
            account_id=context.account_id,
            provider=context.account.provider,
            email=context.account.email,
            **fields,
        )

    async def _fetch_calendars(
        self, session: SessionContext, context: AccountContext
    ) -> FetchOutcome:
        await self._ensure_fresh_token(session, context)
        if not context.access_token:
            return self._outcome(context, error=MISSING_TOKEN)

        result = await self._call(session, context, context.provider.list_calendars)
        if isinstance(result, ProviderFailure):
            logger.warning(
                "Calendar list failed account_id=%s status=%s: %s",
                context.account_id,
                result.status,
                result.error,
            )
            return self._outcome(context, status=result.status, error=result.error)
        return self._outcome(context, items=result.data, status=result.status)

    async def _fetch_events(
        self,
        session: SessionContext,
        context: AccountContext,
        calendar_id: str,
        year: int,
    ) -> FetchOutcome:
        await self._ensure_fresh_token(session, context)
        if not context.access_token:
            return self._outcome(context, calendar_id=calendar_id, error=MISSING_TOKEN)

        result = await self._call(
            session,
            context,
            lambda token: context.provider.list_all_day_events(token, calendar_id, year),
            rate_limited=context.provider.backoff_on_rate_limit,
        )
        if isinstance(result, ProviderFailure):
            logger.warning(
                "Event fetch failed account_id=%s status=%s: %s",
                context.account_id,
                result.status,
                result.error,
            )
            return self._outcome(
                context, calendar_id=calendar_id, status=result.status, error=result.error
            )
        return self._outcome(
            context, calendar_id=calendar_id, items=result.data, status=result.status
        )

    async def _call(
        self,
        session: SessionContext,
        context: AccountContext,
        call: Callable[[str], Awaitable[ProviderResult]],
        *,
        rate_limited: bool = False,
    ) -> ProviderResult:
        """Run a provider call with refresh-on-401 and, when asked, 429 backoff."""
        if not context.access_token:
            await self._ensure_fresh_token(session, context)
        if not context.access_token:
            raise AuthError(f"Account {context.account_id} has no access token.")

        async def attempt(token: str) -> ProviderResult:
            if not rate_limited:
                return await call(token)
            return await with_rate_limit_backoff(
                lambda: call(token),
                max_retries=self.settings.rate_limit_max_retries,
                base_delay=self.settings.rate_limit_base_delay_seconds,
                sleep=self._sleep,
            )

        async def refresh(stale_token: str) -> str:
            await self._refresh(session, context, stale_token)
            return context.access_token or ""

        return await with_refresh_retry(
            attempt,
            access_token=context.access_token,
            refresh=refresh if context.account.refresh_token else None,
        )

    async def _refresh(
        self, session: SessionContext, context: AccountContext, stale_token: str | None
    ) -> None:
        """Refresh the context's token and persist it for the user."""
        context.account = await self.refresher.refresh_account(context.account, stale_token)
        try:
            self.store.save_tokens(session.user_id, context.account)
        except SupabaseStorageError as exc:
            logger.warning(
                "Failed to persist refreshed token account_id=%s: %s",
                context.account_id,
                exc,
            )

    async def _ensure_fresh_token(
        self, session: SessionContext, context: AccountContext
    ) -> None:
        """Refresh ahead of time when the token is missing or about to expire."""
        account = context.account
        if not account.refresh_token:
            return
        leeway = timedelta(seconds=self.settings.token_refresh_leeway_seconds)
        if account.access_token and not account.expires_within(leeway):
            return
        try:
            await self._refresh(session, context, account.access_token)
        except AuthError as exc:
            logger.warning(
                "Proactive token refresh failed account_id=%s: %s",
                context.account_id,
                exc,
            )


def _canonical_event(account_id: str, calendar_id: str, event: AllDayEvent) -> CanonicalEvent:
    return CanonicalEvent(
        composite_id=composite.encode(account_id, calendar_id, event.event_id),
        calendar_composite_id=composite.encode(account_id, calendar_id),
        title=event.title,
        start_date=event.start_date,
        end_date=event.end_date,
    )


def _diagnostic(outcome: FetchOutcome) -> Dict[str, Any]:
    diagnostic: Dict[str, Any] = {
        "accountId": outcome.account_id,
        "status": outcome.status,
        "error": outcome.error,
        "count": len(outcome.items),
    }
    if outcome.calendar_id is not None:
        diagnostic["calendarId"] = outcome.calendar_id
    return diagnostic
