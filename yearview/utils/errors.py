"""Centralized exception classes for the application."""

from __future__ import annotations

from typing import Any

from fastapi import status


# Supabase errors
class SupabaseStorageError(RuntimeError):
    """Raised when Supabase data operations fail."""


# Calendar service errors
class CalendarServiceError(RuntimeError):
    """Base error for calendar aggregation issues."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    @property
    def detail(self) -> Any:
        """Body placed in the HTTP error response."""
        return str(self)


class AuthError(CalendarServiceError):
    """Raised when credentials are missing or a token refresh fails."""

    status_code = status.HTTP_401_UNAUTHORIZED


class ValidationError(CalendarServiceError):
    """Raised when a request field or composite id is malformed."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundError(CalendarServiceError):
    """Raised when an account or calendar cannot be resolved for the user."""

    status_code = status.HTTP_404_NOT_FOUND


class UpstreamError(CalendarServiceError):
    """Raised when a provider returns a non-2xx response on a write."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        source_deleted: bool | None = None,
    ) -> None:
        super().__init__(message)
        # Transport failures carry no provider status
        self.status_code = status_code or status.HTTP_502_BAD_GATEWAY
        self.source_deleted = source_deleted

    @property
    def detail(self) -> Any:
        if self.source_deleted is None:
            return str(self)
        return {"message": str(self), "source_deleted": self.source_deleted}
