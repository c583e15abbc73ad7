"""FastAPI application entry point."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from yearview import __version__
from yearview.api.v1.router import router as api_router
from yearview.core.config import get_settings
from yearview.core.logging import setup_logging
from yearview.core.middleware import RequestLoggingMiddleware

setup_logging(get_settings().log_level)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager."""
    logger.info("Starting Yearview API...")
    yield
    logger.info("Shutting down Yearview API...")


app = FastAPI(
    title="Yearview API",
    description="Year-at-a-glance view of all-day events across Google and Microsoft calendars",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # Configure appropriately for production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(RequestLoggingMiddleware)

app.include_router(api_router)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request"
    error = errors[0]
    if error.get("type") == "json_invalid":
        return "Invalid JSON"
    message = str(error.get("msg", "Invalid request"))
    # Messages raised from field validators carry pydantic's prefix
    return message.removeprefix("Value error, ")


def _error_list(exc: RequestValidationError) -> list[dict]:
    return [
        {"loc": list(error.get("loc", ())), "msg": str(error.get("msg", ""))}
        for error in exc.errors()
    ]


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Report malformed bodies and parameters as 400 instead of 422."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": _validation_message(exc), "errors": _error_list(exc)},
    )


@app.get("/healthz")
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "message": "Yearview API",
        "version": __version__,
        "docs": "/docs",
    }
