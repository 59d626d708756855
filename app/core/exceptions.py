"""
Domain errors and global exception handlers: prevents stack-trace leakage to clients.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import SQLAlchemyError

logger = logging.getLogger(__name__)


class InvalidInput(ValueError):
    """A raw value is present but is not a usable time point or number.

    Raised only at the ingestion boundary. Callers processing a batch catch it
    per worker / per day so one bad record never aborts the rest.
    """

    def __init__(self, field: str, value: object, record_id: str | None = None) -> None:
        self.field = field
        self.value = value
        self.record_id = record_id
        where = f" (record {record_id})" if record_id else ""
        super().__init__(f"Invalid value for '{field}'{where}: {value!r}")


class ActivitySourceError(RuntimeError):
    """The upstream activity source could not be reached or refused the request."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


async def _http_exception_handler(_request: Request, exc: HTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": exc.detail, "success": False},
    )


async def _invalid_input_handler(_request: Request, exc: InvalidInput) -> JSONResponse:
    logger.warning("Rejected record: %s", exc)
    return JSONResponse(
        status_code=422,
        content={"detail": str(exc), "success": False},
    )


async def _activity_source_error_handler(_request: Request, exc: ActivitySourceError) -> JSONResponse:
    logger.error("Activity source failure: %s (upstream status %s)", exc, exc.status_code)
    return JSONResponse(
        status_code=502,
        content={"detail": "Activity source unavailable", "success": False},
    )


async def _rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    logger.warning("Rate limit hit on %s: %s", request.url.path, exc.detail)
    return JSONResponse(
        status_code=429,
        content={"detail": f"Too many requests: {exc.detail}", "success": False},
    )


async def _sqlalchemy_error_handler(_request: Request, exc: SQLAlchemyError) -> JSONResponse:
    logger.error("Database error: %s", exc, exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal database error", "success": False},
    )


async def _generic_exception_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled exception: %s", exc)
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error", "success": False},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach all exception handlers to the FastAPI app."""
    app.add_exception_handler(HTTPException, _http_exception_handler)  # type: ignore[arg-type]
    app.add_exception_handler(InvalidInput, _invalid_input_handler)  # type: ignore[arg-type]
    app.add_exception_handler(ActivitySourceError, _activity_source_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(RateLimitExceeded, _rate_limit_handler)  # type: ignore[arg-type]
    app.add_exception_handler(SQLAlchemyError, _sqlalchemy_error_handler)  # type: ignore[arg-type]
    app.add_exception_handler(Exception, _generic_exception_handler)
