"""
FastAPI dependencies: database session, activity source and request clock.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import datetime, timezone, tzinfo

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.db.session import async_session_factory
from app.services.sessions import UnclosedSessionPolicy
from app.services.sources import (ActivitySource, DatabaseActivitySource,
                                  HttpActivitySource, build_http_client)
from app.services.timeutils import local_date, parse_utc_offset


# ── Database session ────────────────────────────────────────────────
async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        try:
            yield session
        finally:
            await session.close()


# ── Clock & rules ───────────────────────────────────────────────────
def get_now() -> datetime:
    """The single instant every value in one request is computed against."""
    return datetime.now(timezone.utc)


def get_display_tz() -> tzinfo:
    return parse_utc_offset(settings.TIMEZONE_OFFSET)


def get_policy() -> UnclosedSessionPolicy:
    return UnclosedSessionPolicy(settings.UNCLOSED_SESSION_POLICY)


# ── Activity source ─────────────────────────────────────────────────
async def get_activity_source(
    db: AsyncSession = Depends(get_db),
    now: datetime = Depends(get_now),
    tz: tzinfo = Depends(get_display_tz),
) -> AsyncGenerator[ActivitySource, None]:
    """Yield the configured source; the HTTP client lives for one request."""
    if settings.ACTIVITY_SOURCE == "http":
        async with build_http_client() as client:
            yield HttpActivitySource(client, today=local_date(now, tz))
    else:
        yield DatabaseActivitySource(db)
