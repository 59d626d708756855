"""
Reporting endpoints: per-worker and team rollups with CSV / Excel exports.

Histories for a whole team are fetched in one batch call on the source and
aggregated in Python.
"""

import logging
from datetime import date, datetime, tzinfo
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import Response, StreamingResponse
from slowapi import Limiter
from slowapi.util import get_remote_address
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import (get_activity_source, get_db, get_display_tz,
                             get_now, get_policy)
from app.api.v1.endpoints.activity import load_snapshot, reconcile
from app.core.config import settings
from app.schemas.activity import HealthResponse
from app.schemas.report import TeamReport, WorkerReport
from app.services.exports import (CSV_MEDIA_TYPE, XLSX_MEDIA_TYPE, render_csv,
                                  render_xlsx)
from app.services.history import worker_rollup
from app.services.reports import (build_team_report, build_worker_report,
                                  identity_for, period_label)
from app.services.rollup import DateRange, ReportPeriod, range_for_period
from app.services.sessions import UnclosedSessionPolicy
from app.services.sources import ActivitySource, snapshots_from_records
from app.services.timeutils import local_date

router = APIRouter(tags=["reports"])
logger = logging.getLogger(__name__)

# Exports render whole periods; keyed by client IP
limiter = Limiter(key_func=get_remote_address)

ExportFormat = Literal["csv", "xlsx"]


def _resolve_range(
    period: ReportPeriod, today: date, month: int | None, year: int | None
) -> DateRange:
    try:
        return range_for_period(period, today, month=month, year=year)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None


async def _worker_report(
    worker_id: str,
    period: ReportPeriod,
    month: int | None,
    year: int | None,
    source: ActivitySource,
    now: datetime,
    policy: UnclosedSessionPolicy,
    tz: tzinfo,
) -> WorkerReport:
    today = local_date(now, tz)
    date_range = _resolve_range(period, today, month, year)
    snapshot = await load_snapshot(source, worker_id)
    activity = reconcile(snapshot, now, policy, tz)
    feed = await source.get_history(worker_id, date_range.start, date_range.end)
    rollup = worker_rollup(
        activity, feed, date_range, today=today, now=now, policy=policy, tz=tz
    )
    return build_worker_report(
        identity_for(activity),
        rollup,
        period=period,
        label=period_label(period, date_range, today),
        generated_at=now,
        tz=tz,
    )


async def _team_report(
    role: str | None,
    period: ReportPeriod,
    month: int | None,
    year: int | None,
    source: ActivitySource,
    now: datetime,
    policy: UnclosedSessionPolicy,
    tz: tzinfo,
) -> TeamReport:
    today = local_date(now, tz)
    date_range = _resolve_range(period, today, month, year)
    snapshots, failures = snapshots_from_records(await source.list_workers(role))
    for failure in failures:
        logger.warning("Team report skips worker %s: %s", failure.worker_id, failure.detail)

    feeds = await source.get_histories(
        [snapshot.worker_id for snapshot in snapshots], date_range.start, date_range.end
    )
    members = []
    for snapshot in snapshots:
        activity = reconcile(snapshot, now, policy, tz)
        rollup = worker_rollup(
            activity,
            feeds.get(snapshot.worker_id, []),
            date_range,
            today=today,
            now=now,
            policy=policy,
            tz=tz,
        )
        members.append((identity_for(activity), rollup))

    return build_team_report(
        members,
        period=period,
        label=period_label(period, date_range, today),
        generated_at=now,
        role=role,
        tz=tz,
    )


def _download(table: list[list], fmt: ExportFormat, filename: str, sheet: str) -> Response:
    if fmt == "xlsx":
        return Response(
            content=render_xlsx(table, sheet),
            media_type=XLSX_MEDIA_TYPE,
            headers={"Content-Disposition": f"attachment; filename={filename}.xlsx"},
        )
    return StreamingResponse(
        render_csv(table),
        media_type=CSV_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}.csv"},
    )


# ── Worker reports ──────────────────────────────────────────────────
@router.get("/reports/workers/{worker_id}", response_model=WorkerReport)
async def worker_report(
    worker_id: str,
    period: ReportPeriod = Query(default=ReportPeriod.DAILY),
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    source: ActivitySource = Depends(get_activity_source),
    now: datetime = Depends(get_now),
    policy: UnclosedSessionPolicy = Depends(get_policy),
    tz: tzinfo = Depends(get_display_tz),
) -> WorkerReport:
    """Day-by-day activity of one worker over the requested period."""
    return await _worker_report(worker_id, period, month, year, source, now, policy, tz)


@router.get("/reports/workers/{worker_id}/export")
@limiter.limit(settings.EXPORT_RATE_LIMIT)
async def export_worker_report(
    request: Request,
    worker_id: str,
    period: ReportPeriod = Query(default=ReportPeriod.DAILY),
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    fmt: ExportFormat = Query(default="csv"),
    source: ActivitySource = Depends(get_activity_source),
    now: datetime = Depends(get_now),
    policy: UnclosedSessionPolicy = Depends(get_policy),
    tz: tzinfo = Depends(get_display_tz),
) -> Response:
    report = await _worker_report(worker_id, period, month, year, source, now, policy, tz)
    filename = f"{'_'.join(report.identity.name.split()) or worker_id}_{period.value}_report"
    logger.info("Exporting %s report for worker %s as %s", period.value, worker_id, fmt)
    return _download(report.as_table(), fmt, filename, "Worker Report")


# ── Team reports ────────────────────────────────────────────────────
@router.get("/reports/team", response_model=TeamReport)
async def team_report(
    role: str | None = Query(default=None),
    period: ReportPeriod = Query(default=ReportPeriod.DAILY),
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    source: ActivitySource = Depends(get_activity_source),
    now: datetime = Depends(get_now),
    policy: UnclosedSessionPolicy = Depends(get_policy),
    tz: tzinfo = Depends(get_display_tz),
) -> TeamReport:
    """Activity of every worker (optionally one role) over the requested period."""
    return await _team_report(role, period, month, year, source, now, policy, tz)


@router.get("/reports/team/export")
@limiter.limit(settings.EXPORT_RATE_LIMIT)
async def export_team_report(
    request: Request,
    role: str | None = Query(default=None),
    period: ReportPeriod = Query(default=ReportPeriod.DAILY),
    month: int | None = Query(default=None, ge=1, le=12),
    year: int | None = Query(default=None, ge=2000, le=2100),
    fmt: ExportFormat = Query(default="csv"),
    source: ActivitySource = Depends(get_activity_source),
    now: datetime = Depends(get_now),
    policy: UnclosedSessionPolicy = Depends(get_policy),
    tz: tzinfo = Depends(get_display_tz),
) -> Response:
    report = await _team_report(role, period, month, year, source, now, policy, tz)
    filename = f"{role or 'Team'}_Activity_{period.value}_{local_date(now, tz).isoformat()}"
    logger.info("Exporting %s team report (role=%s) as %s", period.value, role, fmt)
    return _download(report.as_table(), fmt, filename, "Activity Report")


# ── Health ──────────────────────────────────────────────────────────
@router.get("/health", response_model=HealthResponse)
async def health(db: AsyncSession = Depends(get_db)) -> HealthResponse:
    """Public health check: DB connectivity and the configured source."""
    result = HealthResponse(db=False, source=settings.ACTIVITY_SOURCE)
    try:
        await db.execute(select(1))
        result.db = True
    except Exception as e:
        logger.error("Health check DB failure: %s", e)
    return result
