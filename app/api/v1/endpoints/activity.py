"""
Live activity endpoints: reconciled sessions and break details per worker.

Every request captures ``now`` once (``get_now``) and reuses it for every
derived value, so the online and break figures of one response agree.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, tzinfo

from fastapi import APIRouter, Depends, HTTPException, Query

from app.api.v1.deps import get_activity_source, get_display_tz, get_now, get_policy
from app.core.config import settings
from app.schemas.activity import (BreakDetailsResponse, BreakEntryView,
                                  DayActivityResponse, LiveActivityResponse,
                                  WorkerActivity, WorkerSnapshot)
from app.services.breaks import entry_minutes
from app.services.history import day_record
from app.services.sessions import UnclosedSessionPolicy, reconcile_worker
from app.services.sources import ActivitySource, parse_worker_record, snapshots_from_records
from app.services.timeutils import (format_clock, format_duration_compact,
                                    format_duration_long, local_date)

router = APIRouter(tags=["activity"])
logger = logging.getLogger(__name__)


async def load_snapshot(source: ActivitySource, worker_id: str) -> WorkerSnapshot:
    raw = await source.get_worker(worker_id)
    if raw is None:
        raise HTTPException(status_code=404, detail="Worker not found")
    return parse_worker_record(raw)


def reconcile(
    snapshot: WorkerSnapshot,
    now: datetime,
    policy: UnclosedSessionPolicy,
    tz: tzinfo,
) -> WorkerActivity:
    return reconcile_worker(
        snapshot,
        now,
        policy=policy,
        tz=tz,
        sentinel="-",
        default_reason=settings.DEFAULT_BREAK_REASON,
    )


# ── All workers ─────────────────────────────────────────────────────
@router.get("/activity/workers", response_model=LiveActivityResponse)
async def list_worker_activity(
    role: str | None = Query(default=None, description="Agent, QA, TL ..."),
    source: ActivitySource = Depends(get_activity_source),
    now: datetime = Depends(get_now),
    policy: UnclosedSessionPolicy = Depends(get_policy),
    tz: tzinfo = Depends(get_display_tz),
) -> LiveActivityResponse:
    """Reconcile every worker's current session; bad records are reported, not fatal."""
    records = await source.list_workers(role)
    snapshots, failures = snapshots_from_records(records)
    workers = [reconcile(snapshot, now, policy, tz) for snapshot in snapshots]
    if failures:
        logger.warning("%d of %d worker records could not be read", len(failures), len(records))
    return LiveActivityResponse(
        generated_at=now,
        total_workers=len(workers),
        workers=workers,
        failures=failures,
    )


# ── One worker ──────────────────────────────────────────────────────
@router.get("/activity/workers/{worker_id}", response_model=WorkerActivity)
async def get_worker_activity(
    worker_id: str,
    source: ActivitySource = Depends(get_activity_source),
    now: datetime = Depends(get_now),
    policy: UnclosedSessionPolicy = Depends(get_policy),
    tz: tzinfo = Depends(get_display_tz),
) -> WorkerActivity:
    snapshot = await load_snapshot(source, worker_id)
    return reconcile(snapshot, now, policy, tz)


@router.get("/activity/workers/{worker_id}/breaks", response_model=BreakDetailsResponse)
async def get_break_details(
    worker_id: str,
    source: ActivitySource = Depends(get_activity_source),
    now: datetime = Depends(get_now),
    policy: UnclosedSessionPolicy = Depends(get_policy),
    tz: tzinfo = Depends(get_display_tz),
) -> BreakDetailsResponse:
    """Break history for the detail view, the running break first."""
    snapshot = await load_snapshot(source, worker_id)
    activity = reconcile(snapshot, now, policy, tz)
    entries = [
        BreakEntryView(
            start=entry.start,
            end=entry.end,
            reason=entry.reason or settings.DEFAULT_BREAK_REASON,
            is_open=entry.is_open,
            duration_minutes=entry_minutes(entry),
            duration_display=format_duration_long(entry_minutes(entry)),
        )
        for entry in activity.breaks
    ]
    return BreakDetailsResponse(
        worker_id=activity.worker_id,
        name=activity.name,
        employee_id=activity.employee_id,
        total_breaks=activity.session.total_breaks,
        total_break_minutes=activity.session.break_duration_minutes,
        total_break_display=format_duration_long(activity.session.break_duration_minutes),
        entries=entries,
        reasons=activity.reasons,
    )


@router.get("/activity/workers/{worker_id}/days/{day}", response_model=DayActivityResponse)
async def get_worker_day(
    worker_id: str,
    day: str,
    source: ActivitySource = Depends(get_activity_source),
    now: datetime = Depends(get_now),
    policy: UnclosedSessionPolicy = Depends(get_policy),
    tz: tzinfo = Depends(get_display_tz),
) -> DayActivityResponse:
    """Activity for one calendar day: history for past days, live for today."""
    try:
        target = date.fromisoformat(day)
    except ValueError:
        raise HTTPException(status_code=400, detail="Day must be YYYY-MM-DD") from None

    snapshot = await load_snapshot(source, worker_id)
    activity = reconcile(snapshot, now, policy, tz)
    today = local_date(now, tz)
    feed = await source.get_history(worker_id, target, target)
    record, is_live = day_record(
        activity, feed, target, today=today, now=now, policy=policy, tz=tz
    )
    return DayActivityResponse(
        worker_id=activity.worker_id,
        name=activity.name,
        is_live=is_live,
        record=record,
        display_login_time=format_clock(record.login_time, "N/A", tz),
        display_logout_time=format_clock(record.logout_time, "N/A", tz),
        online_display=format_duration_compact(record.total_online_time),
        break_display=format_duration_compact(record.total_break_time),
    )
