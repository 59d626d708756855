"""
Per-worker history assembly: feed rows plus today's live session into a rollup.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date, datetime, tzinfo
from typing import Any

from app.schemas.activity import DailyActivityRecord, Rollup, WorkerActivity
from app.services.rollup import DateRange, build_rollup, placeholder
from app.services.sessions import (UnclosedSessionPolicy, reconcile_history_day,
                                   session_as_daily_record)
from app.services.sources import history_from_records
from app.services.timeutils import local_date


def daily_records(
    feed: Iterable[Mapping[str, Any]],
    *,
    now: datetime,
    policy: UnclosedSessionPolicy,
    tz: tzinfo | None = None,
) -> list[DailyActivityRecord]:
    return [
        reconcile_history_day(day, now=now, policy=policy, tz=tz)
        for day in history_from_records(feed, tz)
    ]


def _live_record(activity: WorkerActivity, today: date, tz: tzinfo | None) -> DailyActivityRecord:
    """Today's row from the live session, empty unless the session began today.

    Login and logout stamps stay on a worker between days, so a session that
    started earlier must not be reported again as today.
    """
    login = activity.session.login_time
    if login is None or local_date(login, tz) != today:
        return placeholder(today)
    return session_as_daily_record(activity.session, today)


def worker_rollup(
    activity: WorkerActivity,
    feed: Iterable[Mapping[str, Any]],
    date_range: DateRange,
    *,
    today: date,
    now: datetime,
    policy: UnclosedSessionPolicy,
    tz: tzinfo | None = None,
) -> Rollup:
    """Roll a worker's history up over ``date_range``.

    When the range reaches today, the live session stands in for a
    finalized record that has not been written yet.
    """
    records = daily_records(feed, now=now, policy=policy, tz=tz)
    live = _live_record(activity, today, tz) if today in date_range else None
    return build_rollup(records, date_range, live_today=live)


def day_record(
    activity: WorkerActivity,
    feed: Iterable[Mapping[str, Any]],
    day: date,
    *,
    today: date,
    now: datetime,
    policy: UnclosedSessionPolicy,
    tz: tzinfo | None = None,
) -> tuple[DailyActivityRecord, bool]:
    """One day's record and whether it came from the live session."""
    found = None
    for record in daily_records(feed, now=now, policy=policy, tz=tz):
        if record.date == day:
            found = record
    if found is not None:
        return found, False
    if day == today:
        live = _live_record(activity, today, tz)
        return live, not live.is_placeholder
    return placeholder(day), False
