"""
Session reconciliation: login / logout / breaks into net online time.

One role-agnostic reconciler serves agents, QA and team leads alike. The
functions are pure: the caller captures ``now`` once and passes it to every
call made while rendering one view.
"""

from __future__ import annotations

import logging
import math
from datetime import date, datetime, tzinfo
from enum import Enum

from app.schemas.activity import (DailyActivityRecord, HistoryDay,
                                  ReconciledSession, SessionRegime,
                                  WorkerActivity, WorkerSnapshot)
from app.services.breaks import DEFAULT_REASON, aggregate_breaks, breakdown_by_reason
from app.services.timeutils import day_bounds, format_clock, minutes_between

logger = logging.getLogger(__name__)


class UnclosedSessionPolicy(str, Enum):
    """What to do with an inactive worker whose logout is missing or invalid.

    ``ZERO`` counts no online time for the session. ``NOW`` treats the
    current instant as an implicit logout.
    """

    ZERO = "zero"
    NOW = "now"


def _span_minutes(start: datetime, end: datetime) -> int:
    return max(0, math.floor(minutes_between(start, end)))


def reconcile_session(
    login_time: datetime | None,
    logout_time: datetime | None,
    is_active: bool,
    break_minutes: float | None,
    now: datetime,
    *,
    total_breaks: int = 0,
    policy: UnclosedSessionPolicy = UnclosedSessionPolicy.ZERO,
    tz: tzinfo | None = None,
    sentinel: str = "N/A",
) -> ReconciledSession:
    """Compute the displayed logout and net active minutes of one session.

    Regimes, in priority order: no login recorded; still online (on break or
    not); logged out with a logout strictly after login; logged out without
    a usable logout, resolved by ``policy``. Active time is always
    ``max(0, span - breaks)`` with the span in whole minutes.
    """
    breaks = max(0.0, float(break_minutes or 0.0))
    total_breaks = max(0, total_breaks)

    if login_time is None:
        regime = SessionRegime.NO_LOGIN
        shown_logout = None
        span = 0
    elif is_active:
        regime = SessionRegime.ONLINE
        shown_logout = None
        span = _span_minutes(login_time, now)
    elif logout_time is not None and logout_time > login_time:
        regime = SessionRegime.LOGGED_OUT
        shown_logout = logout_time
        span = _span_minutes(login_time, logout_time)
    else:
        regime = SessionRegime.UNCLOSED
        if policy is UnclosedSessionPolicy.NOW:
            shown_logout = now
            span = _span_minutes(login_time, now)
        else:
            shown_logout = None
            span = 0

    active = max(0.0, span - breaks)

    return ReconciledSession(
        regime=regime,
        login_time=login_time,
        logout_time=shown_logout,
        display_login_time=format_clock(login_time, sentinel, tz),
        display_logout_time=format_clock(shown_logout, sentinel, tz),
        span_minutes=span,
        total_breaks=total_breaks,
        break_duration_minutes=breaks,
        active_minutes=active,
    )


def status_label(snapshot: WorkerSnapshot) -> str:
    if snapshot.is_blocked:
        return "Blocked"
    if snapshot.is_active:
        return "On Break" if snapshot.is_on_break else "Online"
    return "Offline"


def reconcile_worker(
    snapshot: WorkerSnapshot,
    now: datetime,
    *,
    policy: UnclosedSessionPolicy = UnclosedSessionPolicy.ZERO,
    tz: tzinfo | None = None,
    sentinel: str = "N/A",
    default_reason: str = DEFAULT_REASON,
) -> WorkerActivity:
    """Aggregate breaks and reconcile the session of one live worker."""
    if snapshot.open_break is not None and not snapshot.is_on_break:
        logger.warning(
            "Worker %s has an open break but is not on break; ignoring it",
            snapshot.worker_id,
        )
    if snapshot.login_time is not None and not snapshot.is_active and (
        snapshot.logout_time is None or snapshot.logout_time <= snapshot.login_time
    ):
        logger.warning(
            "Worker %s is offline without a valid logout time (policy=%s)",
            snapshot.worker_id,
            policy.value,
        )

    live = snapshot.open_break if snapshot.is_on_break else None
    summary = aggregate_breaks(
        snapshot.break_logs,
        live is not None,
        live.start if live else None,
        now,
        reason=live.reason if live else None,
        default_reason=default_reason,
    )
    session = reconcile_session(
        snapshot.login_time,
        snapshot.logout_time,
        snapshot.is_active,
        summary.total_break_minutes,
        now,
        total_breaks=summary.total_breaks,
        policy=policy,
        tz=tz,
        sentinel=sentinel,
    )
    return WorkerActivity(
        worker_id=snapshot.worker_id,
        name=snapshot.name,
        employee_id=snapshot.employee_id,
        email=snapshot.email,
        role=snapshot.role,
        is_blocked=snapshot.is_blocked,
        status=status_label(snapshot),
        session=session,
        breaks=summary.entries,
        reasons=breakdown_by_reason(summary.entries, default_reason),
    )


def session_as_daily_record(session: ReconciledSession, day: date) -> DailyActivityRecord:
    """Express a live session as the history row for ``day``."""
    return DailyActivityRecord(
        date=day,
        login_time=session.login_time,
        logout_time=session.logout_time,
        total_online_time=session.active_minutes,
        break_count=session.total_breaks,
        total_break_time=session.break_duration_minutes,
        is_placeholder=session.login_time is None,
    )


def reconcile_history_day(
    day: HistoryDay,
    *,
    now: datetime,
    policy: UnclosedSessionPolicy = UnclosedSessionPolicy.ZERO,
    tz: tzinfo | None = None,
) -> DailyActivityRecord:
    """Normalise one history-feed row into a non-negative daily record.

    The feed's own ``total_online_time`` wins when present. Otherwise the
    day is reconciled as a finished session; for the ``NOW`` policy the
    implicit logout never runs past the end of that calendar day.
    """
    break_time = max(0.0, float(day.total_break_time or 0.0))
    break_count = max(0, day.break_count or 0)

    if day.total_online_time is not None:
        online = max(0.0, float(day.total_online_time))
        logout = day.logout_time
    else:
        _, day_end = day_bounds(day.date, tz)
        session = reconcile_session(
            day.login_time,
            day.logout_time,
            False,
            break_time,
            min(now, day_end),
            total_breaks=break_count,
            policy=policy,
            tz=tz,
        )
        online = session.active_minutes
        logout = session.logout_time

    return DailyActivityRecord(
        date=day.date,
        login_time=day.login_time,
        logout_time=logout,
        total_online_time=online,
        break_count=break_count,
        total_break_time=break_time,
    )
