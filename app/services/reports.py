"""
Report assembly: turns rollups plus worker identity into export-ready reports.

Every figure handed in here has already been reconciled and clamped; this
module only formats it.
"""

from __future__ import annotations

import calendar
from collections.abc import Sequence
from datetime import date, datetime, timezone, tzinfo

from app.schemas.activity import DailyActivityRecord, Rollup, WorkerActivity
from app.schemas.report import (ReportRow, ReportSummary, TeamMemberReport,
                                TeamReport, WorkerIdentity, WorkerReport)
from app.services.rollup import DateRange, ReportPeriod, summarize_team
from app.services.timeutils import (ensure_utc, format_clock,
                                    format_duration_compact)


def identity_for(activity: WorkerActivity) -> WorkerIdentity:
    return WorkerIdentity(
        name=activity.name,
        employee_id=activity.employee_id,
        email=activity.email,
        role=activity.role,
        status=activity.status,
        is_blocked=activity.is_blocked,
    )


def period_label(period: ReportPeriod, date_range: DateRange, today: date) -> str:
    if period is ReportPeriod.DAILY:
        return today.strftime("%B %d, %Y")
    if period is ReportPeriod.WEEKLY:
        return f"Last 7 Days ({date_range.start:%b %d} - {date_range.end:%b %d, %Y})"
    if period is ReportPeriod.MONTHLY:
        return f"{today:%B %Y} (Day 1 - Day {today.day})"
    return f"{calendar.month_name[date_range.start.month]} {date_range.start.year}"


def _generated_on(generated_at: datetime, tz: tzinfo | None) -> str:
    return ensure_utc(generated_at).astimezone(tz or timezone.utc).strftime("%d %b %Y, %I:%M %p")


def report_row(record: DailyActivityRecord, tz: tzinfo | None = None) -> ReportRow:
    return ReportRow(
        date=record.date.strftime("%b %d, %Y"),
        login_time=format_clock(record.login_time, "N/A", tz),
        logout_time=format_clock(record.logout_time, "N/A", tz),
        online_time=format_duration_compact(record.total_online_time),
        breaks=record.break_count,
        break_duration=format_duration_compact(record.total_break_time),
    )


def report_summary(rollup: Rollup) -> ReportSummary:
    totals = rollup.totals
    return ReportSummary(
        days_with_data=totals.days_with_data,
        total_online_minutes=totals.online_minutes,
        total_online=format_duration_compact(totals.online_minutes),
        total_break_minutes=totals.break_minutes,
        total_break=format_duration_compact(totals.break_minutes),
        total_breaks=totals.break_count,
        average_daily_online_minutes=totals.average_daily_online,
        average_daily_online=format_duration_compact(totals.average_daily_online),
    )


def build_worker_report(
    identity: WorkerIdentity,
    rollup: Rollup,
    *,
    period: ReportPeriod,
    label: str,
    generated_at: datetime,
    tz: tzinfo | None = None,
) -> WorkerReport:
    return WorkerReport(
        title=f"{identity.role or 'Worker'} Activity Report",
        generated_on=_generated_on(generated_at, tz),
        period=period.value,
        period_label=label,
        identity=identity,
        rows=[report_row(record, tz) for record in rollup.rows],
        summary=report_summary(rollup),
    )


def build_team_report(
    members: Sequence[tuple[WorkerIdentity, Rollup]],
    *,
    period: ReportPeriod,
    label: str,
    generated_at: datetime,
    role: str | None = None,
    tz: tzinfo | None = None,
) -> TeamReport:
    """Assemble the team-wide report; blocked workers stay listed but are
    left out of the headline count and average."""
    team = summarize_team((identity.is_blocked, rollup) for identity, rollup in members)
    member_reports = []
    for identity, rollup in members:
        rows = [report_row(record, tz) for record in rollup.rows]
        last = rows[-1] if rows else None
        member_reports.append(
            TeamMemberReport(
                identity=identity,
                login_time=last.login_time if last else "N/A",
                logout_time=last.logout_time if last else "N/A",
                rows=rows,
                summary=report_summary(rollup),
            )
        )
    return TeamReport(
        title=f"{role or 'Team'} Activity Report",
        generated_on=_generated_on(generated_at, tz),
        period=period.value,
        period_label=label,
        total_workers=team.total_workers,
        average_online_minutes=team.average_online_minutes,
        average_online=format_duration_compact(team.average_online_minutes),
        members=member_reports,
        generated_at=generated_at,
    )
