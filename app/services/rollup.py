"""
Historical rollup: dense day-by-day rows and totals over a date range.
"""

from __future__ import annotations

import calendar
from collections.abc import Iterable
from datetime import date, timedelta
from enum import Enum

from pydantic import BaseModel

from app.schemas.activity import DailyActivityRecord, Rollup, RollupTotals
from app.services.timeutils import round_half_up


class ReportPeriod(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class DateRange(BaseModel):
    """Inclusive calendar-day range; ``end < start`` means an empty range."""

    start: date
    end: date

    @classmethod
    def today(cls, day: date) -> "DateRange":
        return cls(start=day, end=day)

    @classmethod
    def last_n_days(cls, n: int, today: date) -> "DateRange":
        if n < 1:
            raise ValueError("n must be at least 1")
        return cls(start=today - timedelta(days=n - 1), end=today)

    @classmethod
    def month_to_date(cls, day: date) -> "DateRange":
        return cls(start=day.replace(day=1), end=day)

    @classmethod
    def calendar_month(cls, year: int, month: int, today: date | None = None) -> "DateRange":
        """Whole month, cut at ``today`` for the running month.

        A month lying entirely after ``today`` yields an empty range.
        """
        if not 1 <= month <= 12:
            raise ValueError("Month must be 1-12")
        _, days_in_month = calendar.monthrange(year, month)
        start = date(year, month, 1)
        end = date(year, month, days_in_month)
        if today is not None and today < end:
            end = max(today, start - timedelta(days=1))
        return cls(start=start, end=end)

    def __contains__(self, day: object) -> bool:
        return isinstance(day, date) and self.start <= day <= self.end

    def __len__(self) -> int:
        return max(0, (self.end - self.start).days + 1)

    def days(self) -> list[date]:
        return [self.start + timedelta(days=i) for i in range(len(self))]


def range_for_period(
    period: ReportPeriod,
    today: date,
    month: int | None = None,
    year: int | None = None,
) -> DateRange:
    if period is ReportPeriod.DAILY:
        return DateRange.today(today)
    if period is ReportPeriod.WEEKLY:
        return DateRange.last_n_days(7, today)
    if period is ReportPeriod.MONTHLY:
        return DateRange.month_to_date(today)
    if month is None or year is None:
        raise ValueError("month and year are required for a custom period")
    return DateRange.calendar_month(year, month, today)


def placeholder(day: date) -> DailyActivityRecord:
    return DailyActivityRecord(date=day, is_placeholder=True)


def build_rollup(
    records: Iterable[DailyActivityRecord],
    date_range: DateRange,
    *,
    live_today: DailyActivityRecord | None = None,
) -> Rollup:
    """Lay ``records`` out over every day of ``date_range`` and total them.

    Days without a record get a zero-activity placeholder, so the row count
    always equals the number of days in the range. ``live_today`` fills its
    own date only when no finalized record exists for it. The daily average
    divides by the days that carry data, never by zero.
    """
    by_day: dict[date, DailyActivityRecord] = {}
    for record in records:
        by_day[record.date] = record
    if live_today is not None and live_today.date in date_range and live_today.date not in by_day:
        by_day[live_today.date] = live_today

    rows: list[DailyActivityRecord] = []
    totals = RollupTotals()
    for day in date_range.days():
        record = by_day.get(day)
        if record is None or record.is_placeholder:
            rows.append(placeholder(day))
            continue
        rows.append(record)
        totals.online_minutes += record.total_online_time
        totals.break_minutes += record.total_break_time
        totals.break_count += record.break_count
        totals.days_with_data += 1

    totals.average_daily_online = round_half_up(
        totals.online_minutes / max(1, totals.days_with_data)
    )
    return Rollup(start=date_range.start, end=date_range.end, rows=rows, totals=totals)


class TeamTotals(BaseModel):
    total_workers: int
    average_online_minutes: int


def summarize_team(members: Iterable[tuple[bool, Rollup]]) -> TeamTotals:
    """Worker count and mean online minutes, blocked workers excluded."""
    online = [rollup.totals.online_minutes for blocked, rollup in members if not blocked]
    average = round_half_up(sum(online) / len(online)) if online else 0
    return TeamTotals(total_workers=len(online), average_online_minutes=average)
