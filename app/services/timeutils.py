"""
Time point parsing and duration formatting shared by every activity view.

All durations travel through the system as minutes (float). The formatters
below are the only place they are turned into text, so detail views and
exports derived from the same minute value always agree.
"""

from __future__ import annotations

import math
from datetime import date, datetime, timedelta, timezone, tzinfo

from app.core.exceptions import InvalidInput

ZERO_LONG = "00h 00m 00s"
ZERO_COMPACT = "0m"


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def ensure_utc(dt: datetime) -> datetime:
    """Normalise a potentially-naive timestamp to UTC-aware."""
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_time_point(raw: object, *, strict: bool = False, field: str = "time") -> datetime | None:
    """Turn a raw timestamp into an aware UTC datetime.

    ``None``, empty strings and unparseable values yield ``None``. With
    ``strict=True`` a value that is present but unparseable raises
    :class:`InvalidInput` instead.
    """
    if raw is None:
        return None
    if isinstance(raw, datetime):
        return ensure_utc(raw)
    if isinstance(raw, date):
        return datetime(raw.year, raw.month, raw.day, tzinfo=timezone.utc)
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        # Epoch milliseconds, as emitted by JavaScript clients.
        try:
            return datetime.fromtimestamp(raw / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError):
            if strict:
                raise InvalidInput(field, raw) from None
            return None
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return ensure_utc(datetime.fromisoformat(text))
        except ValueError:
            if strict:
                raise InvalidInput(field, raw) from None
            return None
    if strict:
        raise InvalidInput(field, raw)
    return None


def parse_utc_offset(offset: str) -> timezone:
    """Parse ``+05:00`` / ``-03:30`` / ``+5`` into a fixed-offset tzinfo."""
    text = offset.strip()
    if not text or text[0] not in "+-":
        raise ValueError(f"UTC offset must start with + or -: {offset!r}")
    sign = 1 if text[0] == "+" else -1
    parts = text[1:].split(":")
    hours = int(parts[0])
    minutes = int(parts[1]) if len(parts) > 1 else 0
    return timezone(timedelta(hours=sign * hours, minutes=sign * minutes))


def local_date(point: datetime, tz: tzinfo | None = None) -> date:
    """Calendar date of ``point`` in the display timezone."""
    return ensure_utc(point).astimezone(tz or timezone.utc).date()


def day_bounds(day: date, tz: tzinfo | None = None) -> tuple[datetime, datetime]:
    """UTC start and end instants of a calendar day in the display timezone."""
    start = datetime(day.year, day.month, day.day, tzinfo=tz or timezone.utc)
    return start.astimezone(timezone.utc), (start + timedelta(days=1)).astimezone(timezone.utc)


def minutes_between(start: datetime, end: datetime) -> float:
    return (ensure_utc(end) - ensure_utc(start)).total_seconds() / 60


def format_clock(point: datetime | None, sentinel: str = "N/A", tz: tzinfo | None = None) -> str:
    """Format a timestamp to readable hh:mm AM/PM."""
    if point is None:
        return sentinel
    return ensure_utc(point).astimezone(tz or timezone.utc).strftime("%I:%M %p")


def format_duration_long(minutes: float | None) -> str:
    if not minutes or minutes <= 0:
        return ZERO_LONG
    total_seconds = round_half_up(minutes * 60)
    hours, rest = divmod(total_seconds, 3600)
    mins, secs = divmod(rest, 60)
    return f"{hours:02d}h {mins:02d}m {secs:02d}s"


def format_duration_clock(minutes: float | None) -> str:
    """Axis-style ``HH:MM:SS`` rendering of a minute value."""
    if not minutes or minutes <= 0:
        return "00:00:00"
    total_seconds = round_half_up(minutes * 60)
    hours, rest = divmod(total_seconds, 3600)
    mins, secs = divmod(rest, 60)
    return f"{hours:02d}:{mins:02d}:{secs:02d}"


def format_duration_compact(minutes: float | None) -> str:
    if not minutes or minutes <= 0:
        return ZERO_COMPACT
    hours, mins = divmod(round_half_up(minutes), 60)
    if hours > 0:
        return f"{hours}h {mins:02d}m"
    return f"{mins}m"
