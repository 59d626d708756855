"""
Break aggregation: closed break logs plus the live, still-open break.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from datetime import datetime

from app.schemas.activity import BreakLogEntry, BreakSummary, ReasonTotal
from app.services.timeutils import minutes_between

DEFAULT_REASON = "Break"


def open_break_minutes(started_at: datetime, now: datetime) -> float:
    """Elapsed minutes of a running break; clock skew clamps to 0."""
    return max(0.0, minutes_between(started_at, now))


def aggregate_breaks(
    break_logs: Sequence[BreakLogEntry],
    is_on_break: bool,
    break_started_at: datetime | None,
    now: datetime,
    *,
    reason: str | None = None,
    default_reason: str = DEFAULT_REASON,
) -> BreakSummary:
    """Count and sum a worker's breaks, synthesizing the live one if any.

    Every logged entry counts as one break. Only closed entries with a
    positive duration add minutes; a stored duration on an open entry is
    ignored. When the worker is on break and the start is known, one open
    entry is added whose duration is the time elapsed up to ``now``.

    Entries come back most recent first: the live break, then the closed
    log in reverse chronological order.
    """
    total_breaks = len(break_logs)
    total_minutes = sum(entry.counted_minutes for entry in break_logs)
    entries = list(reversed(break_logs))

    if is_on_break and break_started_at is not None:
        elapsed = open_break_minutes(break_started_at, now)
        entries.insert(
            0,
            BreakLogEntry(
                start=break_started_at,
                end=None,
                duration_minutes=elapsed,
                reason=reason or default_reason,
            ),
        )
        total_breaks += 1
        total_minutes += elapsed

    return BreakSummary(
        total_breaks=total_breaks,
        total_break_minutes=total_minutes,
        entries=entries,
    )


def entry_minutes(entry: BreakLogEntry) -> float:
    """Minutes to show for an entry in a summary, open entries included."""
    if entry.duration_minutes is None:
        return 0.0
    return max(0.0, float(entry.duration_minutes))


def breakdown_by_reason(
    entries: Iterable[BreakLogEntry],
    default_reason: str = DEFAULT_REASON,
) -> list[ReasonTotal]:
    """Group break minutes by reason, keeping first-seen order."""
    totals: dict[str, float] = {}
    for entry in entries:
        key = entry.reason or default_reason
        totals[key] = totals.get(key, 0.0) + entry_minutes(entry)
    return [ReasonTotal(reason=key, minutes=minutes) for key, minutes in totals.items()]
