"""Pydantic schemas for worker activity: snapshots, breaks, sessions, rollups."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum

from pydantic import BaseModel, Field


# ── Live worker state ───────────────────────────────────────────────
class WorkStatus(str, Enum):
    ACTIVE = "active"
    BREAK = "break"


class BreakLogEntry(BaseModel):
    start: datetime
    end: datetime | None = None
    duration_minutes: float | None = None
    reason: str | None = None

    @property
    def is_open(self) -> bool:
        return self.end is None

    @property
    def counted_minutes(self) -> float:
        """Minutes this closed entry contributes; open or malformed entries count 0."""
        if self.is_open or self.duration_minutes is None:
            return 0.0
        return max(0.0, float(self.duration_minutes))


class OpenBreak(BaseModel):
    start: datetime
    reason: str | None = None


class WorkerSnapshot(BaseModel):
    worker_id: str
    name: str = ""
    employee_id: str | None = None
    email: str | None = None
    role: str | None = None
    is_blocked: bool = False
    login_time: datetime | None = None
    logout_time: datetime | None = None
    is_active: bool = False
    work_status: WorkStatus = WorkStatus.ACTIVE
    break_logs: list[BreakLogEntry] = Field(default_factory=list)
    open_break: OpenBreak | None = None

    @property
    def is_on_break(self) -> bool:
        return self.is_active and self.work_status is WorkStatus.BREAK


# ── Break aggregation ───────────────────────────────────────────────
class BreakSummary(BaseModel):
    total_breaks: int = 0
    total_break_minutes: float = 0.0
    entries: list[BreakLogEntry] = Field(default_factory=list)  # most recent first


class ReasonTotal(BaseModel):
    reason: str
    minutes: float


# ── Session reconciliation ──────────────────────────────────────────
class SessionRegime(str, Enum):
    NO_LOGIN = "no_login"
    ONLINE = "online"
    LOGGED_OUT = "logged_out"
    UNCLOSED = "unclosed"


class ReconciledSession(BaseModel):
    regime: SessionRegime
    login_time: datetime | None = None
    logout_time: datetime | None = None
    display_login_time: str
    display_logout_time: str
    span_minutes: int = 0
    total_breaks: int = 0
    break_duration_minutes: float = 0.0
    active_minutes: float = 0.0


class WorkerActivity(BaseModel):
    worker_id: str
    name: str
    employee_id: str | None = None
    email: str | None = None
    role: str | None = None
    is_blocked: bool = False
    status: str
    session: ReconciledSession
    breaks: list[BreakLogEntry]
    reasons: list[ReasonTotal]


# ── History & rollups ───────────────────────────────────────────────
class HistoryDay(BaseModel):
    """One row of the history feed as received; every figure may be missing."""

    date: date
    login_time: datetime | None = None
    logout_time: datetime | None = None
    total_online_time: float | None = None
    break_count: int | None = None
    total_break_time: float | None = None


class DailyActivityRecord(BaseModel):
    date: date
    login_time: datetime | None = None
    logout_time: datetime | None = None
    total_online_time: float = 0.0
    break_count: int = 0
    total_break_time: float = 0.0
    is_placeholder: bool = False


class RollupTotals(BaseModel):
    online_minutes: float = 0.0
    break_minutes: float = 0.0
    break_count: int = 0
    days_with_data: int = 0
    average_daily_online: int = 0


class Rollup(BaseModel):
    start: date
    end: date
    rows: list[DailyActivityRecord]
    totals: RollupTotals


# ── API responses ───────────────────────────────────────────────────
class RecordFailure(BaseModel):
    worker_id: str | None
    detail: str


class LiveActivityResponse(BaseModel):
    generated_at: datetime
    total_workers: int
    workers: list[WorkerActivity]
    failures: list[RecordFailure] = Field(default_factory=list)


class BreakEntryView(BaseModel):
    start: datetime
    end: datetime | None
    reason: str
    is_open: bool
    duration_minutes: float
    duration_display: str


class BreakDetailsResponse(BaseModel):
    worker_id: str
    name: str
    employee_id: str | None
    total_breaks: int
    total_break_minutes: float
    total_break_display: str
    entries: list[BreakEntryView]
    reasons: list[ReasonTotal]


class DayActivityResponse(BaseModel):
    worker_id: str
    name: str
    is_live: bool
    record: DailyActivityRecord
    display_login_time: str
    display_logout_time: str
    online_display: str
    break_display: str


class HealthResponse(BaseModel):
    db: bool
    source: str
