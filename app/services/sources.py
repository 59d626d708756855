"""
Activity sources and record ingestion.

A source hands back raw worker and history records in the CRM's own shape;
``parse_worker_record`` / ``parse_history_day`` turn them into typed
snapshots. Parsing is strict about timestamps that are present but
unreadable, and batch helpers keep such failures local to one record.
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections import defaultdict
from collections.abc import Iterable, Mapping, Sequence
from datetime import date, datetime, timedelta, tzinfo
from typing import Any, Protocol

import httpx
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from app.core.config import settings
from app.core.exceptions import ActivitySourceError, InvalidInput
from app.models.daily_activity import DailyActivity
from app.models.worker import Worker
from app.schemas.activity import (BreakLogEntry, HistoryDay, OpenBreak,
                                  RecordFailure, WorkerSnapshot, WorkStatus)
from app.services.timeutils import local_date, parse_time_point

logger = logging.getLogger(__name__)

Record = dict[str, Any]


# ── Field helpers ───────────────────────────────────────────────────
def _time(raw: Mapping[str, Any], key: str, record_id: str | None) -> datetime | None:
    try:
        return parse_time_point(raw.get(key), strict=True, field=key)
    except InvalidInput as exc:
        raise InvalidInput(key, exc.value, record_id) from None


def _number(value: Any) -> float | None:
    """Lenient numeric read; anything unusable is treated as absent."""
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _first(raw: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        if raw.get(key) is not None:
            return raw[key]
    return None


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


# ── Ingestion ───────────────────────────────────────────────────────
def parse_worker_record(raw: Mapping[str, Any]) -> WorkerSnapshot:
    """Build a :class:`WorkerSnapshot` from a CRM worker record.

    An open entry in ``breakLogs`` is promoted to the snapshot's live break
    when the worker is on break and no ``break_time`` was given. Any other
    open entry keeps counting as a break but loses its stored duration.
    """
    if not isinstance(raw, Mapping):
        raise InvalidInput("record", raw)
    worker_id = _text(_first(raw, "_id", "id"))
    if worker_id is None:
        raise InvalidInput("id", None)

    is_active = bool(raw.get("is_active"))
    status = WorkStatus.BREAK if raw.get("workStatus") == "break" else WorkStatus.ACTIVE
    on_break = is_active and status is WorkStatus.BREAK

    open_break = None
    break_started_at = _time(raw, "break_time", worker_id)
    if break_started_at is not None:
        open_break = OpenBreak(start=break_started_at, reason=_text(raw.get("breakReason")))

    logs: list[BreakLogEntry] = []
    for item in raw.get("breakLogs") or []:
        if not isinstance(item, Mapping):
            raise InvalidInput("breakLogs", item, worker_id)
        start = _time(item, "start", worker_id)
        if start is None:
            raise InvalidInput("breakLogs.start", item.get("start"), worker_id)
        end = _time(item, "end", worker_id)
        reason = _text(item.get("reason"))
        if end is None:
            if on_break and open_break is None:
                open_break = OpenBreak(start=start, reason=reason)
                continue
            if open_break is not None and start == open_break.start:
                continue
            logger.warning("Worker %s has a stray open break log at %s", worker_id, start.isoformat())
            logs.append(BreakLogEntry(start=start, end=None, duration_minutes=None, reason=reason))
            continue
        logs.append(
            BreakLogEntry(
                start=start,
                end=end,
                duration_minutes=_number(item.get("duration")),
                reason=reason,
            )
        )

    return WorkerSnapshot(
        worker_id=worker_id,
        name=_text(raw.get("name")) or "",
        employee_id=_text(raw.get("employee_id")),
        email=_text(raw.get("email")),
        role=_text(raw.get("role")),
        is_blocked=bool(raw.get("isBlocked")),
        login_time=_time(raw, "login_time", worker_id),
        logout_time=_time(raw, "logout_time", worker_id),
        is_active=is_active,
        work_status=status,
        break_logs=logs,
        open_break=open_break,
    )


def parse_history_day(raw: Mapping[str, Any], tz: tzinfo | None = None) -> HistoryDay:
    if not isinstance(raw, Mapping):
        raise InvalidInput("record", raw)
    raw_date = raw.get("date")
    day: date | None = None
    if isinstance(raw_date, date) and not isinstance(raw_date, datetime):
        day = raw_date
    elif isinstance(raw_date, str) and len(raw_date.strip()) == 10:
        try:
            day = date.fromisoformat(raw_date.strip())
        except ValueError:
            day = None
    else:
        point = parse_time_point(raw_date)
        day = local_date(point, tz) if point is not None else None
    if day is None:
        raise InvalidInput("date", raw_date)

    record_id = day.isoformat()
    count = _number(raw.get("breakCount"))
    return HistoryDay(
        date=day,
        login_time=_time(raw, "loginTime", record_id),
        logout_time=_time(raw, "logoutTime", record_id),
        total_online_time=_number(_first(raw, "totalOnlineTime", "onlineTime")),
        break_count=int(count) if count is not None else None,
        total_break_time=_number(_first(raw, "totalBreakTime", "breakTime")),
    )


def snapshots_from_records(
    records: Iterable[Mapping[str, Any]],
) -> tuple[list[WorkerSnapshot], list[RecordFailure]]:
    """Parse a batch of worker records; a bad record never stops the rest."""
    snapshots: list[WorkerSnapshot] = []
    failures: list[RecordFailure] = []
    for raw in records:
        try:
            snapshots.append(parse_worker_record(raw))
        except InvalidInput as exc:
            logger.warning("Skipping worker record: %s", exc)
            worker_id = exc.record_id
            if worker_id is None and isinstance(raw, Mapping):
                worker_id = _text(_first(raw, "_id", "id"))
            failures.append(RecordFailure(worker_id=worker_id, detail=str(exc)))
    return snapshots, failures


def history_from_records(
    records: Iterable[Mapping[str, Any]],
    tz: tzinfo | None = None,
) -> list[HistoryDay]:
    """Parse a history feed, dropping (and logging) unreadable days."""
    days: list[HistoryDay] = []
    for raw in records:
        try:
            days.append(parse_history_day(raw, tz))
        except InvalidInput as exc:
            logger.warning("Skipping history row: %s", exc)
    return days


# ── Sources ─────────────────────────────────────────────────────────
class ActivitySource(Protocol):
    name: str

    async def list_workers(self, role: str | None = None) -> list[Record]: ...

    async def get_worker(self, worker_id: str) -> Record | None: ...

    async def get_history(self, worker_id: str, start: date, end: date) -> list[Record]: ...

    async def get_histories(
        self, worker_ids: Sequence[str], start: date, end: date
    ) -> dict[str, list[Record]]: ...


class DatabaseActivitySource:
    """Reads workers and history from the service's own tables."""

    name = "database"

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def list_workers(self, role: str | None = None) -> list[Record]:
        query = select(Worker).options(selectinload(Worker.break_logs)).order_by(Worker.name)
        if role:
            query = query.where(Worker.role == role)
        result = await self.db.execute(query)
        return [worker.to_record() for worker in result.scalars().all()]

    async def get_worker(self, worker_id: str) -> Record | None:
        if not worker_id.isdigit():
            return None
        result = await self.db.execute(
            select(Worker)
            .options(selectinload(Worker.break_logs))
            .where(Worker.id == int(worker_id))
        )
        worker = result.scalar_one_or_none()
        return worker.to_record() if worker else None

    async def get_history(self, worker_id: str, start: date, end: date) -> list[Record]:
        histories = await self.get_histories([worker_id], start, end)
        return histories.get(worker_id, [])

    async def get_histories(
        self, worker_ids: Sequence[str], start: date, end: date
    ) -> dict[str, list[Record]]:
        ids = [int(worker_id) for worker_id in worker_ids if worker_id.isdigit()]
        if not ids:
            return {}
        # One query for every worker in the batch.
        result = await self.db.execute(
            select(DailyActivity)
            .where(
                DailyActivity.worker_id.in_(ids),
                DailyActivity.date >= start.isoformat(),
                DailyActivity.date <= end.isoformat(),
            )
            .order_by(DailyActivity.worker_id, DailyActivity.date)
        )
        grouped: dict[str, list[Record]] = defaultdict(list)
        for row in result.scalars().all():
            grouped[str(row.worker_id)].append(row.to_record())
        return dict(grouped)


class HttpActivitySource:
    """Reads workers and history from the CRM backend's REST API.

    The history endpoint returns the rolling feed; days outside the
    requested range are left for the rollup to ignore.
    """

    name = "http"

    def __init__(
        self,
        client: httpx.AsyncClient,
        history_days: int | None = None,
        today: date | None = None,
    ) -> None:
        self.client = client
        self.history_days = history_days or settings.HISTORY_DAYS
        # Request-local date; the upstream window is only reported when known.
        self.today = today

    async def _get(self, path: str, *, allow_missing: bool = False) -> Any:
        try:
            response = await self.client.get(path)
        except httpx.HTTPError as exc:
            raise ActivitySourceError(f"GET {path} failed: {exc}") from exc

        if response.status_code == 404 and allow_missing:
            return None
        if response.status_code >= 400:
            raise ActivitySourceError(
                f"GET {path} returned {response.status_code}", status_code=response.status_code
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise ActivitySourceError(f"GET {path} returned invalid JSON") from exc

        if isinstance(payload, dict):
            if payload.get("status") is False:
                raise ActivitySourceError(payload.get("message") or f"GET {path} was refused")
            return payload.get("data")
        return payload

    async def list_workers(self, role: str | None = None) -> list[Record]:
        data = await self._get("/api/v1/employees") or []
        if role:
            data = [emp for emp in data if isinstance(emp, Mapping) and emp.get("role") == role]
        return list(data)

    async def get_worker(self, worker_id: str) -> Record | None:
        return await self._get(f"/api/v1/employees/{worker_id}", allow_missing=True)

    async def get_history(self, worker_id: str, start: date, end: date) -> list[Record]:
        oldest = self.today - timedelta(days=self.history_days - 1) if self.today else None
        if oldest is not None and start < oldest:
            logger.info(
                "History for worker %s before %s is outside the upstream's %d-day window",
                worker_id,
                oldest.isoformat(),
                self.history_days,
            )
        data = await self._get(f"/api/v1/user/activity/30-days/{worker_id}")
        return list(data or [])

    async def get_histories(
        self, worker_ids: Sequence[str], start: date, end: date
    ) -> dict[str, list[Record]]:
        feeds = await asyncio.gather(
            *(self.get_history(worker_id, start, end) for worker_id in worker_ids)
        )
        return dict(zip(worker_ids, feeds))


def build_http_client() -> httpx.AsyncClient:
    headers = {"Accept": "application/json"}
    if settings.UPSTREAM_API_TOKEN:
        headers["Authorization"] = f"Bearer {settings.UPSTREAM_API_TOKEN}"
    return httpx.AsyncClient(
        base_url=settings.UPSTREAM_API_URL,
        headers=headers,
        timeout=settings.UPSTREAM_TIMEOUT_SECONDS,
    )
