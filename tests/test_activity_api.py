"""Tests for the live activity endpoints."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.deps import get_activity_source
from app.core.exceptions import ActivitySourceError
from app.main import app
from app.models.daily_activity import DailyActivity
from app.models.worker import BreakLog, Worker

NOW = datetime(2026, 10, 19, 11, 30, tzinfo=timezone.utc)
LOGIN = datetime(2026, 10, 19, 9, 0, tzinfo=timezone.utc)


async def _seed_worker(db: AsyncSession, name: str = "Ayesha Noor", **overrides) -> Worker:
    fields = {
        "name": name,
        "employee_id": "EMP-001",
        "email": f"{name.split()[0].lower()}@example.com",
        "role": "Agent",
        "is_active": True,
        "work_status": "active",
        "login_time": LOGIN,
    }
    fields.update(overrides)
    worker = Worker(**fields)
    db.add(worker)
    await db.commit()
    return worker


class _StubSource:
    """Source returning canned records, for failure paths the DB cannot produce."""

    name = "stub"

    def __init__(self, workers=None, error: Exception | None = None):
        self.workers = workers or []
        self.error = error

    async def list_workers(self, role=None):
        if self.error:
            raise self.error
        return self.workers

    async def get_worker(self, worker_id):
        if self.error:
            raise self.error
        return next((w for w in self.workers if w["_id"] == worker_id), None)

    async def get_history(self, worker_id, start, end):
        return []

    async def get_histories(self, worker_ids, start, end):
        return {}


def _use_source(source) -> None:
    async def _override():
        return source

    app.dependency_overrides[get_activity_source] = _override


# ── All workers ─────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_list_worker_activity(async_client: AsyncClient, db_session: AsyncSession):
    await _seed_worker(db_session, "Ayesha Noor")
    await _seed_worker(
        db_session,
        "Qasim Raza",
        role="QA",
        is_active=False,
        logout_time=datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc),
    )

    resp = await async_client.get("/api/v1/activity/workers")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_workers"] == 2
    assert data["failures"] == []

    by_name = {w["name"]: w for w in data["workers"]}
    assert by_name["Ayesha Noor"]["status"] == "Online"
    assert by_name["Ayesha Noor"]["session"]["active_minutes"] == 150
    assert by_name["Ayesha Noor"]["session"]["display_logout_time"] == "-"
    assert by_name["Qasim Raza"]["status"] == "Offline"
    assert by_name["Qasim Raza"]["session"]["active_minutes"] == 60


@pytest.mark.asyncio
async def test_list_worker_activity_by_role(async_client: AsyncClient, db_session: AsyncSession):
    await _seed_worker(db_session, "Ayesha Noor")
    await _seed_worker(db_session, "Qasim Raza", role="QA")

    resp = await async_client.get("/api/v1/activity/workers", params={"role": "QA"})
    names = [w["name"] for w in resp.json()["workers"]]
    assert names == ["Qasim Raza"]


@pytest.mark.asyncio
async def test_list_worker_activity_empty(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/activity/workers")
    assert resp.status_code == 200
    assert resp.json()["total_workers"] == 0


@pytest.mark.asyncio
async def test_bad_record_is_reported_not_fatal(async_client: AsyncClient):
    _use_source(
        _StubSource(
            workers=[
                {"_id": "a1", "name": "Good", "is_active": True, "login_time": "2026-10-19T09:00:00Z"},
                {"_id": "b2", "name": "Bad", "is_active": True, "login_time": "half past nine"},
            ]
        )
    )
    resp = await async_client.get("/api/v1/activity/workers")
    assert resp.status_code == 200
    data = resp.json()
    assert [w["worker_id"] for w in data["workers"]] == ["a1"]
    assert data["failures"][0]["worker_id"] == "b2"


@pytest.mark.asyncio
async def test_non_object_record_is_reported_not_fatal(async_client: AsyncClient):
    _use_source(
        _StubSource(
            workers=[
                {"_id": "a1", "name": "Good", "is_active": True, "login_time": "2026-10-19T09:00:00Z"},
                None,
                "a1,Good,active",
            ]
        )
    )
    resp = await async_client.get("/api/v1/activity/workers")
    assert resp.status_code == 200
    data = resp.json()
    assert [w["worker_id"] for w in data["workers"]] == ["a1"]
    assert len(data["failures"]) == 2
    assert all(f["worker_id"] is None for f in data["failures"])


@pytest.mark.asyncio
async def test_unreachable_source_is_502(async_client: AsyncClient):
    _use_source(_StubSource(error=ActivitySourceError("connection refused")))
    resp = await async_client.get("/api/v1/activity/workers")
    assert resp.status_code == 502
    assert resp.json() == {"detail": "Activity source unavailable", "success": False}


# ── One worker ──────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_worker_on_break(async_client: AsyncClient, db_session: AsyncSession):
    worker = await _seed_worker(
        db_session,
        login_time=NOW - timedelta(minutes=40),
        work_status="break",
        break_started_at=NOW - timedelta(minutes=10),
        break_reason="Tea",
    )
    resp = await async_client.get(f"/api/v1/activity/workers/{worker.id}")
    assert resp.status_code == 200
    data = resp.json()
    assert data["status"] == "On Break"
    assert data["session"]["total_breaks"] == 1
    assert data["session"]["break_duration_minutes"] == pytest.approx(10)
    assert data["session"]["active_minutes"] == pytest.approx(30)


@pytest.mark.asyncio
async def test_unknown_worker_is_404(async_client: AsyncClient):
    resp = await async_client.get("/api/v1/activity/workers/9999")
    assert resp.status_code == 404
    assert resp.json()["success"] is False

    resp = await async_client.get("/api/v1/activity/workers/not-a-number")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_unreadable_worker_record_is_422(async_client: AsyncClient):
    _use_source(_StubSource(workers=[{"_id": "b2", "name": "Bad", "logout_time": "soon"}]))
    resp = await async_client.get("/api/v1/activity/workers/b2")
    assert resp.status_code == 422
    assert "logout_time" in resp.json()["detail"]


# ── Breaks ──────────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_break_details(async_client: AsyncClient, db_session: AsyncSession):
    worker = await _seed_worker(
        db_session,
        work_status="break",
        break_started_at=NOW - timedelta(minutes=15),
        break_logs=[
            BreakLog(
                start=datetime(2026, 10, 19, 10, 0, tzinfo=timezone.utc),
                end=datetime(2026, 10, 19, 10, 30, tzinfo=timezone.utc),
                duration=30,
                reason="Lunch",
            )
        ],
    )
    resp = await async_client.get(f"/api/v1/activity/workers/{worker.id}/breaks")
    assert resp.status_code == 200
    data = resp.json()
    assert data["total_breaks"] == 2
    assert data["total_break_minutes"] == pytest.approx(45)
    assert data["total_break_display"] == "00h 45m 00s"

    live, closed = data["entries"]
    assert live["is_open"] is True
    assert live["reason"] == "Break"
    assert live["duration_display"] == "00h 15m 00s"
    assert closed["reason"] == "Lunch"
    assert closed["duration_display"] == "00h 30m 00s"


@pytest.mark.asyncio
async def test_break_details_without_breaks(async_client: AsyncClient, db_session: AsyncSession):
    worker = await _seed_worker(db_session)
    resp = await async_client.get(f"/api/v1/activity/workers/{worker.id}/breaks")
    data = resp.json()
    assert data["total_breaks"] == 0
    assert data["total_break_display"] == "00h 00m 00s"
    assert data["entries"] == []


# ── Single day ──────────────────────────────────────────────────────
@pytest.mark.asyncio
async def test_past_day_comes_from_history(async_client: AsyncClient, db_session: AsyncSession):
    worker = await _seed_worker(db_session)
    db_session.add(
        DailyActivity(
            worker_id=worker.id,
            date="2026-10-15",
            login_time=datetime(2026, 10, 15, 9, 0, tzinfo=timezone.utc),
            logout_time=datetime(2026, 10, 15, 17, 0, tzinfo=timezone.utc),
            total_online_time=450,
            break_count=1,
            total_break_time=30,
        )
    )
    await db_session.commit()

    resp = await async_client.get(f"/api/v1/activity/workers/{worker.id}/days/2026-10-15")
    assert resp.status_code == 200
    data = resp.json()
    assert data["is_live"] is False
    assert data["record"]["total_online_time"] == 450
    assert data["display_login_time"] == "09:00 AM"
    assert data["display_logout_time"] == "05:00 PM"
    assert data["online_display"] == "7h 30m"
    assert data["break_display"] == "30m"


@pytest.mark.asyncio
async def test_today_falls_back_to_live_session(async_client: AsyncClient, db_session: AsyncSession):
    worker = await _seed_worker(db_session)
    resp = await async_client.get(f"/api/v1/activity/workers/{worker.id}/days/2026-10-19")
    data = resp.json()
    assert data["is_live"] is True
    assert data["record"]["total_online_time"] == 150
    assert data["online_display"] == "2h 30m"
    assert data["display_logout_time"] == "N/A"


@pytest.mark.asyncio
async def test_day_without_data_is_a_placeholder(async_client: AsyncClient, db_session: AsyncSession):
    worker = await _seed_worker(db_session)
    resp = await async_client.get(f"/api/v1/activity/workers/{worker.id}/days/2026-10-11")
    data = resp.json()
    assert data["is_live"] is False
    assert data["record"]["is_placeholder"] is True
    assert data["online_display"] == "0m"


@pytest.mark.asyncio
async def test_malformed_day_is_400(async_client: AsyncClient, db_session: AsyncSession):
    worker = await _seed_worker(db_session)
    resp = await async_client.get(f"/api/v1/activity/workers/{worker.id}/days/19-10-2026")
    assert resp.status_code == 400


@pytest.mark.asyncio
async def test_today_ignores_a_session_from_yesterday(async_client: AsyncClient, db_session: AsyncSession):
    worker = await _seed_worker(
        db_session,
        is_active=False,
        login_time=LOGIN - timedelta(days=1),
        logout_time=LOGIN - timedelta(days=1) + timedelta(hours=8),
    )
    resp = await async_client.get(f"/api/v1/activity/workers/{worker.id}/days/2026-10-19")
    data = resp.json()
    assert data["is_live"] is False
    assert data["record"]["is_placeholder"] is True
    assert data["online_display"] == "0m"
