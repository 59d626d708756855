"""Tests for the upstream CRM source, driven through httpx.MockTransport."""

import logging
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from app.api.v1 import deps
from app.core.exceptions import ActivitySourceError
from app.services.sources import HttpActivitySource

EMPLOYEES = [
    {"_id": "a1", "name": "Ayesha", "role": "Agent", "is_active": True},
    {"_id": "q1", "name": "Qasim", "role": "QA", "is_active": False},
]
HISTORY = {
    "a1": [{"date": "2026-10-18", "totalOnlineTime": 420}],
    "q1": [{"date": "2026-10-18", "totalOnlineTime": 300}],
}


def _crm(request: httpx.Request) -> httpx.Response:
    path = request.url.path
    if path == "/api/v1/employees":
        return httpx.Response(200, json={"status": True, "data": EMPLOYEES})
    if path.startswith("/api/v1/employees/"):
        worker_id = path.rsplit("/", 1)[-1]
        match = next((e for e in EMPLOYEES if e["_id"] == worker_id), None)
        if match is None:
            return httpx.Response(404, json={"status": False, "message": "Not found"})
        return httpx.Response(200, json={"status": True, "data": match})
    if path.startswith("/api/v1/user/activity/30-days/"):
        worker_id = path.rsplit("/", 1)[-1]
        return httpx.Response(200, json={"status": True, "data": HISTORY.get(worker_id, [])})
    return httpx.Response(404)


def _source(handler=_crm) -> HttpActivitySource:
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url="http://crm.test")
    return HttpActivitySource(client)


@pytest.mark.asyncio
async def test_list_workers_unwraps_envelope():
    workers = await _source().list_workers()
    assert [w["_id"] for w in workers] == ["a1", "q1"]


@pytest.mark.asyncio
async def test_list_workers_filters_by_role():
    workers = await _source().list_workers("QA")
    assert [w["name"] for w in workers] == ["Qasim"]


@pytest.mark.asyncio
async def test_get_worker():
    worker = await _source().get_worker("a1")
    assert worker["name"] == "Ayesha"


@pytest.mark.asyncio
async def test_unknown_worker_is_none():
    assert await _source().get_worker("zz") is None


@pytest.mark.asyncio
async def test_histories_are_fetched_per_worker():
    feeds = await _source().get_histories(["a1", "q1"], date(2026, 10, 13), date(2026, 10, 19))
    assert feeds["a1"][0]["totalOnlineTime"] == 420
    assert feeds["q1"][0]["totalOnlineTime"] == 300


@pytest.mark.asyncio
async def test_server_error_raises_source_error():
    source = _source(lambda request: httpx.Response(503, text="maintenance"))
    with pytest.raises(ActivitySourceError) as exc_info:
        await source.list_workers()
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_refused_envelope_raises_source_error():
    source = _source(lambda request: httpx.Response(200, json={"status": False, "message": "Token expired"}))
    with pytest.raises(ActivitySourceError, match="Token expired"):
        await source.list_workers()


@pytest.mark.asyncio
async def test_invalid_json_raises_source_error():
    source = _source(lambda request: httpx.Response(200, text="<html>oops</html>"))
    with pytest.raises(ActivitySourceError):
        await source.get_worker("a1")


@pytest.mark.asyncio
async def test_connection_failure_raises_source_error():
    def _down(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ActivitySourceError):
        await _source(_down).get_history("a1", date(2026, 10, 13), date(2026, 10, 19))


@pytest.mark.asyncio
async def test_role_filter_skips_non_object_entries():
    source = _source(lambda request: httpx.Response(200, json={"data": [None, "q1", *EMPLOYEES]}))
    workers = await source.list_workers("QA")
    assert [w["_id"] for w in workers] == ["q1"]


@pytest.mark.asyncio
async def test_history_window_is_measured_from_the_request_date(caplog):
    client = httpx.AsyncClient(transport=httpx.MockTransport(_crm), base_url="http://crm.test")
    source = HttpActivitySource(client, history_days=30, today=date(2026, 10, 19))

    with caplog.at_level(logging.INFO, logger="app.services.sources"):
        await source.get_history("a1", date(2026, 9, 20), date(2026, 10, 19))
    assert "outside the upstream" not in caplog.text

    with caplog.at_level(logging.INFO, logger="app.services.sources"):
        await source.get_history("a1", date(2026, 9, 19), date(2026, 10, 19))
    assert "before 2026-09-20" in caplog.text


@pytest.mark.asyncio
async def test_history_window_is_not_reported_without_a_request_date(caplog):
    with caplog.at_level(logging.INFO, logger="app.services.sources"):
        feed = await _source().get_history("a1", date(2020, 1, 1), date(2026, 10, 19))
    assert feed[0]["totalOnlineTime"] == 420
    assert "outside the upstream" not in caplog.text


@pytest.mark.asyncio
async def test_http_source_takes_the_request_date(monkeypatch):
    monkeypatch.setattr(deps.settings, "ACTIVITY_SOURCE", "http")
    pkt = timezone(timedelta(hours=5))
    late_evening = datetime(2026, 10, 19, 20, 0, tzinfo=timezone.utc)

    sources = deps.get_activity_source(db=None, now=late_evening, tz=pkt)
    source = await sources.__anext__()
    try:
        assert isinstance(source, HttpActivitySource)
        assert source.today == date(2026, 10, 20)
    finally:
        await sources.aclose()
