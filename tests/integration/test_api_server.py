"""
Integration tests for the event REST API.

Runs the aiohttp application in-process with TestServer and drives it both
directly and through HttpEventStore, the client the engine uses.
"""

import asyncio
from datetime import date
from pathlib import Path

import httpx
import pytest
from aiohttp.test_utils import TestClient, TestServer

from calendar_engine.api.server import create_app, serve
from calendar_engine.config import EngineSettings
from calendar_engine.engine import CalendarEngine
from calendar_engine.models import EventPatch, WeeklyRecurrence
from calendar_engine.store.http_store import HttpEventStore
from calendar_engine.store.memory_store import InMemoryEventStore

pytestmark = [pytest.mark.integration]

DRAFT = {
    "title": "Standup",
    "date": "2024-03-05",
    "startTime": "09:00",
    "endTime": "09:15",
    "repeat": {"type": "none", "interval": 0},
    "notificationTime": 10,
}

WEEKLY = {"type": "weekly", "interval": 1}


@pytest.mark.asyncio
async def test_crud_round_trip() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        resp = await client.post("/api/events", json=DRAFT)
        assert resp.status == 201
        created = await resp.json()
        assert created["startTime"] == "09:00"

        resp = await client.put(f"/api/events/{created['id']}", json={"title": "Renamed"})
        assert resp.status == 200
        assert (await resp.json())["title"] == "Renamed"

        resp = await client.get("/api/events")
        assert [e["title"] for e in (await resp.json())["events"]] == ["Renamed"]

        resp = await client.delete(f"/api/events/{created['id']}")
        assert resp.status == 204

        resp = await client.get("/api/health")
        assert await resp.json() == {"status": "ok", "event_count": 0}


@pytest.mark.asyncio
async def test_invalid_json_is_400() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        resp = await client.post(
            "/api/events", data="{not json", headers={"Content-Type": "application/json"}
        )

        assert resp.status == 400
        assert "error" in await resp.json()


@pytest.mark.asyncio
async def test_invalid_draft_is_400_with_problems() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        resp = await client.post("/api/events", json={**DRAFT, "endTime": "08:00"})

        body = await resp.json()
        assert resp.status == 400
        assert "Start time must be earlier than end time." in body["problems"]


@pytest.mark.asyncio
async def test_unknown_ids_are_404() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        assert (await client.put("/api/events/nope", json={"title": "x"})).status == 404
        assert (await client.delete("/api/events/nope")).status == 404
        assert (await client.put("/api/recurring-events/nope", json={"title": "x"})).status == 404
        assert (await client.delete("/api/recurring-events/nope")).status == 404
        resp = await client.put("/api/events-list", json={"events": [{"id": "nope", "title": "x"}]})
        assert resp.status == 404


@pytest.mark.asyncio
async def test_series_routes_update_and_delete_all_rows() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        for day in ("2024-03-05", "2024-03-12"):
            await client.post(
                "/api/events", json={**DRAFT, "date": day, "repeat": WEEKLY, "seriesId": "s1"}
            )
        await client.post("/api/events", json={**DRAFT, "title": "Other"})

        resp = await client.put("/api/recurring-events/s1", json={"location": "Room 3"})
        assert resp.status == 200
        assert {e["location"] for e in (await resp.json())["events"]} == {"Room 3"}

        assert (await client.delete("/api/recurring-events/s1")).status == 204
        events = (await (await client.get("/api/events")).json())["events"]
        assert [e["title"] for e in events] == ["Other"]


@pytest.mark.asyncio
async def test_events_list_updates_each_row() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        a = await (await client.post("/api/events", json=DRAFT)).json()
        b = await (await client.post("/api/events", json={**DRAFT, "date": "2024-03-12"})).json()

        resp = await client.put(
            "/api/events-list",
            json={"events": [{"id": a["id"], "date": "2024-03-06"}, {"id": b["id"], "date": "2024-03-13"}]},
        )

        assert resp.status == 200
        assert sorted(e["date"] for e in (await resp.json())["events"]) == ["2024-03-06", "2024-03-13"]


@pytest.mark.asyncio
async def test_update_producing_invalid_row_is_400() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        created = await (await client.post("/api/events", json=DRAFT)).json()

        resp = await client.put(
            f"/api/events/{created['id']}", json={"startTime": "11:00", "endTime": "10:00"}
        )

        assert resp.status == 400
        [stored] = (await (await client.get("/api/events")).json())["events"]
        assert (stored["startTime"], stored["endTime"]) == ("09:00", "09:15")


@pytest.mark.asyncio
async def test_batch_and_series_updates_are_validated_before_writing() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        a = await (await client.post("/api/events", json=DRAFT)).json()
        b = await (await client.post("/api/events", json={**DRAFT, "date": "2024-03-12"})).json()
        await client.post("/api/events", json={**DRAFT, "repeat": WEEKLY, "seriesId": "s1"})

        resp = await client.put(
            "/api/events-list",
            json={"events": [{"id": a["id"], "title": "Fine"}, {"id": b["id"], "endTime": "08:00"}]},
        )
        assert resp.status == 400

        resp = await client.put("/api/recurring-events/s1", json={"title": ""})
        assert resp.status == 400

        events = (await (await client.get("/api/events")).json())["events"]
        assert {e["title"] for e in events} == {"Standup"}


@pytest.mark.asyncio
async def test_series_id_on_one_off_event_is_400() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        resp = await client.post("/api/events", json={**DRAFT, "seriesId": "s1"})

        assert resp.status == 400
        assert (await (await client.get("/api/health")).json())["event_count"] == 0


@pytest.mark.asyncio
async def test_events_list_create_and_delete() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        resp = await client.post(
            "/api/events-list",
            json={"events": [DRAFT, {**DRAFT, "title": "Weekly", "repeat": WEEKLY}]},
        )
        assert resp.status == 201
        created = (await resp.json())["events"]
        by_title = {e["title"]: e for e in created}
        assert by_title["Standup"].get("seriesId") is None
        assert by_title["Weekly"]["seriesId"]

        resp = await client.delete("/api/events-list", json={"eventIds": [e["id"] for e in created]})
        assert resp.status == 204
        assert (await (await client.get("/api/health")).json())["event_count"] == 0


@pytest.mark.asyncio
async def test_events_list_create_with_invalid_entry_writes_nothing() -> None:
    async with TestClient(TestServer(create_app(InMemoryEventStore()))) as client:
        resp = await client.post("/api/events-list", json={"events": [DRAFT, {**DRAFT, "title": ""}]})
        assert resp.status == 400

        resp = await client.delete("/api/events-list", json={"eventIds": ["nope"]})
        assert resp.status == 404
        assert (await (await client.get("/api/health")).json())["event_count"] == 0


@pytest.mark.asyncio
async def test_engine_over_http_store(make_draft) -> None:
    """The engine drives the REST server through HttpEventStore end to end."""
    server_store = InMemoryEventStore()
    async with TestClient(TestServer(create_app(server_store))) as client:
        base_url = str(client.make_url("/"))
        async with HttpEventStore(base_url, timeout=5) as http_store:
            engine = CalendarEngine(http_store)
            rule = WeeklyRecurrence(interval=1, end_date=date(2024, 3, 26))
            rows = await engine.create_event(make_draft(title="Standup", recurrence=rule))
            assert len(rows) == 4

            await engine.request_edit(rows[0], EventPatch(title="Sync"))
            await engine.apply_scope_decision(single_only=False)
            assert {e.title for e in await server_store.list()} == {"Sync"}

            await engine.request_move(rows[0], date(2024, 3, 6))
            await engine.apply_scope_decision(single_only=False)
            assert min(e.date for e in await server_store.list()) == date(2024, 3, 6)

            await engine.request_delete(rows[1])
            await engine.apply_scope_decision(single_only=False)
            assert await server_store.list() == []


@pytest.mark.asyncio
async def test_serve_starts_and_stops(tmp_path: Path, unused_tcp_port: int) -> None:
    settings = EngineSettings(
        store_path=tmp_path / "events.json", server_port=unused_tcp_port, server_host="127.0.0.1"
    )
    stop = asyncio.Event()
    task = asyncio.create_task(serve(settings, stop))

    try:
        async with httpx.AsyncClient(base_url=f"http://127.0.0.1:{unused_tcp_port}") as client:
            for _ in range(50):
                try:
                    resp = await client.get("/api/health")
                    break
                except httpx.ConnectError:
                    await asyncio.sleep(0.05)
            else:
                pytest.fail("server did not start")
        assert resp.json()["status"] == "ok"
    finally:
        stop.set()
        await asyncio.wait_for(task, timeout=5)
