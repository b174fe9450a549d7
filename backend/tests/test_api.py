"""HTTP and WebSocket surface tests."""
import json
import time
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient

from monitorhealth.exceptions import MonitorNotFoundError
from monitorhealth.main import create_app
from monitorhealth.services.checker import SUCCESS, ProbeOutcome
from monitorhealth.services.sessions import ActiveSessionRegistry
from monitorhealth.services.websocket_manager import ConnectionManager

CHECKED_AT = datetime(2026, 3, 2, 12, 0, 0)


def wait_until(predicate, timeout=2.0):
    deadline = time.monotonic() + timeout
    while not predicate() and time.monotonic() < deadline:
        time.sleep(0.01)
    return predicate()


def fake_scheduler():
    scheduler = MagicMock()
    scheduler.is_running = True
    scheduler.get_status.return_value = {
        "is_running": True,
        "tick_minutes": 1,
        "max_concurrent_checks": 10,
        "in_flight": 2,
    }
    scheduler.trigger_manual_check = AsyncMock(return_value=ProbeOutcome(
        monitor_id=5,
        status=SUCCESS,
        http_status=200,
        latency_ms=31,
        response_data='{"ok":true}',
        checked_at=CHECKED_AT,
        id=77,
    ))
    return scheduler


@pytest.fixture
def components():
    return {
        "scheduler": fake_scheduler(),
        "events": ConnectionManager(),
        "sessions": ActiveSessionRegistry(),
    }


@pytest.fixture
def app(components):
    return create_app(components=components, use_lifespan=False)


class TestHttpApi:
    @pytest.mark.asyncio
    async def test_health(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "scheduler_running": True}

    @pytest.mark.asyncio
    async def test_scheduler_status(self, app):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.get("/api/scheduler/status")
        assert response.status_code == 200
        assert response.json()["in_flight"] == 2

    @pytest.mark.asyncio
    async def test_run_check_now(self, app, components):
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/api/monitors/5/check")

        assert response.status_code == 200
        body = response.json()
        assert body["id"] == 77
        assert body["status"] == "success"
        assert body["latency_ms"] == 31
        components["scheduler"].trigger_manual_check.assert_awaited_once_with(5)

    @pytest.mark.asyncio
    async def test_run_check_unknown_monitor(self, app, components):
        components["scheduler"].trigger_manual_check.side_effect = MonitorNotFoundError(404)
        async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
            response = await client.post("/api/monitors/404/check")
        assert response.status_code == 404


class TestEventsSocket:
    def test_connection_counts_as_active_session(self, app, components):
        sessions = components["sessions"]
        with TestClient(app) as client:
            with client.websocket_connect("/api/events/10"):
                assert wait_until(lambda: sessions.is_active(10))
                assert components["events"].has_connections(10)
        assert not sessions.is_active(10)
        assert not components["events"].has_connections(10)


class TestConnectionManager:
    @pytest.mark.asyncio
    async def test_check_event_reaches_only_owner(self):
        manager = ConnectionManager()
        mine, theirs = AsyncMock(), AsyncMock()
        await manager.connect(10, mine)
        await manager.connect(20, theirs)

        outcome = ProbeOutcome(monitor_id=1, status=SUCCESS, http_status=200, checked_at=CHECKED_AT)
        monitor = MagicMock()
        monitor.name = "orders-api"
        monitor.url = "https://api.example.com/health"
        await manager.emit_check_event(10, outcome, monitor)

        message = json.loads(mine.send_text.call_args.args[0])
        assert message["type"] == "check"
        assert message["data"]["monitor_name"] == "orders-api"
        assert message["data"]["checked_at"] == "2026-03-02 12:00:00"
        theirs.send_text.assert_not_called()

    @pytest.mark.asyncio
    async def test_dead_socket_is_dropped(self):
        manager = ConnectionManager()
        dead = AsyncMock()
        dead.send_text.side_effect = RuntimeError("closed")
        await manager.connect(10, dead)

        await manager.emit_stats(10, {"total_checks": 1})

        assert not manager.has_connections(10)
        assert manager.connection_count == 0


class TestActiveSessionRegistry:
    def test_reference_counts(self):
        sessions = ActiveSessionRegistry()
        sessions.login(10)
        sessions.login(10)
        sessions.logout(10)
        assert sessions.active_owner_ids() == {10}
        sessions.logout(10)
        assert sessions.active_owner_ids() == set()
        sessions.logout(10)
        assert not sessions.is_active(10)
