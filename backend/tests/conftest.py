"""
MonitorHealth test fixtures.

In-memory fakes for the engine's persistence, notification and fan-out
collaborators, plus an isolated in-memory SQLite database for repository tests.
"""
import copy
import os
from dataclasses import replace
from datetime import datetime
from types import SimpleNamespace

# Must be set before importing the app to avoid touching /data
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from monitorhealth import models  # noqa: F401  (registers tables)
from monitorhealth.database import Base
from monitorhealth.exceptions import DeliveryError


NOW = datetime(2026, 3, 2, 12, 0, 0)


def make_monitor(**overrides) -> SimpleNamespace:
    """A monitor row as the engine sees it."""
    fields = dict(
        id=1,
        user_id=10,
        collection_id=None,
        name="orders-api",
        url="https://api.example.com/health",
        auth_type="none",
        auth_config={},
        validation_rules={"statusCode": 200},
        check_interval=5,
        alert_emails=["ops@example.com"],
        enabled=True,
        status="pending",
        last_check_time=None,
        next_check_time=None,
        last_latency=None,
        consecutive_failures=0,
        total_checks=0,
        successful_checks=0,
    )
    fields.update(overrides)
    return SimpleNamespace(**fields)


def mock_transport(handler) -> httpx.MockTransport:
    return httpx.MockTransport(handler)


# ── Fake collaborators ────────────────────────────────────────────────
class FakeMonitorRepository:
    """Dict-backed monitor store that hands out copies, like detached ORM rows."""

    def __init__(self, *monitors):
        self.store = {m.id: m for m in monitors}
        self.advances = []
        self.stats_updates = []
        self.calls = []
        self.fail_advance_for = set()

    async def find_due(self, now, owner_ids=None):
        self.calls.append(("find_due", now, owner_ids))
        due = [
            m for m in self.store.values()
            if m.enabled and m.next_check_time is not None and m.next_check_time <= now
            and (owner_ids is None or m.user_id in owner_ids)
        ]
        return [copy.copy(m) for m in sorted(due, key=lambda m: m.next_check_time)]

    async def find_enabled(self):
        return [copy.copy(m) for m in self.store.values() if m.enabled]

    async def find_by_id(self, monitor_id):
        monitor = self.store.get(monitor_id)
        return copy.copy(monitor) if monitor else None

    async def find_by_owner(self, owner_id):
        return [copy.copy(m) for m in self.store.values() if m.user_id == owner_id]

    async def advance_next_check(self, monitor_id, next_check_time):
        self.calls.append(("advance", monitor_id, next_check_time))
        if monitor_id in self.fail_advance_for:
            raise RuntimeError("database unavailable")
        self.advances.append((monitor_id, next_check_time))
        self.store[monitor_id].next_check_time = next_check_time

    async def update_stats(self, monitor_id, stats):
        self.stats_updates.append((monitor_id, stats))
        monitor = self.store[monitor_id]
        monitor.status = stats.status
        monitor.last_check_time = stats.last_check_time
        monitor.last_latency = stats.last_latency
        monitor.consecutive_failures = stats.consecutive_failures
        monitor.total_checks += 1
        if stats.is_success:
            monitor.successful_checks += 1


class FakeCheckResultRepository:
    def __init__(self):
        self.results = []

    async def create(self, outcome):
        stored = replace(outcome, id=len(self.results) + 1)
        self.results.append(stored)
        return stored

    async def stats_for_owner(self, owner_id, hours=24):
        return {"period": f"{hours}h", "total_checks": len(self.results)}


class FakeAlertRepository:
    def __init__(self, default_recipient=None, recovery_alerts_enabled=True):
        self.alerts = []
        self.default_recipient = default_recipient
        self.recovery_alerts_enabled = recovery_alerts_enabled

    async def create(self, **record):
        self.alerts.append(record)
        return record

    async def get_default_recipient(self):
        return self.default_recipient

    async def get_recovery_alerts_enabled(self):
        return self.recovery_alerts_enabled


class FakeNotifier:
    def __init__(self, fail=False):
        self.fail = fail
        self.sent = []

    async def send_failure_alert(self, monitor, outcome, recipients):
        self._send("failure", monitor, recipients)

    async def send_recovery_alert(self, monitor, outcome, recipients):
        self._send("recovery", monitor, recipients)

    def _send(self, kind, monitor, recipients):
        if self.fail:
            raise DeliveryError("SMTP error: SMTPServerDisconnected: Connection unexpectedly closed")
        self.sent.append((kind, monitor.id, list(recipients)))


class FakeEvents:
    def __init__(self, fail=False):
        self.fail = fail
        self.checks = []
        self.stats = []

    async def emit_check_event(self, owner_id, outcome, monitor=None):
        if self.fail:
            raise RuntimeError("socket closed")
        self.checks.append((owner_id, outcome))

    async def emit_stats(self, owner_id, stats):
        self.stats.append((owner_id, stats))

    def has_connections(self, owner_id):
        return True


@pytest.fixture
def alert_repo():
    return FakeAlertRepository()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def events():
    return FakeEvents()


@pytest.fixture
def check_result_repo():
    return FakeCheckResultRepository()


# ── SQLite in-memory database ─────────────────────────────────────────
@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()
