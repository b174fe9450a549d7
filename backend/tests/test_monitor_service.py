"""Check pipeline tests."""
from datetime import datetime
from unittest.mock import AsyncMock, MagicMock

import pytest

from monitorhealth.config import settings
from monitorhealth.services.alerter import AlerterService
from monitorhealth.services.checker import FAILURE, SUCCESS, ProbeOutcome
from monitorhealth.services.monitor_service import MonitorService
from tests.conftest import (
    FakeAlertRepository,
    FakeEvents,
    FakeMonitorRepository,
    FakeNotifier,
    make_monitor,
)

CHECKED_AT = datetime(2026, 3, 2, 12, 0, 0)


def outcome(status=SUCCESS, monitor_id=1):
    return ProbeOutcome(
        monitor_id=monitor_id,
        status=status,
        http_status=200 if status == SUCCESS else 500,
        latency_ms=35,
        error_message=None if status == SUCCESS else "Validation failed: Expected status 200, got 500",
        checked_at=CHECKED_AT,
    )


def build_service(monitor, probe, check_result_repo, alert_repo=None, events=None, notifier=None):
    checker = MagicMock()
    checker.execute = AsyncMock(return_value=probe)
    monitors = FakeMonitorRepository(monitor)
    alert_repo = alert_repo or FakeAlertRepository()
    service = MonitorService(
        checker=checker,
        monitor_repository=monitors,
        check_result_repository=check_result_repo,
        alert_repository=alert_repo,
        alerter=AlerterService(notifier or FakeNotifier(), alert_repo),
        events=events,
    )
    return service, monitors


class TestMonitorService:
    @pytest.mark.asyncio
    async def test_first_check_persists_without_alert(self, check_result_repo, events):
        monitor = make_monitor()
        alert_repo = FakeAlertRepository()
        service, monitors = build_service(monitor, outcome(), check_result_repo, alert_repo, events)

        result = await service.execute_check(monitor)

        assert result.id == 1
        assert check_result_repo.results == [result]
        monitor_id, stats = monitors.stats_updates[0]
        assert monitor_id == 1
        assert stats.status == "up"
        assert stats.last_check_time == CHECKED_AT
        assert stats.last_latency == 35
        assert stats.consecutive_failures == 0
        assert stats.is_success
        assert monitors.store[1].total_checks == 1
        assert alert_repo.alerts == []

    @pytest.mark.asyncio
    async def test_failure_after_up_dispatches_alert(self, check_result_repo):
        monitor = make_monitor(status="up")
        notifier = FakeNotifier()
        alert_repo = FakeAlertRepository()
        service, monitors = build_service(monitor, outcome(FAILURE), check_result_repo, alert_repo, notifier=notifier)

        await service.execute_check(monitor)

        assert monitors.store[1].status == "down"
        assert monitors.store[1].consecutive_failures == 1
        assert notifier.sent == [("failure", 1, ["ops@example.com"])]
        assert alert_repo.alerts[0]["alert_type"] == "failure"
        assert alert_repo.alerts[0]["message"] == "Validation failed: Expected status 200, got 500"

    @pytest.mark.asyncio
    async def test_preferences_apply_to_recovery(self, check_result_repo):
        monitor = make_monitor(status="down", alert_emails=[])
        notifier = FakeNotifier()
        alert_repo = FakeAlertRepository(default_recipient="oncall@example.com")
        service, _ = build_service(monitor, outcome(), check_result_repo, alert_repo, notifier=notifier)

        await service.execute_check(monitor)

        assert notifier.sent == [("recovery", 1, ["oncall@example.com"])]

    @pytest.mark.asyncio
    async def test_unreadable_alert_settings_still_update_stats(self, check_result_repo, monkeypatch):
        monkeypatch.setattr(settings, "default_alert_email", None)
        monkeypatch.setattr(settings, "send_recovery_alerts", True)
        monitor = make_monitor(status="up")
        notifier = FakeNotifier()
        alert_repo = FakeAlertRepository()
        alert_repo.get_default_recipient = AsyncMock(side_effect=RuntimeError("settings table unavailable"))
        service, monitors = build_service(monitor, outcome(FAILURE), check_result_repo, alert_repo, notifier=notifier)

        await service.execute_check(monitor)

        assert len(check_result_repo.results) == 1
        assert monitors.store[1].status == "down"
        assert monitors.store[1].total_checks == 1
        assert monitors.store[1].consecutive_failures == 1
        assert notifier.sent == [("failure", 1, ["ops@example.com"])]
        assert alert_repo.alerts[0]["alert_type"] == "failure"

    @pytest.mark.asyncio
    async def test_recovery_disabled(self, check_result_repo):
        monitor = make_monitor(status="down")
        notifier = FakeNotifier()
        alert_repo = FakeAlertRepository(recovery_alerts_enabled=False)
        service, monitors = build_service(monitor, outcome(), check_result_repo, alert_repo, notifier=notifier)

        await service.execute_check(monitor)

        assert monitors.store[1].status == "up"
        assert notifier.sent == []
        assert alert_repo.alerts == []

    @pytest.mark.asyncio
    async def test_delivery_failure_keeps_stats(self, check_result_repo):
        monitor = make_monitor(status="up")
        alert_repo = FakeAlertRepository()
        service, monitors = build_service(
            monitor, outcome(FAILURE), check_result_repo, alert_repo, notifier=FakeNotifier(fail=True)
        )

        result = await service.execute_check(monitor)

        assert result.status == FAILURE
        assert monitors.store[1].status == "down"
        assert alert_repo.alerts[0]["email_sent"] is False

    @pytest.mark.asyncio
    async def test_events_are_emitted(self, check_result_repo, events):
        monitor = make_monitor()
        service, _ = build_service(monitor, outcome(), check_result_repo, events=events)

        result = await service.execute_check(monitor)

        assert events.checks == [(10, result)]
        assert events.stats == [(10, {"period": "24h", "total_checks": 1})]

    @pytest.mark.asyncio
    async def test_event_failure_does_not_fail_check(self, check_result_repo):
        monitor = make_monitor()
        service, monitors = build_service(monitor, outcome(), check_result_repo, events=FakeEvents(fail=True))

        result = await service.execute_check(monitor)

        assert result.status == SUCCESS
        assert len(monitors.stats_updates) == 1

    @pytest.mark.asyncio
    async def test_persistence_failure_propagates(self, check_result_repo):
        monitor = make_monitor()
        service, monitors = build_service(monitor, outcome(), check_result_repo)
        check_result_repo.create = AsyncMock(side_effect=RuntimeError("database is locked"))

        with pytest.raises(RuntimeError):
            await service.execute_check(monitor)
        assert monitors.stats_updates == []
