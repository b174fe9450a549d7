"""Monitor service - runs the full check pipeline for one monitor.

probe -> persist outcome -> status transition -> persist stats -> alert -> real-time events
"""
import logging

from ..config import settings
from ..repositories.monitor_repository import MonitorStatsUpdate
from . import status_machine

logger = logging.getLogger(__name__)


class MonitorService:
    """Executes a check for one monitor end to end.

    Persistence errors propagate to the caller. Alert delivery and event
    emission failures are logged and never interrupt the pipeline.
    """

    def __init__(
        self,
        checker,
        monitor_repository,
        check_result_repository,
        alert_repository,
        alerter,
        events=None,
    ):
        self.checker = checker
        self.monitors = monitor_repository
        self.check_results = check_result_repository
        self.alerts = alert_repository
        self.alerter = alerter
        self.events = events

    async def execute_check(self, monitor):
        """Run one check and return the persisted probe outcome."""
        logger.info(f"Executing check for monitor: {monitor.name} (ID: {monitor.id})")

        outcome = await self.checker.execute(monitor)
        outcome = await self.check_results.create(outcome)

        recovery_alerts_enabled = True
        default_recipient = None
        if status_machine.is_alert_worthy(monitor.status, status_machine.status_for(outcome)):
            recovery_alerts_enabled, default_recipient = await self._alert_preferences(monitor)

        transition = status_machine.apply(
            monitor,
            outcome,
            recovery_alerts_enabled=recovery_alerts_enabled,
            default_recipient=default_recipient,
        )

        await self.monitors.update_stats(
            monitor.id,
            MonitorStatsUpdate(
                status=transition.new_status,
                last_check_time=outcome.checked_at,
                last_latency=outcome.latency_ms,
                consecutive_failures=transition.consecutive_failures,
                is_success=outcome.is_success,
            ),
        )

        if transition.status_changed:
            logger.info(f"Monitor {monitor.name} changed status: {transition.previous_status} -> {transition.new_status}")

        if transition.alert_intent is not None:
            await self.alerter.dispatch(monitor, transition.alert_intent, outcome)
        elif transition.status_changed and transition.previous_status != status_machine.PENDING:
            logger.info(f"Recovery alerts disabled, no alert sent for {monitor.name}")

        await self._emit_events(monitor, outcome)

        logger.info(f"Check completed for {monitor.name}: {outcome.status} ({outcome.latency_ms}ms)")
        return outcome

    async def _alert_preferences(self, monitor):
        """Read alert preferences, falling back to the environment when they cannot be loaded."""
        try:
            recovery_alerts_enabled = await self.alerts.get_recovery_alerts_enabled()
            default_recipient = await self.alerts.get_default_recipient()
        except Exception as e:
            logger.error(f"Failed to load alert settings for {monitor.name}, using defaults: {e}")
            return settings.send_recovery_alerts, settings.default_alert_email
        return recovery_alerts_enabled, default_recipient

    async def _emit_events(self, monitor, outcome):
        """Fire-and-forget push of the outcome and refreshed stats to the owner."""
        if self.events is None:
            return
        try:
            await self.events.emit_check_event(monitor.user_id, outcome, monitor)
            if self.events.has_connections(monitor.user_id):
                stats = await self.check_results.stats_for_owner(monitor.user_id)
                await self.events.emit_stats(monitor.user_id, stats)
        except Exception as e:
            logger.error(f"Failed to emit real-time events for {monitor.name}: {e}")
