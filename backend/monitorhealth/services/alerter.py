"""Alerter service - delivers alert intents and records them for audit."""
import logging
from dataclasses import dataclass
from typing import Optional

from ..utils.time_utils import utcnow
from .status_machine import AlertIntent, FAILURE_ALERT

logger = logging.getLogger(__name__)

NO_RECIPIENTS_ERROR = "No alert recipients configured"


@dataclass
class DeliveryResult:
    """What happened when an alert intent was dispatched."""
    sent: bool
    error: Optional[str] = None


class AlerterService:
    """Sends failure/recovery notifications and persists every detected alert.

    Args:
        notifier: object with `send_failure_alert` and `send_recovery_alert`
            coroutines that raise on delivery failure
        alert_repository: object with a `create` coroutine
    """

    def __init__(self, notifier, alert_repository):
        self.notifier = notifier
        self.alert_repository = alert_repository

    async def _deliver(self, monitor, intent: AlertIntent, outcome) -> DeliveryResult:
        if not intent.recipients:
            logger.warning(
                f"No alert emails configured for monitor: {monitor.name}. "
                "Configure alert emails on the monitor or set a default alert email"
            )
            return DeliveryResult(sent=False, error=NO_RECIPIENTS_ERROR)

        try:
            if intent.alert_type == FAILURE_ALERT:
                await self.notifier.send_failure_alert(monitor, outcome, intent.recipients)
            else:
                await self.notifier.send_recovery_alert(monitor, outcome, intent.recipients)
        except Exception as e:
            error = getattr(e, "message", None) or str(e) or type(e).__name__
            logger.error(f"Failed to send {intent.alert_type} alert for {monitor.name}: {error}")
            return DeliveryResult(sent=False, error=error)

        logger.info(f"{intent.alert_type.capitalize()} alert sent for monitor: {monitor.name}")
        return DeliveryResult(sent=True)

    async def dispatch(self, monitor, intent: AlertIntent, outcome) -> DeliveryResult:
        """Deliver an alert intent and record it. Never raises."""
        if intent.alert_type == FAILURE_ALERT:
            logger.warning(f"Monitor FAILED: {monitor.name}")
        else:
            logger.info(f"Monitor RECOVERED: {monitor.name}")

        result = await self._deliver(monitor, intent, outcome)

        try:
            await self.alert_repository.create(
                monitor_id=monitor.id,
                alert_type=intent.alert_type,
                message=intent.message,
                recipients=intent.recipients,
                email_sent=result.sent,
                email_error=result.error,
                sent_at=utcnow(),
            )
        except Exception as e:
            logger.error(f"Failed to log alert in database for {monitor.name}: {e}")

        return result
