"""Status state machine - interprets probe outcomes into monitor status changes.

States: pending -> up, pending -> down, up <-> down. The first check of a
monitor only establishes a baseline and never alerts.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from ..utils.time_utils import utcnow

PENDING = "pending"
UP = "up"
DOWN = "down"

FAILURE_ALERT = "failure"
RECOVERY_ALERT = "recovery"


@dataclass
class AlertIntent:
    """Detected need to notify someone of a status transition."""
    alert_type: str  # failure, recovery
    message: str
    recipients: List[str] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class StatusTransition:
    """New status and rolling counters after applying an outcome."""
    previous_status: str
    new_status: str
    status_changed: bool
    total_checks: int
    successful_checks: int
    consecutive_failures: int
    alert_intent: Optional[AlertIntent] = None


def _counter(value) -> int:
    # Legacy rows may carry NULL counters
    return value if isinstance(value, int) and not isinstance(value, bool) else 0


def status_for(outcome) -> str:
    return UP if outcome.is_success else DOWN


def is_alert_worthy(previous_status: Optional[str], new_status: str) -> bool:
    """A change counts only once a baseline exists."""
    previous_status = previous_status or PENDING
    return previous_status != new_status and previous_status != PENDING


def resolve_recipients(monitor, default_recipient: Optional[str]) -> List[str]:
    """Monitor's own alert emails, else the process-wide default, else nobody."""
    recipients = [email for email in (monitor.alert_emails or []) if email]
    if recipients:
        return recipients
    if default_recipient:
        return [default_recipient]
    return []


def apply(
    monitor,
    outcome,
    *,
    recovery_alerts_enabled: bool = True,
    default_recipient: Optional[str] = None,
) -> StatusTransition:
    """Apply a completed probe outcome to a monitor's current state.

    Pure: the caller persists the counters and delivers the alert intent.
    """
    previous_status = monitor.status or PENDING
    new_status = status_for(outcome)

    successful_checks = _counter(monitor.successful_checks)
    consecutive_failures = _counter(monitor.consecutive_failures)
    if outcome.is_success:
        successful_checks += 1
        consecutive_failures = 0
    else:
        consecutive_failures += 1

    transition = StatusTransition(
        previous_status=previous_status,
        new_status=new_status,
        status_changed=previous_status != new_status,
        total_checks=_counter(monitor.total_checks) + 1,
        successful_checks=successful_checks,
        consecutive_failures=consecutive_failures,
    )

    if not is_alert_worthy(previous_status, new_status):
        return transition

    if new_status == DOWN:
        alert_type = FAILURE_ALERT
    elif recovery_alerts_enabled:
        alert_type = RECOVERY_ALERT
    else:
        return transition

    transition.alert_intent = AlertIntent(
        alert_type=alert_type,
        message=outcome.error_message or "Monitor status changed",
        recipients=resolve_recipients(monitor, default_recipient),
        created_at=outcome.checked_at,
    )
    return transition
