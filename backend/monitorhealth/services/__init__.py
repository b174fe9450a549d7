"""Services for probing, validation, alerting and scheduling."""
from .checker import CheckerService, ProbeOutcome
from .scheduler import SchedulerService
from .alerter import AlerterService
from .monitor_service import MonitorService
from .email_sender import EmailSenderService
from .websocket_manager import ConnectionManager
from .sessions import ActiveSessionRegistry

__all__ = [
    "CheckerService",
    "ProbeOutcome",
    "SchedulerService",
    "AlerterService",
    "MonitorService",
    "EmailSenderService",
    "ConnectionManager",
    "ActiveSessionRegistry",
]
