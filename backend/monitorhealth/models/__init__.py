"""Database models."""
from .setting import Setting
from .monitor import Monitor
from .check_result import CheckResult
from .alert import Alert

__all__ = ["Setting", "Monitor", "CheckResult", "Alert"]
