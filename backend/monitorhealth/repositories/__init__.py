"""SQLAlchemy-backed persistence collaborators for the monitoring engine."""
from .monitor_repository import MonitorRepository, MonitorStatsUpdate
from .check_result_repository import CheckResultRepository
from .alert_repository import AlertRepository

__all__ = ["MonitorRepository", "MonitorStatsUpdate", "CheckResultRepository", "AlertRepository"]
