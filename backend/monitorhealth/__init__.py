"""MonitorHealth - scheduled HTTP health checks with validation and alerting."""

__version__ = "1.0.0"
