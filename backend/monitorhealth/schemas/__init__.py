"""Pydantic schemas for stored monitor configuration and API responses."""
from .monitor import (
    ValidationRules,
    AuthConfig,
    CheckOutcomeResponse,
    SchedulerStatusResponse,
)

__all__ = [
    "ValidationRules",
    "AuthConfig",
    "CheckOutcomeResponse",
    "SchedulerStatusResponse",
]
