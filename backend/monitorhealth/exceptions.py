"""Engine exception taxonomy.

None of these escape a single monitor's check pipeline into the scheduler
tick: the probe executor turns them into failure outcomes, the alerter
records delivery failures, and the scheduler logs anything left over.
"""
from typing import Optional

import httpx


class MonitorEngineError(Exception):
    """Base class for monitoring engine errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ConfigError(MonitorEngineError):
    """Monitor configuration is missing a required field."""


class AuthError(MonitorEngineError):
    """Secondary auth request failed or yielded no credential."""

    def __init__(self, message: str, response: Optional[httpx.Response] = None):
        super().__init__(message)
        self.response = response


class TransportError(MonitorEngineError):
    """The request never completed (DNS, timeout, refused connection)."""

    def __init__(
        self,
        code: str,
        message: str,
        address: Optional[str] = None,
        os_error: Optional[str] = None,
    ):
        super().__init__(message)
        self.code = code
        self.address = address
        self.os_error = os_error


class ValidationError(MonitorEngineError):
    """A validation rule could not be evaluated (e.g. malformed expression)."""


class DeliveryError(MonitorEngineError):
    """An alert notification could not be delivered."""


class MonitorNotFoundError(MonitorEngineError):
    """No monitor exists with the requested id."""

    def __init__(self, monitor_id):
        super().__init__(f"Monitor not found: {monitor_id}")
        self.monitor_id = monitor_id
