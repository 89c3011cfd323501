"""Database-backed throttling of actions per scope and key."""

from .clock import Clock, FixedClock, SystemClock
from .errors import (
    ActionFailure,
    ConfigurationError,
    LockTimeoutError,
    StoreFailure,
    ThrottledError,
    ThrottlerError,
)
from .outcome import Admitted, Failed, Outcome, Throttled
from .policy import Policy, Window
from .services import DatabaseService, RetentionService, ThrottleService, current_session

__all__ = [
    "ActionFailure",
    "Admitted",
    "Clock",
    "ConfigurationError",
    "DatabaseService",
    "Failed",
    "FixedClock",
    "LockTimeoutError",
    "Outcome",
    "Policy",
    "RetentionService",
    "StoreFailure",
    "SystemClock",
    "ThrottleService",
    "Throttled",
    "ThrottledError",
    "ThrottlerError",
    "Window",
    "current_session",
]
