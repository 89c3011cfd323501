"""Throttler exception types.

`ThrottledError` and `ActionFailure` are never raised by the engine itself;
they exist so callers can turn an outcome into an exception with
`Outcome.unwrap()`. `StoreFailure` and `ConfigurationError` propagate out of
the engine as hard failures.
"""

from __future__ import annotations

from typing import Optional


class ThrottlerError(Exception):
    """Base error for all throttler failures."""


class ConfigurationError(ThrottlerError, ValueError):
    """Raised when a policy, identifier or call is malformed."""


class ThrottledError(ThrottlerError):
    """Admission was denied for a scope/key."""

    def __init__(self, scope: str, key: str):
        self.scope = scope
        self.key = key
        super().__init__(f"Throttled: {scope}/{key}")


class ActionFailure(ThrottlerError):
    """The guarded action raised; the transaction was rolled back."""

    def __init__(self, cause: BaseException):
        self.cause = cause
        super().__init__(f"Guarded action failed: {cause!r}")


class StoreFailure(ThrottlerError):
    """Transaction, lock or query infrastructure failed."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class LockTimeoutError(StoreFailure):
    """Waiting for the throttle row lock exceeded the configured timeout."""
