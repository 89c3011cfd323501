"""Service layer for throttle decisions and database operations."""

from .database import DatabaseService
from .retention_service import RetentionService
from .throttle_service import ThrottleService, current_session
from .throttle_store import ThrottleStore

__all__ = [
    "DatabaseService",
    "RetentionService",
    "ThrottleService",
    "ThrottleStore",
    "current_session",
]
