"""ORM models for database persistence."""

from .base import Base, SqlalchemyBase, TimestampedBase, UTCDateTime
from .event import Event
from .throttle_state import ThrottleState

__all__ = [
    "Base",
    "Event",
    "SqlalchemyBase",
    "ThrottleState",
    "TimestampedBase",
    "UTCDateTime",
]
