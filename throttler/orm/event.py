"""Event model for admitted throttle occurrences."""

from datetime import datetime

from sqlalchemy import Index, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import SqlalchemyBase, UTCDateTime


class Event(SqlalchemyBase):
    """One row per admitted (or forced) occurrence of a scope/key."""

    __tablename__ = "throttler_events"
    __table_args__ = (
        Index("idx_throttler_events_scope_key_occurred_at", "scope", "key", "occurred_at"),
        Index("idx_throttler_events_occurred_at", "occurred_at"),
    )

    scope: Mapped[str] = mapped_column(String(255), nullable=False)
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    occurred_at: Mapped[datetime] = mapped_column(UTCDateTime(), nullable=False)

    def __repr__(self) -> str:
        return f"Event(scope={self.scope!r}, key={self.key!r}, occurred_at={self.occurred_at!r})"
