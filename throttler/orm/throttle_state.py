"""ThrottleState model, the lock anchor for a scope/key."""

from datetime import datetime
from typing import Optional

from sqlalchemy import String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from .base import TimestampedBase, UTCDateTime


class ThrottleState(TimestampedBase):
    """Track the last admitted occurrence per scope/key.

    Exactly one row exists per (scope, key); concurrent creators race to the
    unique constraint and the loser simply reads the winner's row.
    """

    __tablename__ = "throttler_throttles"
    __table_args__ = (
        UniqueConstraint("scope", "key", name="uq_throttler_throttles_scope_key"),
    )

    scope: Mapped[str] = mapped_column(String(255), nullable=False)
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    last_occurred_at: Mapped[Optional[datetime]] = mapped_column(UTCDateTime(), nullable=True)

    def __repr__(self) -> str:
        return (
            f"ThrottleState(scope={self.scope!r}, key={self.key!r}, "
            f"last_occurred_at={self.last_occurred_at!r})"
        )
