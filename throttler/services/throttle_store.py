"""Store operations used by the throttling engine.

Every method runs on the caller's session and never commits; the surrounding
unit of work decides whether the changes survive.
"""

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import delete, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import ConfigurationError, LockTimeoutError, StoreFailure
from ..orm.event import Event
from ..orm.throttle_state import ThrottleState

logger = logging.getLogger(__name__)

# PostgreSQL lock_not_available
PG_LOCK_NOT_AVAILABLE = "55P03"

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


class ThrottleStore:
    """Throttle state and event access on one open transaction."""

    def __init__(self, session: AsyncSession):
        self.session = session

    @property
    def dialect_name(self) -> str:
        return self.session.bind.dialect.name

    async def set_lock_timeout(self, seconds: float) -> None:
        """Bound the row lock wait for the current transaction."""
        if self.dialect_name == "postgresql":
            # SET does not take bind parameters
            await self.session.execute(text(f"SET LOCAL lock_timeout = '{int(seconds * 1000)}ms'"))

    async def ensure_state(self, scope: str, key: str) -> bool:
        """Insert the throttle row unless it exists. Returns True if inserted."""
        insert = _INSERT_BY_DIALECT.get(self.dialect_name)
        if insert is None:
            raise ConfigurationError(f"Unsupported database dialect: {self.dialect_name}")

        stmt = (
            insert(ThrottleState)
            .values(scope=scope, key=key, last_occurred_at=None)
            .on_conflict_do_nothing(index_elements=["scope", "key"])
        )
        result = await self.session.execute(stmt)
        return result.rowcount == 1

    async def lock_state(self, scope: str, key: str) -> ThrottleState:
        """Read the throttle row with an exclusive lock, waiting for other holders."""
        result = await self.session.execute(
            select(ThrottleState)
            .where(ThrottleState.scope == scope, ThrottleState.key == key)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def occurred_after(self, scope: str, key: str, after: datetime) -> list[datetime]:
        """Timestamps of events strictly newer than `after`."""
        result = await self.session.execute(
            select(Event.occurred_at)
            .where(
                Event.scope == scope,
                Event.key == key,
                Event.occurred_at > after,
            )
            .order_by(Event.occurred_at)
        )
        return list(result.scalars().all())

    async def record_event(self, scope: str, key: str, occurred_at: datetime) -> Event:
        event = Event(scope=scope, key=key, occurred_at=occurred_at)
        self.session.add(event)
        await self.session.flush()
        return event

    async def mark_occurred(self, state: ThrottleState, occurred_at: datetime) -> None:
        state.last_occurred_at = occurred_at
        await self.session.flush()

    async def delete_events_before(
        self, cutoff: datetime, scope: Optional[str] = None, key: Optional[str] = None
    ) -> int:
        """Delete events strictly older than `cutoff`, optionally for one scope/key."""
        stmt = delete(Event).where(Event.occurred_at < cutoff)
        if scope is not None:
            stmt = stmt.where(Event.scope == scope, Event.key == key)
        result = await self.session.execute(
            stmt.execution_options(synchronize_session=False)
        )
        return result.rowcount


def is_lock_timeout(exc: DBAPIError) -> bool:
    orig = exc.orig
    for candidate in (orig, getattr(orig, "__cause__", None)):
        if candidate is None:
            continue
        sqlstate = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if sqlstate == PG_LOCK_NOT_AVAILABLE:
            return True
    return "database is locked" in str(orig)


def translate_error(exc: SQLAlchemyError) -> StoreFailure:
    """Map a SQLAlchemy error onto the throttler error taxonomy."""
    if isinstance(exc, DBAPIError) and is_lock_timeout(exc):
        return LockTimeoutError(f"Timed out waiting for throttle lock: {exc.orig}", cause=exc)
    return StoreFailure(f"Throttle store failure: {exc}", cause=exc)
