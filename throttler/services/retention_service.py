"""Service for reaping throttle events no window can see anymore."""

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError

from ..clock import Clock, SystemClock
from ..errors import ConfigurationError
from ..policy import PolicyLike, safe_cutoff
from .database import DatabaseService
from .throttle_store import ThrottleStore, translate_error

logger = logging.getLogger(__name__)


class RetentionService:
    """Delete old throttle events, globally or per scope/key.

    Scheduling is up to the caller; nothing here runs on its own.
    """

    def __init__(self, db: DatabaseService, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()

    async def purge_events_older_than(
        self, cutoff: datetime, scope: Optional[str] = None, key: Optional[str] = None
    ) -> int:
        """Delete events with `occurred_at` strictly before `cutoff`.

        Throttle state rows are never touched.

        Returns:
            Number of deleted events.
        """
        if (scope is None) != (key is None):
            raise ConfigurationError("scope and key must be given together")

        try:
            async with self.db.session() as session:
                count = await ThrottleStore(session).delete_events_before(cutoff, scope, key)
        except SQLAlchemyError as e:
            raise translate_error(e) from e

        if scope is None:
            logger.info("Purged %d throttle event(s) older than %s", count, cutoff)
        else:
            logger.info(
                "Purged %d throttle event(s) for %s/%s older than %s", count, scope, key, cutoff
            )
        return count

    def compute_safe_cutoff(self, policy: PolicyLike) -> datetime:
        """Now minus the longest window in `policy` minus a 24 hour margin."""
        return safe_cutoff(policy, self.clock.now())

    async def cleanup_old_events(self, days: int = 7) -> int:
        """Clean up throttle events older than N days."""
        if days < 1:
            raise ConfigurationError(f"days must be >= 1, got {days}")
        return await self.purge_events_older_than(self.clock.now() - timedelta(days=days))

    async def cleanup_for_policy(
        self, policy: PolicyLike, scope: Optional[str] = None, key: Optional[str] = None
    ) -> int:
        """Purge everything older than the safe cutoff of `policy`."""
        return await self.purge_events_older_than(self.compute_safe_cutoff(policy), scope, key)
