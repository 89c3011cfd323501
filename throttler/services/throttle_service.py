"""Throttling engine: serialized, windowed admission of guarded actions."""

import inspect
import logging
from contextvars import ContextVar
from typing import Any, Awaitable, Callable, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..clock import Clock, SystemClock
from ..errors import ConfigurationError
from ..outcome import Admitted, Failed, Outcome, Throttled
from ..policy import Policy, PolicyLike
from .database import DatabaseService
from .throttle_store import ThrottleStore, translate_error

logger = logging.getLogger(__name__)

MAX_IDENTIFIER_LENGTH = 255

Action = Callable[[], Union[Any, Awaitable[Any]]]

_current_session: ContextVar[Optional[AsyncSession]] = ContextVar(
    "throttler_current_session", default=None
)


def current_session() -> AsyncSession:
    """Session of the decision currently running the guarded action.

    Writes made through it commit or roll back together with the throttle
    bookkeeping.

    Raises:
        RuntimeError: If called outside a guarded action.
    """
    session = _current_session.get()
    if session is None:
        raise RuntimeError("current_session() is only available inside a guarded action")
    return session


class _ActionRaised(Exception):
    def __init__(self, cause: BaseException):
        super().__init__(cause)
        self.cause = cause


class ThrottleService:
    """Decide whether a scope/key may run an action under a window policy."""

    def __init__(self, db: DatabaseService, clock: Optional[Clock] = None):
        self.db = db
        self.clock = clock or SystemClock()

    async def decide(
        self,
        scope: str,
        key: str,
        policy: PolicyLike,
        action: Action,
        *,
        force: bool = False,
    ) -> Outcome:
        """Run `action` if every window in `policy` has capacity.

        The whole decision is one transaction. The throttle row for
        (scope, key) is created if missing and then locked, so concurrent
        decisions for the same pair are applied one at a time. When the
        action runs, an event and the new last occurrence are recorded in
        the same transaction; when it raises, nothing is recorded.

        Args:
            scope: Namespace of the throttle, e.g. a user id.
            key: Event type within the scope.
            policy: Window constraints, e.g. ``{"hour": 2, "day": 5}``.
            action: Zero-argument callable, sync or async.
            force: Skip the window check but still record the event.

        Returns:
            Admitted, Throttled or Failed.

        Raises:
            ConfigurationError: Malformed identifiers, or an empty policy
                without `force`.
            StoreFailure: The database failed; LockTimeoutError when the
                row lock could not be obtained in time.
        """
        _validate_identifier("scope", scope)
        _validate_identifier("key", key)
        parsed = Policy.parse(policy)
        if not parsed and not force:
            raise ConfigurationError("An empty policy is only allowed with force=True")

        try:
            async with self.db.session() as session:
                return await self._decide(session, scope, key, parsed, action, force)
        except _ActionRaised as e:
            logger.warning(
                "Guarded action for %s/%s failed; rolled back", scope, key, exc_info=e.cause
            )
            return Failed(e.cause)
        except SQLAlchemyError as e:
            logger.error("Throttle decision for %s/%s hit a store failure: %s", scope, key, e)
            raise translate_error(e) from e

    async def _decide(
        self,
        session: AsyncSession,
        scope: str,
        key: str,
        policy: Policy,
        action: Action,
        force: bool,
    ) -> Outcome:
        store = ThrottleStore(session)

        await store.set_lock_timeout(self.db.lock_timeout_seconds)
        if await store.ensure_state(scope, key):
            logger.debug("Created throttle state for %s/%s", scope, key)
        state = await store.lock_state(scope, key)

        now = self.clock.now()
        if not force:
            recent = await store.occurred_after(scope, key, policy.earliest_cutoff(now))
            denied = policy.denying_windows(now, recent)
            if denied:
                await session.rollback()
                logger.debug(
                    "Throttled %s/%s: %s",
                    scope,
                    key,
                    ", ".join(f"{w.max_count}/{w.unit}" for w in denied),
                )
                return Throttled(scope, key)

        token = _current_session.set(session)
        try:
            value = action()
            if inspect.isawaitable(value):
                value = await value
        except Exception as e:
            raise _ActionRaised(e) from e
        finally:
            _current_session.reset(token)

        await store.record_event(scope, key, now)
        await store.mark_occurred(state, now)
        logger.debug("Admitted %s/%s at %s%s", scope, key, now, " (forced)" if force else "")
        return Admitted(value, now, forced=force)


def _validate_identifier(name: str, value: Any) -> None:
    if not isinstance(value, str) or not value.strip():
        raise ConfigurationError(f"Throttle {name} must be a non-empty string, got {value!r}")
    if len(value) > MAX_IDENTIFIER_LENGTH:
        raise ConfigurationError(
            f"Throttle {name} must be at most {MAX_IDENTIFIER_LENGTH} characters"
        )
