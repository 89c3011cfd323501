"""Shared fixtures: a SQLite database per test and a frozen clock."""

from datetime import datetime, timezone

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from throttler.clock import FixedClock
from throttler.orm import Event, ThrottleState
from throttler.services import DatabaseService, RetentionService, ThrottleService

NOW = datetime(2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def db(tmp_path):
    service = DatabaseService(
        f"sqlite+aiosqlite:///{tmp_path / 'throttler.db'}", lock_timeout_seconds=10.0
    )
    await service.initialize()
    yield service
    await service.close()


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def throttler(db, clock):
    return ThrottleService(db, clock=clock)


@pytest.fixture
def retention(db, clock):
    return RetentionService(db, clock=clock)


@pytest.fixture
def add_event(db):
    async def _add(scope, key, occurred_at):
        async with db.session() as session:
            event = Event(scope=scope, key=key, occurred_at=occurred_at)
            session.add(event)
        return event

    return _add


@pytest.fixture
def count_events(db):
    async def _count(scope=None, key=None):
        stmt = select(func.count(Event.id))
        if scope is not None:
            stmt = stmt.where(Event.scope == scope, Event.key == key)
        async with db.session() as session:
            return (await session.execute(stmt)).scalar_one()

    return _count


@pytest.fixture
def get_state(db):
    async def _get(scope, key):
        async with db.session() as session:
            result = await session.execute(
                select(ThrottleState).where(
                    ThrottleState.scope == scope, ThrottleState.key == key
                )
            )
            return result.scalar_one_or_none()

    return _get
