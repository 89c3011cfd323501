"""Database connection and session management."""

import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import AsyncGenerator

from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from ..config import Config
from ..orm.base import Base

logger = logging.getLogger(__name__)


class DatabaseService:
    """Manages database connection and session lifecycle.

    Instances are passed explicitly to the services that need them; there is
    no module level default.
    """

    def __init__(self, database_url: str, lock_timeout_seconds: float = 5.0, echo: bool = False):
        url = make_url(database_url)
        connect_args = {}

        if url.get_backend_name() == "sqlite":
            if url.database and url.database != ":memory:":
                database_path = Path(url.database).expanduser()
                database_path.parent.mkdir(parents=True, exist_ok=True)
                url = url.set(database=str(database_path))
            # The driver busy timeout is the lock wait for SQLite
            connect_args["timeout"] = lock_timeout_seconds

        self.url = url
        self.lock_timeout_seconds = lock_timeout_seconds
        self.engine: AsyncEngine = create_async_engine(
            url,
            echo=echo,
            pool_pre_ping=True,
            connect_args=connect_args,
        )

        self.async_session_factory = async_sessionmaker(
            self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autocommit=False,
            autoflush=False,
        )

    @classmethod
    def from_config(cls, config: Config) -> "DatabaseService":
        return cls(
            config.database.url,
            lock_timeout_seconds=config.database.lock_timeout_seconds,
            echo=config.database.echo,
        )

    async def initialize(self):
        """Create all tables."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.debug("Throttler tables ready on %s", self.url.render_as_string(hide_password=True))

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for database operations."""
        async with self.async_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
            finally:
                await session.close()

    async def close(self):
        """Close database engine."""
        await self.engine.dispose()
