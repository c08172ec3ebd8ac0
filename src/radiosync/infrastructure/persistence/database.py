"""Database session management."""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from radiosync.config import Settings

logger = logging.getLogger(__name__)


class Database:
    """Database connection and session manager."""

    def __init__(self, settings: Settings) -> None:
        """Initialize database with settings."""
        self.settings = settings
        url = settings.database.url

        engine_kwargs: dict[str, Any] = {
            "echo": settings.database.echo,
            "pool_pre_ping": settings.database.pool_pre_ping,
        }

        if "sqlite" in url:
            engine_kwargs["connect_args"] = {
                "check_same_thread": False,
                "timeout": 30,  # Wait up to 30s for lock
            }
            # Every connection to ":memory:" is a different database, so tests need the
            # one connection shared.
            if ":memory:" in url:
                engine_kwargs["poolclass"] = StaticPool
        else:
            engine_kwargs.update(
                {
                    "pool_size": settings.database.pool_size,
                    "max_overflow": settings.database.max_overflow,
                    "pool_timeout": settings.database.pool_timeout,
                    "pool_recycle": settings.database.pool_recycle,
                }
            )

        self._engine = create_async_engine(url, **engine_kwargs)

        if "sqlite" in url:
            self._configure_sqlite_pragmas(use_wal=":memory:" not in url)

        self._session_factory = async_sessionmaker(
            self._engine,
            class_=AsyncSession,
            expire_on_commit=False,
        )

    @property
    def url(self) -> str:
        return self.settings.database.url

    # Hey future me - four feed readers write concurrently. WAL lets readers (status,
    # stats views) keep going while one writer holds the lock, and foreign keys are off
    # by default in SQLite.
    def _configure_sqlite_pragmas(self, use_wal: bool) -> None:
        @event.listens_for(self._engine.sync_engine, "connect")
        def set_sqlite_pragma(dbapi_conn: Any, _connection_record: Any) -> None:
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA foreign_keys=ON")
            if use_wal:
                cursor.execute("PRAGMA journal_mode=WAL")
                cursor.execute("PRAGMA synchronous=NORMAL")
            cursor.close()
            logger.debug("Configured SQLite pragmas (wal=%s)", use_wal)

    @asynccontextmanager
    async def session_scope(self) -> AsyncGenerator[AsyncSession, None]:
        """Provide a transactional scope for database operations.

        Commits on success, rolls back and re-raises on any exception.
        """
        async with self._session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        """Close database connection."""
        await self._engine.dispose()

    async def create_tables(self) -> None:
        """Create all tables that don't exist yet."""
        from radiosync.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    async def drop_tables(self) -> None:
        """Drop all tables (for testing only)."""
        from radiosync.infrastructure.persistence.models import Base

        async with self._engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
