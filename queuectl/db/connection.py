"""
Database connection management.
Handles async SQLAlchemy engine and session creation.

A ``Database`` is an explicit handle passed to every component that needs the
store; there is no module-level engine.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

from sqlalchemy import event
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from queuectl.config import Settings
from queuectl.db.models import Base

logger = logging.getLogger(__name__)


def _enable_immediate_transactions(engine: AsyncEngine) -> None:
    """
    Make every SQLite transaction start with BEGIN IMMEDIATE.

    pysqlite defers BEGIN until the first write and never locks on reads, so
    two connections could both read the same pending row. Taking the write
    lock at BEGIN serializes transactions at the store; waiting writers are
    held by the busy timeout instead of failing.
    """

    @event.listens_for(engine.sync_engine, "connect")
    def _on_connect(dbapi_connection: Any, connection_record: Any) -> None:
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _on_begin(conn: Any) -> None:
        conn.exec_driver_sql("BEGIN IMMEDIATE")


class Database:
    """
    Engine and session factory for one store.

    Args:
        database_url: SQLAlchemy async URL (``sqlite+aiosqlite://`` or
            ``postgresql+asyncpg://``).
        pool_size: Connection pool size (server databases only).
        max_overflow: Pool overflow (server databases only).
        busy_timeout: Seconds a SQLite connection waits for the write lock.
        echo: Log emitted SQL.
    """

    def __init__(
        self,
        database_url: str,
        *,
        pool_size: int = 5,
        max_overflow: int = 10,
        busy_timeout: float = 30.0,
        echo: bool = False,
    ):
        self.url = make_url(database_url)

        if self.is_sqlite:
            self.engine = create_async_engine(
                self.url,
                connect_args={"timeout": busy_timeout},
                echo=echo,
            )
            _enable_immediate_transactions(self.engine)
        else:
            self.engine = create_async_engine(
                self.url,
                pool_size=pool_size,
                max_overflow=max_overflow,
                echo=echo,
                pool_pre_ping=True,
            )

        self._sessionmaker = async_sessionmaker(
            bind=self.engine,
            class_=AsyncSession,
            expire_on_commit=False,
            autoflush=False,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        """Create a database handle from application settings."""
        return cls(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            busy_timeout=settings.database_busy_timeout_seconds,
            echo=settings.log_level.upper() == "DEBUG",
        )

    @property
    def is_sqlite(self) -> bool:
        return self.url.get_backend_name() == "sqlite"

    @property
    def dialect_name(self) -> str:
        return self.engine.dialect.name

    async def create_schema(self) -> None:
        """Create the jobs and config tables if they do not exist."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(
            "Database schema ready",
            extra={"backend": self.url.get_backend_name()},
        )

    async def close(self) -> None:
        """Dispose of the engine and its pooled connections."""
        await self.engine.dispose()
        logger.info("Database connection closed")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession]:
        """
        Open a session wrapping exactly one transaction.

        Commits when the block exits normally, rolls back on error.

        Yields:
            AsyncSession: An async database session.
        """
        async with self._sessionmaker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise
