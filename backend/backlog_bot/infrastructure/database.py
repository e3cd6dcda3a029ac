"""Database Session Manager: async engine for the session_records table.

Invariants:
    - Every session rolls back on exception; nothing half-written is committed
    - SQLAlchemy exceptions leave this module as DatabaseError (core/errors.py)
    - Pool sizing applies to server databases only; SQLite keeps its default pool

Design Decisions:
    - Singleton db_manager created by init_db only when SESSION_BACKEND=sql
    - expire_on_commit=False: records are read after commit without a reload
    - create_schema() for SQLite/dev setups; Postgres schemas come from alembic
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import text
from sqlalchemy.exc import (
    DBAPIError, IntegrityError, OperationalError, SQLAlchemyError,
)
from sqlalchemy.ext.asyncio import (
    AsyncSession, async_sessionmaker, create_async_engine,
)

# Registers session_records on Base.metadata
from backlog_bot import models  # noqa: F401
from backlog_bot.core.errors import DatabaseError
from backlog_bot.db.base import Base

logger = logging.getLogger(__name__)

# Most specific first: OperationalError and IntegrityError are DBAPIErrors
_ERROR_MAP: tuple[tuple[type[SQLAlchemyError], str, str], ...] = (
    (IntegrityError, "Integrity constraint violated", "commit"),
    (OperationalError, "Connection or operational error", "execute"),
    (DBAPIError, "Database driver error", "query"),
    (SQLAlchemyError, "Database operation failed", "unknown"),
)


def to_database_error(exc: SQLAlchemyError) -> DatabaseError:
    for exc_type, message, operation in _ERROR_MAP:
        if isinstance(exc, exc_type):
            return DatabaseError(message, operation)
    return DatabaseError(str(exc), "unknown")


class DatabaseSessionManager:
    """Owns the engine and hands out sessions that roll back on failure."""

    def __init__(
        self, database_url: str, pool_size: int = 20, max_overflow: int = 10,
    ):
        engine_kwargs = {"pool_pre_ping": True}
        if not database_url.startswith("sqlite"):
            engine_kwargs.update(
                pool_size=pool_size, max_overflow=max_overflow, pool_recycle=3600,
            )
        self.engine = create_async_engine(database_url, **engine_kwargs)
        self._session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False,
        )

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        session = self._session_factory()
        try:
            yield session
        except SQLAlchemyError as e:
            await session.rollback()
            err = to_database_error(e)
            logger.error(f"{err.message}: {e}", extra={"error_code": err.code})
            raise err from e
        finally:
            await session.close()

    async def create_schema(self) -> None:
        """Create missing tables from Base.metadata."""
        try:
            async with self.engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
        except SQLAlchemyError as e:
            raise to_database_error(e) from e

    async def health_check(self) -> bool:
        """SELECT 1 round trip (readiness probe)."""
        try:
            async with self.session() as db:
                await db.execute(text("SELECT 1"))
            return True
        except (DatabaseError, OSError) as e:
            logger.error(f"DB health check failed: {e}")
            return False

    async def dispose(self) -> None:
        await self.engine.dispose()


db_manager: DatabaseSessionManager | None = None


def init_db(database_url: str, **kwargs) -> DatabaseSessionManager:
    global db_manager
    db_manager = DatabaseSessionManager(database_url, **kwargs)
    return db_manager
