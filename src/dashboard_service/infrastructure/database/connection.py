"""Database connection management."""

from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from dashboard_service.config import get_settings


def _set_sqlite_pragma(dbapi_connection: Any, connection_record: Any) -> None:
    """Enforce foreign keys on SQLite (used for local runs and tests)."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def get_async_engine(url: str | None = None, *, pooled: bool = True) -> AsyncEngine:
    """Create async database engine.

    ``pooled=False`` gives a NullPool engine for short-lived event loops
    such as Celery tasks.
    """
    settings = get_settings()
    url = url or settings.database_url

    if url.startswith("sqlite"):
        engine = create_async_engine(url, echo=settings.debug)
        event.listen(engine.sync_engine, "connect", _set_sqlite_pragma)
        return engine

    if not pooled:
        return create_async_engine(url, echo=settings.debug, poolclass=NullPool)

    return create_async_engine(
        url,
        echo=settings.debug,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=True,
        pool_recycle=settings.db_pool_recycle,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create async session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Global session factory
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the global session factory."""
    global _engine, _session_factory
    if _session_factory is None:
        _engine = get_async_engine()
        _session_factory = create_session_factory(_engine)
    return _session_factory


async def close_engine() -> None:
    """Dispose the global engine on shutdown."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _session_factory = None


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session as async context manager."""
    factory = get_session_factory()
    async with factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI to get database session."""
    async with get_db_session() as session:
        yield session


@asynccontextmanager
async def task_session_factory() -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Session factory on a throwaway engine, for code run under ``asyncio.run``."""
    engine = get_async_engine(pooled=False)
    try:
        yield create_session_factory(engine)
    finally:
        await engine.dispose()
