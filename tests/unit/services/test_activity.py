"""Unit tests for the activity log writer."""

from pathlib import Path

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_service.infrastructure.database.connection import (
    create_session_factory,
    get_async_engine,
)
from dashboard_service.infrastructure.database.models import ActivityLog
from dashboard_service.services.activity import ActivityLogger


@pytest.mark.asyncio
async def test_record_writes_entry(session_factory: async_sessionmaker[AsyncSession]) -> None:
    await ActivityLogger(session_factory).record(
        "ORDER_PACKED",
        user_id="user-1",
        user_name="Jordan",
        entity_type="order",
        entity_id=42,
        details={"newStatus": "PACKED"},
    )

    async with session_factory() as session:
        entry = (await session.execute(select(ActivityLog))).scalar_one()
    assert entry.entity_id == "42"
    assert entry.details == {"newStatus": "PACKED"}
    assert entry.created_at is not None


@pytest.mark.asyncio
async def test_record_many_with_nothing_to_write(
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    await ActivityLogger(session_factory).record_many([])

    async with session_factory() as session:
        assert (await session.execute(select(ActivityLog))).first() is None


@pytest.mark.asyncio
async def test_write_failure_is_not_raised(tmp_path: Path) -> None:
    # No tables exist in this database
    engine = get_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'empty.db'}")
    try:
        await ActivityLogger(create_session_factory(engine)).record("ORDER_DELETED")
    finally:
        await engine.dispose()


@pytest.mark.asyncio
async def test_connection_error_is_not_raised() -> None:
    def unreachable() -> AsyncSession:
        raise OSError("Connection refused")

    await ActivityLogger(unreachable).record_many([{"action": "MEMBER_SYNCED"}])
