"""Activity log writer for operator and sync actions."""

from typing import Any

import structlog
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_service.infrastructure.database.models import ActivityLog

logger = structlog.get_logger()


class ActivityLogger:
    """Writes audit entries in their own session.

    A failed write is logged and dropped so auditing can never fail the
    action being audited.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self.session_factory = session_factory

    async def record(
        self,
        action: str,
        *,
        user_id: str | None = None,
        user_name: str | None = None,
        entity_type: str | None = None,
        entity_id: str | int | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        await self.record_many(
            [
                {
                    "action": action,
                    "user_id": user_id,
                    "user_name": user_name,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id) if entity_id is not None else None,
                    "details": details,
                }
            ]
        )

    async def record_many(self, entries: list[dict[str, Any]]) -> None:
        """Write several entries in one statement."""
        if not entries:
            return
        try:
            async with self.session_factory() as session:
                await session.execute(insert(ActivityLog), entries)
                await session.commit()
        except Exception:
            logger.exception(
                "Failed to write activity log",
                actions=sorted({entry["action"] for entry in entries}),
            )
