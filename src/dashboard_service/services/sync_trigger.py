"""Rate-limited entry points for the order and member syncs.

Both the HTTP trigger endpoints and the Celery worker start syncs through
:class:`SyncTrigger`. Admission is decided by a persisted per-integration
attempt timestamp on the settings row, so every process shares one limit.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

import structlog
from sqlalchemy import or_, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_service.config import Settings, get_settings
from dashboard_service.infrastructure.database.models import SiteSettings
from dashboard_service.services.activity import ActivityLogger
from dashboard_service.services.member_sync import (
    ClientFactory as MemberClientFactory,
    FullSyncResult,
    MemberSyncService,
)
from dashboard_service.services.order_sync import (
    ClientFactory as OrderClientFactory,
    OrderSyncResult,
    OrderSyncService,
)
from dashboard_service.services.settings_cache import SettingsCache, SettingsStore
from shared.clock import utcnow
from shared.constants import (
    ACTION_MEMBER_SYNCED,
    MEMBER_POLL_HIGH_THRESHOLD,
    MEMBER_POLL_INTERVAL_HIGH,
    MEMBER_POLL_INTERVAL_LOW,
    MEMBER_POLL_INTERVAL_MEDIUM,
)

logger = structlog.get_logger()


class SyncIntegration(str, Enum):
    """Integrations with their own rate-limit stamp on the settings row."""

    ORDERS = "orders"
    MEMBERS = "members"

    @property
    def stamp_column(self) -> str:
        return {
            SyncIntegration.ORDERS: "last_order_sync_at",
            SyncIntegration.MEMBERS: "last_member_sync_at",
        }[self]


class SyncStatus(str, Enum):
    ADMITTED = "admitted"
    TOO_SOON = "too_soon"


@dataclass
class SyncOutcome:
    """Result of a trigger: either rejected as too soon or the sync result."""

    status: SyncStatus
    orders: OrderSyncResult | None = None
    members: FullSyncResult | None = None
    next_check_in_seconds: int | None = None

    @property
    def admitted(self) -> bool:
        return self.status == SyncStatus.ADMITTED


def next_check_interval(new_members: int) -> int:
    """Seconds an external poller should wait before the next member sync."""
    if new_members >= MEMBER_POLL_HIGH_THRESHOLD:
        return MEMBER_POLL_INTERVAL_HIGH
    if new_members >= 1:
        return MEMBER_POLL_INTERVAL_MEDIUM
    return MEMBER_POLL_INTERVAL_LOW


class SyncRateLimiter:
    """Persisted minimum-interval guard for sync runs."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings_cache: SettingsCache,
    ):
        self.session_factory = session_factory
        self.settings_cache = settings_cache

    async def try_acquire(self, integration: SyncIntegration, min_interval: timedelta) -> bool:
        """
        Claim a sync slot for ``integration``.

        The attempt timestamp is written with one conditional UPDATE, so of
        two racing callers only one sees its row updated. The stamp is
        committed before any sync work and is kept even if the sync fails.

        Returns:
            True if the caller may run the sync now
        """
        async with self.session_factory() as session:
            settings_id = await SettingsStore(session, self.settings_cache).ensure_row()

            now = utcnow()
            column = getattr(SiteSettings, integration.stamp_column)
            result = await session.execute(
                update(SiteSettings)
                .where(SiteSettings.id == settings_id)
                .where(or_(column.is_(None), column <= now - min_interval))
                .values({integration.stamp_column: now})
                .execution_options(synchronize_session=False)
            )
            admitted = result.rowcount == 1
            await session.commit()

        logger.debug("Sync admission", integration=integration.value, admitted=admitted)
        return admitted


class SyncTrigger:
    """Runs order and member syncs behind the rate limiter."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        settings_cache: SettingsCache,
        app_settings: Settings | None = None,
        order_client_factory: OrderClientFactory | None = None,
        member_client_factory: MemberClientFactory | None = None,
    ):
        self.session_factory = session_factory
        self.settings_cache = settings_cache
        self.app_settings = app_settings or get_settings()
        self.order_client_factory = order_client_factory
        self.member_client_factory = member_client_factory
        self.rate_limiter = SyncRateLimiter(session_factory, settings_cache)
        self.activity = ActivityLogger(session_factory)

    async def run_orders(self) -> SyncOutcome:
        """Sync orders unless a run started within the order interval."""
        min_interval = timedelta(seconds=self.app_settings.order_sync_min_interval_seconds)
        if not await self.rate_limiter.try_acquire(SyncIntegration.ORDERS, min_interval):
            logger.info("Order sync skipped: too soon since last run")
            return SyncOutcome(status=SyncStatus.TOO_SOON)

        async with self.session_factory() as session:
            service = OrderSyncService(
                session,
                self.settings_cache,
                client_factory=self.order_client_factory,
                app_settings=self.app_settings,
            )
            result = await service.sync_orders()

        return SyncOutcome(status=SyncStatus.ADMITTED, orders=result)

    async def run_members(self) -> SyncOutcome:
        """Run a full member sync and work out when to poll next."""
        min_interval = timedelta(seconds=self.app_settings.member_sync_min_interval_seconds)
        if not await self.rate_limiter.try_acquire(SyncIntegration.MEMBERS, min_interval):
            logger.info("Member sync skipped: too soon since last run")
            return SyncOutcome(status=SyncStatus.TOO_SOON)

        service = MemberSyncService(
            self.session_factory,
            self.settings_cache,
            client_factory=self.member_client_factory,
            app_settings=self.app_settings,
        )
        result = await service.full_sync()

        await self.activity.record_many(
            [
                {
                    "action": ACTION_MEMBER_SYNCED,
                    "user_id": None,
                    "user_name": "System",
                    "entity_type": "member",
                    "entity_id": str(member.id),
                    "details": {"email": member.email, "fullname": member.fullname},
                }
                for member in result.new_members
            ]
        )

        interval = next_check_interval(len(result.new_members))
        logger.info(
            "Member trigger completed",
            new_members=len(result.new_members),
            next_check_in_seconds=interval,
        )
        return SyncOutcome(
            status=SyncStatus.ADMITTED,
            members=result,
            next_check_in_seconds=interval,
        )
