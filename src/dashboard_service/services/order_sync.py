"""Order synchronization service.

Reconciles keyword-matching Squarespace orders into the local orders table.
Squarespace is the source of truth for order metadata and line items, while
fulfillment progress is owned locally once an operator moves an order out of
PENDING.
"""

from collections.abc import Callable
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

import structlog
from sqlalchemy import delete, insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_service.config import Settings, get_settings
from dashboard_service.infrastructure.clients.squarespace import (
    SquarespaceClient,
    SquarespaceOrder,
    filter_orders_by_keyword,
    map_fulfillment_status,
    size_from_line_item,
)
from dashboard_service.infrastructure.database.models import (
    FulfillmentStatus,
    Order,
    OrderLineItem,
)
from dashboard_service.services.settings_cache import (
    SettingsCache,
    SettingsStore,
    SyncSettings,
)
from shared.clock import utcnow
from shared.constants import ORDER_WATERMARK_BACKDATE_DAYS

logger = structlog.get_logger()

ClientFactory = Callable[[SyncSettings], SquarespaceClient]


@dataclass
class OrderSyncResult:
    """Counts of orders inserted and refreshed by one sync run."""

    added: int = 0
    updated: int = 0


class OrderSyncService:
    """Service for synchronizing Squarespace orders into the database."""

    def __init__(
        self,
        session: AsyncSession,
        settings_cache: SettingsCache,
        client_factory: ClientFactory | None = None,
        app_settings: Settings | None = None,
    ):
        self.session = session
        self.settings_cache = settings_cache
        self.client_factory = client_factory or SquarespaceClient.from_settings
        self.app_settings = app_settings or get_settings()

    async def preview_orders(self, keyword: str | None = None) -> list[SquarespaceOrder]:
        """Fetch every matching order from Squarespace without writing anything."""
        sync_settings = await self.settings_cache.get(self.session)
        keyword = sync_settings.require_shirt_keyword(keyword)
        async with self.client_factory(sync_settings) as client:
            fetched = await client.fetch_orders()
        return filter_orders_by_keyword(fetched.orders, keyword)

    async def sync_orders(self, keyword: str | None = None) -> OrderSyncResult:
        """
        Sync matching Squarespace orders into the orders table.

        Fetches incrementally from one day before the stored watermark,
        unless some stored order still lacks its customer-facing order
        number, in which case every order is fetched so it can be
        backfilled.

        Args:
            keyword: Product keyword overriding the configured one

        Returns:
            Counts of added and updated orders
        """
        sync_settings = await self.settings_cache.get(self.session)
        keyword = sync_settings.require_shirt_keyword(keyword)

        watermark = sync_settings.last_squarespace_order_date
        since = None
        if await self._has_missing_order_numbers():
            logger.info("Full order sync: backfilling missing order numbers")
        elif watermark is not None:
            since = watermark - timedelta(days=ORDER_WATERMARK_BACKDATE_DAYS)
            logger.info("Incremental order sync", since=since.isoformat())
        else:
            logger.info("Full order sync: no previous sync date found")

        async with self.client_factory(sync_settings) as client:
            fetched = await client.fetch_orders(since)

        orders = filter_orders_by_keyword(fetched.orders, keyword)
        logger.info("Found matching orders", keyword=keyword, count=len(orders))

        result = await self._upsert_orders(orders)

        latest = fetched.latest_order_date
        if latest is not None and (watermark is None or latest > watermark):
            if sync_settings.settings_id is None:
                logger.warning("No settings row to store the order watermark in")
            else:
                store = SettingsStore(self.session, self.settings_cache)
                await store.advance_order_watermark(sync_settings.settings_id, latest)

        logger.info("Order sync completed", added=result.added, updated=result.updated)
        return result

    async def _has_missing_order_numbers(self) -> bool:
        result = await self.session.execute(
            select(Order.id).where(Order.order_number.is_(None)).limit(1)
        )
        return result.first() is not None

    async def _upsert_orders(self, orders: list[SquarespaceOrder]) -> OrderSyncResult:
        result = OrderSyncResult()
        if not orders:
            return result

        # Load existing statuses once to avoid per-order lookups.
        rows = await self.session.execute(select(Order.id, Order.fulfillment_status))
        existing: dict[str, FulfillmentStatus] = {row.id: row.fulfillment_status for row in rows}

        now = utcnow()
        items_by_order: dict[str, list[dict[str, Any]]] = {}

        for order in orders:
            if order.id in items_by_order:
                logger.debug("Skipping repeated order in fetch", order_id=order.id)
                continue

            values = {
                "order_number": order.order_number,
                "customer_email": order.customer_email,
                "customer_name": order.customer_name,
                "fulfillment_status": map_fulfillment_status(order.fulfillment_status),
                "created_on": order.created_on_utc,
                "synced_at": now,
            }

            existing_status = existing.get(order.id)
            if existing_status is None:
                await self.session.execute(insert(Order).values(id=order.id, **values))
                existing[order.id] = values["fulfillment_status"]
                result.added += 1
            else:
                # Squarespace only seeds the status; keep operator progress.
                if existing_status != FulfillmentStatus.PENDING:
                    values["fulfillment_status"] = existing_status
                await self.session.execute(
                    update(Order).where(Order.id == order.id).values(**values)
                )
                result.updated += 1

            items_by_order[order.id] = [
                {
                    "order_id": order.id,
                    "product_name": item.product_name,
                    "quantity": item.quantity,
                    "size": size_from_line_item(item),
                    "image_url": item.image_url,
                }
                for item in order.line_items
            ]

        await self.session.commit()
        await self._replace_line_items(items_by_order)
        return result

    async def _replace_line_items(self, items_by_order: dict[str, list[dict[str, Any]]]) -> None:
        """Delete all items of the touched orders, then insert the fresh ones."""
        await self.session.execute(
            delete(OrderLineItem).where(OrderLineItem.order_id.in_(list(items_by_order)))
        )
        await self.session.commit()

        all_items = [item for items in items_by_order.values() for item in items]
        chunk_size = self.app_settings.order_line_item_chunk_size
        for start in range(0, len(all_items), chunk_size):
            await self.session.execute(insert(OrderLineItem), all_items[start:start + chunk_size])
            await self.session.commit()

        logger.debug(
            "Replaced order line items",
            orders=len(items_by_order),
            items=len(all_items),
        )
