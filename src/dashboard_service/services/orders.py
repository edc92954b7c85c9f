"""Operator queries and actions on synced orders."""

from dataclasses import dataclass, field
from datetime import datetime

import structlog
from sqlalchemy import delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from dashboard_service.infrastructure.database.models import (
    FulfillmentStatus,
    Order,
    OrderLineItem,
    ShippingStatus,
)
from dashboard_service.services.activity import ActivityLogger
from shared.clock import as_utc, utcnow
from shared.constants import (
    ACTION_ORDER_DELETED,
    ACTION_ORDER_FULFILLED,
    ACTION_ORDER_PACKED,
    ACTION_ORDER_SHIPPED,
    ACTION_ORDER_STATUS_UPDATED,
    DEFAULT_ORDERS_PAGE_LIMIT,
    DEFAULT_SHIPPING_CARRIER,
    MAX_ORDERS_PAGE_LIMIT,
)

logger = structlog.get_logger()

_STATUS_ACTIONS = {
    FulfillmentStatus.PACKED: ACTION_ORDER_PACKED,
    FulfillmentStatus.FULFILLED: ACTION_ORDER_FULFILLED,
}


@dataclass
class Actor:
    """Operator performing an action, as recorded in the activity log."""

    user_id: str | None = None
    user_name: str | None = None


@dataclass
class OrdersPage:
    orders: list[Order]
    total: int
    has_more: bool
    status_counts: dict[str, int] = field(default_factory=dict)
    server_version: datetime | None = None


class OrderService:
    """Reads and operator-driven writes on the orders table."""

    def __init__(self, session: AsyncSession, activity: ActivityLogger):
        self.session = session
        self.activity = activity

    async def get_page(
        self,
        status: FulfillmentStatus,
        query: str | None = None,
        limit: int = DEFAULT_ORDERS_PAGE_LIMIT,
        offset: int = 0,
    ) -> OrdersPage:
        """
        Get one page of orders in ``status``, newest first.

        ``query`` matches customer name, email, order number or ID, or the
        product name or size of any line item (case-insensitive substring).
        Status counts and the server version cover all orders.
        """
        limit = min(max(limit, 1), MAX_ORDERS_PAGE_LIMIT)
        offset = max(offset, 0)

        conditions = [Order.fulfillment_status == status]
        query = (query or "").strip()
        if query:
            pattern = f"%{query}%"
            matching_items = select(OrderLineItem.order_id).where(
                or_(
                    OrderLineItem.product_name.ilike(pattern),
                    OrderLineItem.size.ilike(pattern),
                )
            )
            conditions.append(
                or_(
                    Order.customer_name.ilike(pattern),
                    Order.customer_email.ilike(pattern),
                    Order.order_number.ilike(pattern),
                    Order.id.ilike(pattern),
                    Order.id.in_(matching_items),
                )
            )

        total = await self.session.scalar(
            select(func.count()).select_from(Order).where(*conditions)
        )
        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(*conditions)
            .order_by(Order.created_on.desc())
            .limit(limit)
            .offset(offset)
        )
        orders = list(result.scalars())

        return OrdersPage(
            orders=orders,
            total=total or 0,
            has_more=offset + len(orders) < (total or 0),
            status_counts=await self.status_counts(),
            server_version=await self.server_version(),
        )

    async def status_counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in FulfillmentStatus}
        result = await self.session.execute(
            select(Order.fulfillment_status, func.count()).group_by(Order.fulfillment_status)
        )
        for status, total in result:
            counts[FulfillmentStatus(status).value] = total
        return counts

    async def server_version(self) -> datetime | None:
        """Latest ``synced_at`` across orders; changes whenever any order is written."""
        return as_utc(await self.session.scalar(select(func.max(Order.synced_at))))

    async def size_counts(self) -> dict[str, dict[str, int]]:
        """Total quantity per product and size over all stored orders."""
        size = func.coalesce(OrderLineItem.size, "Unknown")
        result = await self.session.execute(
            select(OrderLineItem.product_name, size, func.sum(OrderLineItem.quantity))
            .group_by(OrderLineItem.product_name, size)
            .order_by(OrderLineItem.product_name)
        )
        counts: dict[str, dict[str, int]] = {}
        for product_name, item_size, quantity in result:
            counts.setdefault(product_name, {})[item_size] = int(quantity or 0)
        return counts

    async def get_order(self, order_id: str) -> Order | None:
        result = await self.session.execute(
            select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
        )
        return result.scalar_one_or_none()

    async def update_status(
        self, order_id: str, status: FulfillmentStatus, actor: Actor
    ) -> Order | None:
        """Move an order to ``status``. Returns None if the order does not exist."""
        order = await self.get_order(order_id)
        if order is None:
            return None

        old_status = order.fulfillment_status
        order.fulfillment_status = status
        order.synced_at = utcnow()
        await self.session.commit()

        logger.info(
            "Order status updated",
            order_id=order_id,
            old_status=old_status.value,
            new_status=status.value,
        )
        await self.activity.record(
            _STATUS_ACTIONS.get(status, ACTION_ORDER_STATUS_UPDATED),
            user_id=actor.user_id,
            user_name=actor.user_name,
            entity_type="order",
            entity_id=order_id,
            details={
                "oldStatus": old_status.value,
                "newStatus": status.value,
                "customerName": order.customer_name,
            },
        )
        return order

    async def update_shipping(
        self,
        order_id: str,
        tracking_number: str,
        actor: Actor,
        carrier: str = DEFAULT_SHIPPING_CARRIER,
    ) -> Order | None:
        """Mark an order as shipped. Returns None if the order does not exist."""
        order = await self.get_order(order_id)
        if order is None:
            return None

        now = utcnow()
        order.shipping_status = ShippingStatus.SHIPPED
        order.shipping_tracking_number = tracking_number
        order.shipping_carrier = carrier
        order.shipped_at = now
        order.synced_at = now
        await self.session.commit()

        logger.info("Order shipped", order_id=order_id, carrier=carrier)
        await self.activity.record(
            ACTION_ORDER_SHIPPED,
            user_id=actor.user_id,
            user_name=actor.user_name,
            entity_type="order",
            entity_id=order_id,
            details={
                "trackingNumber": tracking_number,
                "carrier": carrier,
                "customerName": order.customer_name,
            },
        )
        return order

    async def delete_order(self, order_id: str, actor: Actor) -> bool:
        """Delete an order and its line items. Returns False if it did not exist."""
        order = await self.session.get(Order, order_id)
        if order is None:
            return False
        customer_name = order.customer_name

        await self.session.execute(delete(OrderLineItem).where(OrderLineItem.order_id == order_id))
        await self.session.execute(delete(Order).where(Order.id == order_id))
        await self.session.commit()

        logger.info("Order deleted", order_id=order_id)
        await self.activity.record(
            ACTION_ORDER_DELETED,
            user_id=actor.user_id,
            user_name=actor.user_name,
            entity_type="order",
            entity_id=order_id,
            details={"customerName": customer_name},
        )
        return True
