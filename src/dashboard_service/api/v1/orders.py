"""Order endpoints for the committee dashboard."""

from datetime import datetime
from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_service.api.v1.deps import (
    get_activity_logger,
    get_actor,
    get_settings_cache,
    require_admin_key,
)
from dashboard_service.config import Settings, get_settings
from dashboard_service.errors import SourceFetchError, SyncConfigurationError
from dashboard_service.infrastructure.clients.squarespace import (
    SquarespaceOrder,
    map_fulfillment_status,
    size_from_line_item,
)
from dashboard_service.infrastructure.database.connection import get_session
from dashboard_service.infrastructure.database.models import FulfillmentStatus, ShippingStatus
from dashboard_service.services.activity import ActivityLogger
from dashboard_service.services.order_sync import OrderSyncService
from dashboard_service.services.orders import Actor, OrderService
from dashboard_service.services.settings_cache import SettingsCache
from shared.constants import (
    ACTION_ORDER_SYNCED,
    DEFAULT_ORDERS_PAGE_LIMIT,
    DEFAULT_SHIPPING_CARRIER,
    MAX_ORDERS_PAGE_LIMIT,
)

logger = structlog.get_logger()

router = APIRouter(dependencies=[Depends(require_admin_key)])


# =============================================================================
# Request/Response Models
# =============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class OrderItemResponse(_CamelModel):
    id: int | None = None
    product_name: str
    quantity: int
    size: str | None = None
    image_url: str | None = None


class OrderResponse(_CamelModel):
    """A synced order with its line items."""

    id: str
    order_number: str | None = None
    customer_email: str
    customer_name: str
    fulfillment_status: FulfillmentStatus
    shipping_status: ShippingStatus
    shipping_tracking_number: str | None = None
    shipping_carrier: str | None = None
    shipped_at: datetime | None = None
    created_on: datetime
    synced_at: datetime
    items: list[OrderItemResponse]


class OrdersPageResponse(_CamelModel):
    items: list[OrderResponse]
    total: int
    has_more: bool
    status_counts: dict[str, int]
    server_version: datetime | None = None


class OrderPreviewResponse(_CamelModel):
    """An order as it would be synced, read straight from Squarespace."""

    id: str
    order_number: str | None = None
    customer_email: str
    customer_name: str
    fulfillment_status: FulfillmentStatus
    created_on: datetime
    items: list[OrderItemResponse]


class ManualSyncResponse(_CamelModel):
    added: int
    updated: int


class StatusUpdateRequest(_CamelModel):
    status: FulfillmentStatus


class ShippingUpdateRequest(_CamelModel):
    tracking_number: str = Field(..., min_length=1, max_length=255)
    carrier: str = Field(DEFAULT_SHIPPING_CARRIER, max_length=50)


def _preview(order: SquarespaceOrder) -> OrderPreviewResponse:
    return OrderPreviewResponse(
        id=order.id,
        order_number=order.order_number,
        customer_email=order.customer_email,
        customer_name=order.customer_name,
        fulfillment_status=map_fulfillment_status(order.fulfillment_status),
        created_on=order.created_on_utc,
        items=[
            OrderItemResponse(
                product_name=item.product_name,
                quantity=item.quantity,
                size=size_from_line_item(item),
                image_url=item.image_url,
            )
            for item in order.line_items
        ],
    )


def get_order_service(
    session: AsyncSession = Depends(get_session),
    activity: ActivityLogger = Depends(get_activity_logger),
) -> OrderService:
    return OrderService(session, activity)


def get_order_sync_service(
    session: AsyncSession = Depends(get_session),
    settings_cache: SettingsCache = Depends(get_settings_cache),
    settings: Settings = Depends(get_settings),
) -> OrderSyncService:
    return OrderSyncService(session, settings_cache, app_settings=settings)


# =============================================================================
# Endpoints
# =============================================================================


@router.get("", response_model=OrdersPageResponse)
async def list_orders(
    status: Annotated[FulfillmentStatus, Query()] = FulfillmentStatus.PENDING,
    q: Annotated[str | None, Query(max_length=200)] = None,
    limit: Annotated[int, Query(ge=1, le=MAX_ORDERS_PAGE_LIMIT)] = DEFAULT_ORDERS_PAGE_LIMIT,
    offset: Annotated[int, Query(ge=0)] = 0,
    service: OrderService = Depends(get_order_service),
) -> OrdersPageResponse:
    """
    Get a page of orders in one fulfillment status, newest first.

    ``serverVersion`` changes whenever any order is written, so clients can
    poll it cheaply to decide whether to refetch.
    """
    page = await service.get_page(status, query=q, limit=limit, offset=offset)
    return OrdersPageResponse(
        items=[OrderResponse.model_validate(order) for order in page.orders],
        total=page.total,
        has_more=page.has_more,
        status_counts=page.status_counts,
        server_version=page.server_version,
    )


@router.get("/size-counts", response_model=dict[str, dict[str, int]])
async def get_size_counts(
    service: OrderService = Depends(get_order_service),
) -> dict[str, dict[str, int]]:
    """Ordered quantity per product and size."""
    return await service.size_counts()


@router.get("/preview", response_model=list[OrderPreviewResponse])
async def preview_orders(
    keyword: Annotated[str | None, Query(max_length=200)] = None,
    sync_service: OrderSyncService = Depends(get_order_sync_service),
) -> list[OrderPreviewResponse]:
    """Fetch matching orders from Squarespace without saving them."""
    try:
        orders = await sync_service.preview_orders(keyword)
    except SyncConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SourceFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return [_preview(order) for order in orders]


@router.post("/sync", response_model=ManualSyncResponse)
async def sync_orders_now(
    sync_service: OrderSyncService = Depends(get_order_sync_service),
    activity: ActivityLogger = Depends(get_activity_logger),
    actor: Actor = Depends(get_actor),
) -> ManualSyncResponse:
    """Run an order sync immediately, bypassing the trigger rate limit."""
    try:
        result = await sync_service.sync_orders()
    except SyncConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SourceFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))

    await activity.record(
        ACTION_ORDER_SYNCED,
        user_id=actor.user_id,
        user_name=actor.user_name,
        entity_type="order",
        details={"added": result.added, "updated": result.updated},
    )
    return ManualSyncResponse(added=result.added, updated=result.updated)


@router.patch("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: str,
    request: StatusUpdateRequest,
    service: OrderService = Depends(get_order_service),
    actor: Actor = Depends(get_actor),
) -> OrderResponse:
    """Move an order to another fulfillment status."""
    order = await service.update_status(order_id, request.status, actor)
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderResponse.model_validate(order)


@router.patch("/{order_id}/shipping", response_model=OrderResponse)
async def update_order_shipping(
    order_id: str,
    request: ShippingUpdateRequest,
    service: OrderService = Depends(get_order_service),
    actor: Actor = Depends(get_actor),
) -> OrderResponse:
    """Mark an order as shipped with its tracking number."""
    order = await service.update_shipping(
        order_id, request.tracking_number, actor, carrier=request.carrier
    )
    if order is None:
        raise HTTPException(status_code=404, detail="Order not found")
    return OrderResponse.model_validate(order)


@router.delete("/{order_id}", status_code=204)
async def delete_order(
    order_id: str,
    service: OrderService = Depends(get_order_service),
    actor: Actor = Depends(get_actor),
) -> None:
    """Delete an order and its line items."""
    if not await service.delete_order(order_id, actor):
        raise HTTPException(status_code=404, detail="Order not found")
