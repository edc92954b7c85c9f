"""Tests for the operator order endpoints."""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
import pytest_asyncio
from fastapi import Depends
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_service.api.v1 import orders
from dashboard_service.config import Settings
from dashboard_service.infrastructure.database.connection import get_session
from dashboard_service.infrastructure.database.models import (
    ActivityLog,
    FulfillmentStatus,
    Order,
    OrderLineItem,
)
from dashboard_service.services.order_sync import OrderSyncService
from dashboard_service.services.settings_cache import SettingsCache
from tests.fakes import SquarespaceFake, squarespace_order

T = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


@pytest_asyncio.fixture
async def seeded(session_factory: async_sessionmaker[AsyncSession]) -> None:
    async with session_factory() as session:
        session.add_all(
            [
                Order(
                    id="A",
                    order_number="1001",
                    customer_email="alex@example.com",
                    customer_name="Alex Chen",
                    created_on=T,
                    items=[OrderLineItem(product_name="Pub Crawl Shirt", quantity=2, size="M")],
                ),
                Order(
                    id="B",
                    order_number="1002",
                    customer_email="blair@example.com",
                    customer_name="Blair Ng",
                    created_on=T - timedelta(hours=1),
                    items=[OrderLineItem(product_name="Pub Crawl Shirt", quantity=1, size="XL")],
                ),
                Order(
                    id="C",
                    order_number="1003",
                    customer_email="casey@example.com",
                    customer_name="Casey Roe",
                    fulfillment_status=FulfillmentStatus.PACKED,
                    created_on=T - timedelta(hours=2),
                    items=[OrderLineItem(product_name="Pub Crawl Shirt", quantity=1, size=None)],
                ),
            ]
        )
        await session.commit()


async def activity(session_factory: async_sessionmaker[AsyncSession]) -> list[ActivityLog]:
    async with session_factory() as session:
        result = await session.execute(select(ActivityLog).order_by(ActivityLog.id))
        return list(result.scalars())


class TestListOrders:
    @pytest.mark.asyncio
    async def test_requires_api_key(self, async_client: AsyncClient) -> None:
        response = await async_client.get("/api/v1/orders")
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_lists_pending_newest_first(
        self, seeded: None, async_client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await async_client.get("/api/v1/orders", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()
        assert [order["id"] for order in data["items"]] == ["A", "B"]
        assert data["total"] == 2
        assert data["hasMore"] is False
        assert data["statusCounts"] == {"PENDING": 2, "PACKED": 1, "FULFILLED": 0}
        assert data["serverVersion"] is not None
        assert data["items"][0]["items"][0]["productName"] == "Pub Crawl Shirt"

    @pytest.mark.asyncio
    async def test_pages(
        self, seeded: None, async_client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await async_client.get(
            "/api/v1/orders", params={"limit": 1}, headers=admin_headers
        )

        data = response.json()
        assert [order["id"] for order in data["items"]] == ["A"]
        assert data["hasMore"] is True

    @pytest.mark.asyncio
    @pytest.mark.parametrize("query, expected", [("blair", ["B"]), ("xl", ["B"]), ("1001", ["A"])])
    async def test_search(
        self,
        seeded: None,
        async_client: AsyncClient,
        admin_headers: dict[str, str],
        query: str,
        expected: list[str],
    ) -> None:
        response = await async_client.get(
            "/api/v1/orders", params={"q": query}, headers=admin_headers
        )

        assert [order["id"] for order in response.json()["items"]] == expected

    @pytest.mark.asyncio
    async def test_size_counts(
        self, seeded: None, async_client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await async_client.get("/api/v1/orders/size-counts", headers=admin_headers)

        assert response.json() == {"Pub Crawl Shirt": {"M": 2, "XL": 1, "Unknown": 1}}


class TestOrderActions:
    @pytest.mark.asyncio
    async def test_pack_order_is_logged(
        self,
        seeded: None,
        async_client: AsyncClient,
        admin_headers: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        response = await async_client.patch(
            "/api/v1/orders/A/status", json={"status": "PACKED"}, headers=admin_headers
        )

        assert response.status_code == 200
        assert response.json()["fulfillmentStatus"] == "PACKED"

        [entry] = await activity(session_factory)
        assert entry.action == "ORDER_PACKED"
        assert (entry.user_id, entry.user_name) == ("user-1", "Jordan")
        assert entry.entity_id == "A"
        assert entry.details == {
            "oldStatus": "PENDING",
            "newStatus": "PACKED",
            "customerName": "Alex Chen",
        }

    @pytest.mark.asyncio
    async def test_back_to_pending_is_generic_update(
        self,
        seeded: None,
        async_client: AsyncClient,
        admin_headers: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await async_client.patch(
            "/api/v1/orders/C/status", json={"status": "PENDING"}, headers=admin_headers
        )

        [entry] = await activity(session_factory)
        assert entry.action == "ORDER_STATUS_UPDATED"

    @pytest.mark.asyncio
    async def test_unknown_order(
        self, seeded: None, async_client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await async_client.patch(
            "/api/v1/orders/missing/status", json={"status": "PACKED"}, headers=admin_headers
        )
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_ship_order(
        self, seeded: None, async_client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await async_client.patch(
            "/api/v1/orders/B/shipping",
            json={"trackingNumber": "TRK123"},
            headers=admin_headers,
        )

        assert response.status_code == 200
        data = response.json()
        assert data["shippingStatus"] == "SHIPPED"
        assert data["shippingTrackingNumber"] == "TRK123"
        assert data["shippingCarrier"] == "auspost"
        assert data["shippedAt"] is not None

    @pytest.mark.asyncio
    async def test_delete_order(
        self,
        seeded: None,
        async_client: AsyncClient,
        admin_headers: dict[str, str],
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        response = await async_client.delete("/api/v1/orders/A", headers=admin_headers)
        assert response.status_code == 204

        async with session_factory() as session:
            assert await session.get(Order, "A") is None
            items = await session.execute(
                select(OrderLineItem).where(OrderLineItem.order_id == "A")
            )
            assert items.first() is None

        again = await async_client.delete("/api/v1/orders/A", headers=admin_headers)
        assert again.status_code == 404
        assert [entry.action for entry in await activity(session_factory)] == ["ORDER_DELETED"]


class TestManualSync:
    @pytest.mark.asyncio
    async def test_sync_now(
        self,
        app: Any,
        async_client: AsyncClient,
        admin_headers: dict[str, str],
        save_settings: Any,
        settings_cache: SettingsCache,
        test_settings: Settings,
        session_factory: async_sessionmaker[AsyncSession],
    ) -> None:
        await save_settings(squarespace_api_key="sq-key", shirt_keyword="Pub Crawl")
        fake = SquarespaceFake([[squarespace_order("A", T), squarespace_order("B", T)]])

        def sync_service(session: AsyncSession = Depends(get_session)) -> OrderSyncService:
            return OrderSyncService(
                session,
                settings_cache,
                client_factory=fake.client_factory(test_settings),
                app_settings=test_settings,
            )

        app.dependency_overrides[orders.get_order_sync_service] = sync_service

        response = await async_client.post("/api/v1/orders/sync", headers=admin_headers)

        assert response.status_code == 200
        assert response.json() == {"added": 2, "updated": 0}
        [entry] = await activity(session_factory)
        assert entry.action == "ORDER_SYNCED"
        assert entry.details == {"added": 2, "updated": 0}

    @pytest.mark.asyncio
    async def test_preview_without_settings(
        self, async_client: AsyncClient, admin_headers: dict[str, str]
    ) -> None:
        response = await async_client.get("/api/v1/orders/preview", headers=admin_headers)

        assert response.status_code == 400
        assert "keyword" in response.json()["detail"]
