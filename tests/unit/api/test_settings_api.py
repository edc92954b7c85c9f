"""Tests for the integration settings endpoints."""

import pytest
from httpx import AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_service.infrastructure.database.models import ActivityLog, SiteSettings


@pytest.mark.asyncio
async def test_settings_empty_before_first_save(
    async_client: AsyncClient, admin_headers: dict[str, str]
) -> None:
    response = await async_client.get("/api/v1/settings", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["shirtKeyword"] is None
    assert data["squarespaceApiKey"] is None


@pytest.mark.asyncio
async def test_save_encrypts_and_reports_changes(
    async_client: AsyncClient,
    admin_headers: dict[str, str],
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    body = {"squarespaceApiKey": "sq-key", "shirtKeyword": "Pub Crawl"}

    response = await async_client.put("/api/v1/settings", json=body, headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"changedFields": ["squarespace_api_key", "shirt_keyword"]}

    async with session_factory() as session:
        row = (await session.execute(select(SiteSettings))).scalar_one()
    assert row.squarespace_api_key not in (None, "sq-key")

    stored = (await async_client.get("/api/v1/settings", headers=admin_headers)).json()
    assert stored["squarespaceApiKey"] == "sq-key"
    assert stored["shirtKeyword"] == "Pub Crawl"
    assert stored["rubricUrl"] is None


@pytest.mark.asyncio
async def test_unchanged_save_is_not_logged(
    async_client: AsyncClient,
    admin_headers: dict[str, str],
    session_factory: async_sessionmaker[AsyncSession],
) -> None:
    body = {"shirtKeyword": "Pub Crawl"}
    await async_client.put("/api/v1/settings", json=body, headers=admin_headers)

    response = await async_client.put("/api/v1/settings", json=body, headers=admin_headers)

    assert response.json() == {"changedFields": []}
    async with session_factory() as session:
        entries = (await session.execute(select(ActivityLog))).scalars().all()
    assert [(e.action, e.details) for e in entries] == [
        ("SETTINGS_UPDATED", {"changedFields": ["shirt_keyword"]})
    ]


@pytest.mark.asyncio
async def test_settings_require_api_key(async_client: AsyncClient) -> None:
    response = await async_client.put("/api/v1/settings", json={})
    assert response.status_code == 401
