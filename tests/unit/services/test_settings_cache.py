"""Unit tests for the site settings cache and store."""

from datetime import datetime, timezone

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_service.config import Settings
from dashboard_service.errors import SyncConfigurationError
from dashboard_service.infrastructure.database.models import SiteSettings
from dashboard_service.services.settings_cache import SettingsCache, SettingsStore, SyncSettings


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache(test_settings: Settings, clock: FakeClock) -> SettingsCache:
    return SettingsCache(ttl_seconds=300, clock=clock, app_settings=test_settings)


class TestSettingsCache:
    @pytest.mark.asyncio
    async def test_empty_snapshot_without_row(self, session: AsyncSession, cache: SettingsCache) -> None:
        snapshot = await cache.get(session)
        assert snapshot.settings_id is None
        assert snapshot.squarespace_api_key is None
        assert snapshot.last_squarespace_order_date is None

    @pytest.mark.asyncio
    async def test_values_are_decrypted(self, session: AsyncSession, cache: SettingsCache) -> None:
        await SettingsStore(session, cache).save(
            {"squarespace_api_key": "sq-key", "shirt_keyword": "Pub Crawl"}
        )

        stored = (await session.execute(select(SiteSettings))).scalar_one()
        assert stored.squarespace_api_key.startswith("ENC:v1:")

        snapshot = await cache.get(session)
        assert snapshot.squarespace_api_key == "sq-key"
        assert snapshot.shirt_keyword == "Pub Crawl"

    @pytest.mark.asyncio
    async def test_serves_stale_value_within_ttl(
        self, session: AsyncSession, cache: SettingsCache, clock: FakeClock
    ) -> None:
        store = SettingsStore(session, cache)
        await store.save({"shirt_keyword": "Pub Crawl"})
        assert (await cache.get(session)).shirt_keyword == "Pub Crawl"

        # Direct write that bypasses the store, so nothing invalidates the cache
        row = (await session.execute(select(SiteSettings))).scalar_one()
        row.shirt_keyword = "Shirt"
        await session.commit()

        clock.now += 299
        assert (await cache.get(session)).shirt_keyword == "Pub Crawl"

        clock.now += 2
        assert (await cache.get(session)).shirt_keyword == "Shirt"

    @pytest.mark.asyncio
    async def test_save_invalidates(self, session: AsyncSession, cache: SettingsCache) -> None:
        store = SettingsStore(session, cache)
        await store.save({"shirt_keyword": "Pub Crawl"})
        assert (await cache.get(session)).shirt_keyword == "Pub Crawl"

        await store.save({"shirt_keyword": "Hoodie"})
        assert (await cache.get(session)).shirt_keyword == "Hoodie"

    @pytest.mark.asyncio
    async def test_watermark_advance_invalidates(self, session: AsyncSession, cache: SettingsCache) -> None:
        store = SettingsStore(session, cache)
        settings_id = await store.ensure_row()
        assert (await cache.get(session)).last_squarespace_order_date is None

        watermark = datetime(2024, 3, 3, 12, 0, tzinfo=timezone.utc)
        await store.advance_order_watermark(settings_id, watermark)
        assert (await cache.get(session)).last_squarespace_order_date == watermark

    @pytest.mark.asyncio
    async def test_undecryptable_field_degrades_to_none(
        self, session: AsyncSession, cache: SettingsCache
    ) -> None:
        session.add(SiteSettings(squarespace_api_key="ENC:v1:garbage", shirt_keyword="Pub Crawl"))
        await session.commit()

        snapshot = await cache.get(session)
        assert snapshot.squarespace_api_key is None
        assert snapshot.shirt_keyword == "Pub Crawl"

    @pytest.mark.asyncio
    async def test_rubric_falls_back_to_environment(self, session: AsyncSession) -> None:
        env = Settings(
            rubric_api_url="https://rubric.example/api",
            rubric_email="treasurer@example.com",
            rubric_session_id="sess-1",
        )
        cache = SettingsCache(app_settings=env)
        assert (await cache.get(session)).require_rubric_credentials() == (
            "https://rubric.example/api",
            "treasurer@example.com",
            "sess-1",
        )


class TestSettingsStore:
    @pytest.mark.asyncio
    async def test_save_reports_changed_fields(self, session: AsyncSession, cache: SettingsCache) -> None:
        store = SettingsStore(session, cache)
        changed = await store.save({"squarespace_api_key": "a", "shirt_keyword": "Pub Crawl"})
        assert set(changed) == {"squarespace_api_key", "shirt_keyword"}

        changed = await store.save({"squarespace_api_key": "a", "shirt_keyword": "Hoodie"})
        assert changed == ["shirt_keyword"]

    @pytest.mark.asyncio
    async def test_read_decrypted(self, session: AsyncSession, cache: SettingsCache) -> None:
        store = SettingsStore(session, cache)
        assert await store.read_decrypted() is None

        await store.save({"rubric_email": "treasurer@example.com"})
        values = await store.read_decrypted()
        assert values["rubric_email"] == "treasurer@example.com"
        assert values["squarespace_api_key"] is None

    @pytest.mark.asyncio
    async def test_ensure_row_is_idempotent(self, session: AsyncSession, cache: SettingsCache) -> None:
        store = SettingsStore(session, cache)
        first = await store.ensure_row()
        assert await store.ensure_row() == first
        rows = (await session.execute(select(SiteSettings))).scalars().all()
        assert len(rows) == 1


class TestSyncSettingsRequirements:
    def test_missing_keyword(self) -> None:
        with pytest.raises(SyncConfigurationError, match="shirt keyword"):
            SyncSettings().require_shirt_keyword()

    def test_keyword_override(self) -> None:
        assert SyncSettings().require_shirt_keyword("Hoodie") == "Hoodie"

    def test_missing_squarespace_key(self) -> None:
        with pytest.raises(SyncConfigurationError, match="Squarespace API key"):
            SyncSettings().require_squarespace_key()

    def test_missing_rubric_credentials(self) -> None:
        with pytest.raises(SyncConfigurationError, match="Rubric"):
            SyncSettings(rubric_url="https://rubric.example").require_rubric_credentials()
