"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Callable, Generator
from pathlib import Path
from typing import Any

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from dashboard_service.api.v1 import deps
from dashboard_service.config import Settings, get_settings
from dashboard_service.infrastructure.database.connection import (
    create_session_factory,
    get_async_engine,
    get_session,
)
from dashboard_service.infrastructure.database.models import Base
from dashboard_service.main import create_app
from dashboard_service.services.settings_cache import (
    SettingsCache,
    SettingsStore,
    get_settings_cache,
)

CRON_SECRET = "test-cron-secret"
ADMIN_API_KEY = "test-admin-key"


@pytest.fixture(autouse=True)
def test_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Generator[None, None, None]:
    """Point settings at a throwaway SQLite database and test secrets."""
    monkeypatch.setenv("APP_ENV", "test")
    monkeypatch.setenv("DEBUG", "false")
    monkeypatch.setenv("DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("CRON_SECRET", CRON_SECRET)
    monkeypatch.setenv("ADMIN_API_KEY", ADMIN_API_KEY)
    monkeypatch.setenv("ENCRYPTION_KEY", "test-encryption-key")
    monkeypatch.setenv("MEMBER_UPDATE_CONCURRENCY", "1")
    for name in ("RUBRIC_API_URL", "RUBRIC_EMAIL", "RUBRIC_SESSION_ID"):
        monkeypatch.delenv(name, raising=False)
    get_settings.cache_clear()
    get_settings_cache.cache_clear()
    yield
    get_settings.cache_clear()
    get_settings_cache.cache_clear()


@pytest.fixture
def test_settings() -> Settings:
    """Get test settings built from the test environment."""
    return get_settings()


@pytest_asyncio.fixture
async def engine(test_settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite engine with all tables created."""
    engine = get_async_engine(test_settings.database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings_cache(test_settings: Settings) -> SettingsCache:
    return SettingsCache(ttl_seconds=300, app_settings=test_settings)


@pytest.fixture
def save_settings(
    session_factory: async_sessionmaker[AsyncSession], settings_cache: SettingsCache
) -> Callable[..., Any]:
    """Save integration settings the way the admin endpoint does."""

    async def _save(**values: str | None) -> None:
        async with session_factory() as session:
            await SettingsStore(session, settings_cache).save(values)

    return _save


# =============================================================================
# Application
# =============================================================================


@pytest.fixture
def app(
    test_settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
    settings_cache: SettingsCache,
) -> Any:
    """Create test application wired to the test database."""

    async def get_test_session() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    app = create_app()
    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_session] = get_test_session
    app.dependency_overrides[deps.get_session_factory] = lambda: session_factory
    app.dependency_overrides[deps.get_settings_cache] = lambda: settings_cache
    return app


@pytest.fixture
def client(test_settings: Settings) -> TestClient:
    """Synchronous test client for endpoints that do not touch the database."""
    app = create_app()
    app.dependency_overrides[get_settings] = lambda: test_settings
    return TestClient(app)


@pytest_asyncio.fixture
async def async_client(app: Any) -> AsyncGenerator[AsyncClient, None]:
    """Create asynchronous test client."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def admin_headers() -> dict[str, str]:
    return {"X-API-Key": ADMIN_API_KEY, "X-Actor-Id": "user-1", "X-Actor-Name": "Jordan"}


@pytest.fixture
def cron_headers() -> dict[str, str]:
    return {"Authorization": f"Bearer {CRON_SECRET}"}
