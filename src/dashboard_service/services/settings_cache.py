"""Site settings cache and store.

The sync paths read credentials and the order watermark on every tick, so
the decrypted singleton settings row is cached in-process for a few minutes.
Every write path goes through :class:`SettingsStore`, which invalidates the
cache so the next read sees the new values.
"""

import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from functools import lru_cache

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_service.config import Settings, get_settings
from dashboard_service.errors import SyncConfigurationError
from dashboard_service.infrastructure.crypto import decrypt, encrypt
from dashboard_service.infrastructure.database.models import SiteSettings
from shared.clock import as_utc, utcnow

logger = structlog.get_logger()

# Encrypted columns on the settings row, in admin display order
CREDENTIAL_FIELDS = (
    "rubric_url",
    "rubric_email",
    "rubric_session_id",
    "rubric_membership_name",
    "squarespace_api_key",
    "squarespace_api_url",
    "squarespace_api_version",
    "shirt_keyword",
)


@dataclass(frozen=True)
class SyncSettings:
    """Decrypted snapshot of the settings row used by the sync engines."""

    settings_id: int | None = None
    squarespace_api_key: str | None = None
    squarespace_api_url: str | None = None
    squarespace_api_version: str | None = None
    shirt_keyword: str | None = None
    last_squarespace_order_date: datetime | None = None
    rubric_url: str | None = None
    rubric_email: str | None = None
    rubric_session_id: str | None = None

    def require_shirt_keyword(self, override: str | None = None) -> str:
        keyword = override or self.shirt_keyword
        if not keyword:
            raise SyncConfigurationError(
                "Pub crawl shirt keyword is not configured. "
                "Please configure it in Admin > Settings."
            )
        return keyword

    def require_squarespace_key(self) -> str:
        if not self.squarespace_api_key:
            raise SyncConfigurationError(
                "Squarespace API key is not configured. "
                "Please configure it in Admin > Settings."
            )
        return self.squarespace_api_key

    def require_rubric_credentials(self) -> tuple[str, str, str]:
        if not (self.rubric_url and self.rubric_email and self.rubric_session_id):
            raise SyncConfigurationError(
                "QPay/Rubric API settings are not configured. "
                "Please configure them in Admin > Settings."
            )
        return self.rubric_url, self.rubric_email, self.rubric_session_id


def _decrypt_field(value: str | None) -> str | None:
    return decrypt(value) or None


async def load_settings_row(session: AsyncSession) -> SiteSettings | None:
    """Return the singleton settings row, if one has been created."""
    result = await session.execute(select(SiteSettings).order_by(SiteSettings.id).limit(1))
    return result.scalar_one_or_none()


class SettingsCache:
    """Time-boxed cache of the decrypted settings row."""

    def __init__(
        self,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
        app_settings: Settings | None = None,
    ):
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._app_settings = app_settings or get_settings()
        self._snapshot: SyncSettings | None = None
        self._loaded_at = 0.0

    async def get(self, session: AsyncSession) -> SyncSettings:
        """Return the cached snapshot, re-reading the row once it expires."""
        if self._snapshot is not None and self._clock() - self._loaded_at < self.ttl_seconds:
            return self._snapshot

        row = await load_settings_row(session)
        self._snapshot = self._build_snapshot(row)
        self._loaded_at = self._clock()
        logger.debug("Loaded site settings", settings_id=self._snapshot.settings_id)
        return self._snapshot

    def invalidate(self) -> None:
        """Drop the cached snapshot so the next read hits the database."""
        self._snapshot = None
        self._loaded_at = 0.0

    def _build_snapshot(self, row: SiteSettings | None) -> SyncSettings:
        env = self._app_settings
        if row is None:
            return SyncSettings(
                rubric_url=env.rubric_api_url or None,
                rubric_email=env.rubric_email or None,
                rubric_session_id=env.rubric_session_id or None,
            )

        rubric_url = _decrypt_field(row.rubric_url)
        if rubric_url:
            rubric_email = _decrypt_field(row.rubric_email)
            rubric_session_id = _decrypt_field(row.rubric_session_id)
        else:
            # No Rubric credentials saved yet; use the environment.
            rubric_url = env.rubric_api_url or None
            rubric_email = env.rubric_email or None
            rubric_session_id = env.rubric_session_id or None

        return SyncSettings(
            settings_id=row.id,
            squarespace_api_key=_decrypt_field(row.squarespace_api_key),
            squarespace_api_url=_decrypt_field(row.squarespace_api_url),
            squarespace_api_version=_decrypt_field(row.squarespace_api_version),
            shirt_keyword=_decrypt_field(row.shirt_keyword),
            last_squarespace_order_date=as_utc(row.last_squarespace_order_date),
            rubric_url=rubric_url,
            rubric_email=rubric_email,
            rubric_session_id=rubric_session_id,
        )


@lru_cache
def get_settings_cache() -> SettingsCache:
    """Get the process-wide settings cache."""
    return SettingsCache(ttl_seconds=get_settings().settings_cache_ttl_seconds)


class SettingsStore:
    """Write paths for the settings row. Each write invalidates the cache."""

    def __init__(self, session: AsyncSession, cache: SettingsCache):
        self.session = session
        self.cache = cache

    async def read_decrypted(self) -> dict[str, str | None] | None:
        """Decrypted credential fields for the admin view."""
        row = await load_settings_row(self.session)
        if row is None:
            return None
        return {field: _decrypt_field(getattr(row, field)) for field in CREDENTIAL_FIELDS}

    async def save(self, values: dict[str, str | None]) -> list[str]:
        """Encrypt and store credential fields, creating the row on first save.

        Every field in ``CREDENTIAL_FIELDS`` is written; missing or empty
        values clear the column. Returns the names of fields whose decrypted
        value changed.
        """
        row = await load_settings_row(self.session)
        previous = (
            {field: _decrypt_field(getattr(row, field)) for field in CREDENTIAL_FIELDS}
            if row is not None
            else {}
        )

        if row is None:
            row = SiteSettings()
            self.session.add(row)

        changed: list[str] = []
        for field in CREDENTIAL_FIELDS:
            value = values.get(field) or None
            setattr(row, field, encrypt(value) if value else None)
            if previous.get(field) != value:
                changed.append(field)
        row.updated_at = utcnow()

        await self.session.commit()
        self.cache.invalidate()
        logger.info("Site settings saved", changed_fields=changed)
        return changed

    async def ensure_row(self) -> int:
        """Return the settings row id, creating an empty row if needed."""
        row = await load_settings_row(self.session)
        if row is None:
            row = SiteSettings()
            self.session.add(row)
            await self.session.commit()
            self.cache.invalidate()
            logger.info("Created site settings row", settings_id=row.id)
        return row.id

    async def advance_order_watermark(self, settings_id: int, order_date: datetime) -> None:
        """Persist the newest Squarespace order date seen by a sync."""
        await self.session.execute(
            update(SiteSettings)
            .where(SiteSettings.id == settings_id)
            .values(last_squarespace_order_date=order_date, updated_at=utcnow())
        )
        await self.session.commit()
        self.cache.invalidate()
        logger.info("Advanced order watermark", last_order_date=order_date.isoformat())
