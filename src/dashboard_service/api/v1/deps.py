"""Shared FastAPI dependencies for the v1 API."""

import hmac

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_service.config import Settings, get_settings
from dashboard_service.infrastructure.database.connection import (
    get_session_factory as _get_session_factory,
)
from dashboard_service.services.activity import ActivityLogger
from dashboard_service.services.orders import Actor
from dashboard_service.services.settings_cache import SettingsCache
from dashboard_service.services.settings_cache import (
    get_settings_cache as _get_settings_cache,
)


def secrets_match(provided: str | None, expected: str) -> bool:
    """Constant-time comparison; an unset secret never matches."""
    if not expected or provided is None:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))


def bearer_authorized(authorization: str | None, secret: str) -> bool:
    """Check an ``Authorization: Bearer <secret>`` header."""
    if not authorization:
        return False
    scheme, _, token = authorization.partition(" ")
    return scheme == "Bearer" and secrets_match(token, secret)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Dependency returning the application session factory."""
    return _get_session_factory()


def get_settings_cache() -> SettingsCache:
    """Dependency returning the process-wide settings cache."""
    return _get_settings_cache()


def get_activity_logger(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
) -> ActivityLogger:
    return ActivityLogger(session_factory)


async def require_admin_key(
    x_api_key: str | None = Header(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    """Reject operator requests without the admin API key."""
    if not secrets_match(x_api_key, settings.admin_api_key):
        raise HTTPException(status_code=401, detail="Invalid or missing API key")


def get_actor(
    x_actor_id: str | None = Header(default=None),
    x_actor_name: str | None = Header(default=None),
) -> Actor:
    """Operator identity for the activity log, as forwarded by the dashboard."""
    return Actor(user_id=x_actor_id, user_name=x_actor_name or "Unknown")
