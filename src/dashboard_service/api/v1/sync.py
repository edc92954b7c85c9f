"""Sync trigger endpoints polled by the external scheduler.

Both endpoints authenticate with ``Authorization: Bearer <CRON_SECRET>``
and answer 429 while the integration's minimum interval has not elapsed.
"""

import structlog
from fastapi import APIRouter, Depends, Header
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_service.api.v1.deps import (
    bearer_authorized,
    get_session_factory,
    get_settings_cache,
)
from dashboard_service.config import Settings, get_settings
from dashboard_service.errors import SyncConfigurationError
from dashboard_service.services.settings_cache import SettingsCache
from dashboard_service.services.sync_trigger import SyncTrigger

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Response Models
# =============================================================================


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class OrderSyncResponse(_CamelModel):
    """Result of a triggered order sync."""

    message: str
    added: int
    updated: int


class MemberSyncResponse(_CamelModel):
    """Result of a triggered member sync, with the suggested next poll."""

    message: str
    new_members: int
    duration_seconds: float
    next_check_in_seconds: int


def get_sync_trigger(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings_cache: SettingsCache = Depends(get_settings_cache),
    settings: Settings = Depends(get_settings),
) -> SyncTrigger:
    return SyncTrigger(session_factory, settings_cache, app_settings=settings)


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


_UNAUTHORIZED = "Unauthorized"
_TOO_SOON = "Sync already in progress or recently completed"


# =============================================================================
# Endpoints
# =============================================================================


@router.post(
    "/orders",
    response_model=OrderSyncResponse,
    responses={401: {}, 429: {}, 500: {}},
)
async def trigger_order_sync(
    authorization: str | None = Header(default=None),
    trigger: SyncTrigger = Depends(get_sync_trigger),
    settings: Settings = Depends(get_settings),
):
    """
    Run an incremental order sync.

    Rate limited to one run per order interval (5 minutes by default).
    A failed run still uses up its interval.
    """
    if not bearer_authorized(authorization, settings.cron_secret):
        return _error(_UNAUTHORIZED, 401)

    try:
        outcome = await trigger.run_orders()
    except SyncConfigurationError as e:
        logger.warning("Order sync not configured", error=str(e))
        return _error(str(e), 500)
    except Exception:
        logger.exception("Error syncing orders")
        return _error("Failed to sync orders", 500)

    if not outcome.admitted:
        return _error(_TOO_SOON, 429)

    return OrderSyncResponse(
        message="Orders synced successfully",
        added=outcome.orders.added,
        updated=outcome.orders.updated,
    )


@router.post(
    "/members",
    response_model=MemberSyncResponse,
    responses={401: {}, 429: {}, 500: {}},
)
async def trigger_member_sync(
    authorization: str | None = Header(default=None),
    trigger: SyncTrigger = Depends(get_sync_trigger),
    settings: Settings = Depends(get_settings),
):
    """
    Run a full member sync and suggest when to poll again.

    ``nextCheckInSeconds`` is 60 after 10 or more new members, 300 after
    1 to 9 and 1800 when nothing new was found.
    """
    if not bearer_authorized(authorization, settings.cron_secret):
        return _error(_UNAUTHORIZED, 401)

    try:
        outcome = await trigger.run_members()
    except SyncConfigurationError as e:
        logger.warning("Member sync not configured", error=str(e))
        return _error(str(e), 500)
    except Exception:
        logger.exception("Error syncing members")
        return _error("Failed to sync members", 500)

    if not outcome.admitted:
        return _error(_TOO_SOON, 429)

    return MemberSyncResponse(
        message="Members synced successfully",
        new_members=len(outcome.members.new_members),
        duration_seconds=outcome.members.duration_seconds,
        next_check_in_seconds=outcome.next_check_in_seconds,
    )
