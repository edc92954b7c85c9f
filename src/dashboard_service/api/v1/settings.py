"""Integration settings endpoints (admin only)."""

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel
from sqlalchemy.ext.asyncio import AsyncSession

from dashboard_service.api.v1.deps import (
    get_activity_logger,
    get_actor,
    get_settings_cache,
    require_admin_key,
)
from dashboard_service.infrastructure.database.connection import get_session
from dashboard_service.services.activity import ActivityLogger
from dashboard_service.services.orders import Actor
from dashboard_service.services.settings_cache import SettingsCache, SettingsStore
from shared.constants import ACTION_SETTINGS_UPDATED

router = APIRouter(dependencies=[Depends(require_admin_key)])


class SiteSettingsBody(BaseModel):
    """Decrypted integration credentials as shown in Admin > Settings."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    rubric_url: str | None = Field(None, max_length=2000)
    rubric_email: str | None = Field(None, max_length=255)
    rubric_session_id: str | None = Field(None, max_length=500)
    rubric_membership_name: str | None = Field(None, max_length=255)
    squarespace_api_key: str | None = Field(None, max_length=500)
    squarespace_api_url: str | None = Field(None, max_length=2000)
    squarespace_api_version: str | None = Field(None, max_length=20)
    shirt_keyword: str | None = Field(None, max_length=255)


class SettingsSaveResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    changed_fields: list[str]


@router.get("", response_model=SiteSettingsBody)
async def get_site_settings(
    session: AsyncSession = Depends(get_session),
    cache: SettingsCache = Depends(get_settings_cache),
) -> SiteSettingsBody:
    """Get the decrypted settings; every field is null before the first save."""
    values = await SettingsStore(session, cache).read_decrypted()
    return SiteSettingsBody(**(values or {}))


@router.put("", response_model=SettingsSaveResponse)
async def save_site_settings(
    body: SiteSettingsBody,
    session: AsyncSession = Depends(get_session),
    cache: SettingsCache = Depends(get_settings_cache),
    activity: ActivityLogger = Depends(get_activity_logger),
    actor: Actor = Depends(get_actor),
) -> SettingsSaveResponse:
    """
    Replace the stored settings.

    Values are encrypted before they are written; omitted or empty fields
    are cleared. The settings cache is invalidated so syncs pick up the
    change on their next run.
    """
    changed = await SettingsStore(session, cache).save(body.model_dump())
    if changed:
        await activity.record(
            ACTION_SETTINGS_UPDATED,
            user_id=actor.user_id,
            user_name=actor.user_name,
            entity_type="settings",
            details={"changedFields": changed},
        )
    return SettingsSaveResponse(changed_fields=changed)
