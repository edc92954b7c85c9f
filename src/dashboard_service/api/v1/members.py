"""Member endpoints for the committee dashboard."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from dashboard_service.api.v1.deps import (
    get_session_factory,
    get_settings_cache,
    require_admin_key,
)
from dashboard_service.config import Settings, get_settings
from dashboard_service.errors import SourceFetchError, SyncConfigurationError
from dashboard_service.infrastructure.database.connection import get_session
from dashboard_service.infrastructure.database.models import Member
from dashboard_service.services.member_sync import MemberSyncService
from dashboard_service.services.settings_cache import SettingsCache

router = APIRouter(dependencies=[Depends(require_admin_key)])


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class MemberResponse(_CamelModel):
    id: int
    fullname: str
    email: str
    phonenumber: str | None = None
    membership_id: str | None = None
    membership_type: str | None = None
    price_paid: Decimal | None = None
    payment_method: str | None = None
    is_valid: bool
    created_at: datetime
    updated_at: datetime


class MembersPageResponse(_CamelModel):
    items: list[MemberResponse]
    total: int


class MemberUpdateResponse(_CamelModel):
    updated: int


def get_member_sync_service(
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    settings_cache: SettingsCache = Depends(get_settings_cache),
    settings: Settings = Depends(get_settings),
) -> MemberSyncService:
    return MemberSyncService(session_factory, settings_cache, app_settings=settings)


@router.get("", response_model=MembersPageResponse)
async def list_members(
    limit: Annotated[int, Query(ge=1, le=500)] = 100,
    offset: Annotated[int, Query(ge=0)] = 0,
    session: AsyncSession = Depends(get_session),
) -> MembersPageResponse:
    """Get members, newest first."""
    total = await session.scalar(select(func.count()).select_from(Member))
    result = await session.execute(
        select(Member).order_by(Member.created_at.desc(), Member.id.desc()).limit(limit).offset(offset)
    )
    return MembersPageResponse(
        items=[MemberResponse.model_validate(member) for member in result.scalars()],
        total=total or 0,
    )


@router.post("/update", response_model=MemberUpdateResponse)
async def update_members(
    service: MemberSyncService = Depends(get_member_sync_service),
) -> MemberUpdateResponse:
    """
    Refresh every stored member from Rubric.

    Scheduled syncs only add members; this is the only path that
    overwrites existing member details.
    """
    try:
        updated = await service.update_existing_members()
    except SyncConfigurationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except SourceFetchError as e:
        raise HTTPException(status_code=502, detail=str(e))
    return MemberUpdateResponse(updated=updated)
