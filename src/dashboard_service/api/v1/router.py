"""API v1 router that aggregates all endpoint routers."""

from fastapi import APIRouter

from dashboard_service.api.v1 import (
    health,
    members,
    orders,
    settings,
    sync,
)

api_router = APIRouter()

# Include all routers
api_router.include_router(
    health.router,
    tags=["Health"],
)

api_router.include_router(
    sync.router,
    prefix="/sync",
    tags=["Sync"],
)

api_router.include_router(
    orders.router,
    prefix="/orders",
    tags=["Orders"],
)

api_router.include_router(
    members.router,
    prefix="/members",
    tags=["Members"],
)

api_router.include_router(
    settings.router,
    prefix="/settings",
    tags=["Settings"],
)
