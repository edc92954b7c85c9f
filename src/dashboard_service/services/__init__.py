"""Business logic services."""

from dashboard_service.services.activity import ActivityLogger
from dashboard_service.services.member_sync import MemberSyncService
from dashboard_service.services.order_sync import OrderSyncService
from dashboard_service.services.orders import OrderService
from dashboard_service.services.settings_cache import SettingsCache, SettingsStore
from dashboard_service.services.sync_trigger import SyncRateLimiter, SyncTrigger

__all__ = [
    "ActivityLogger",
    "MemberSyncService",
    "OrderService",
    "OrderSyncService",
    "SettingsCache",
    "SettingsStore",
    "SyncRateLimiter",
    "SyncTrigger",
]
