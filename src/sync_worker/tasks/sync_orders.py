"""Order synchronization tasks."""

import asyncio

import structlog
from celery import shared_task

from dashboard_service.errors import SyncConfigurationError
from dashboard_service.infrastructure.database.connection import task_session_factory
from dashboard_service.services.settings_cache import get_settings_cache
from dashboard_service.services.sync_trigger import SyncOutcome, SyncTrigger

logger = structlog.get_logger()


async def run_order_sync() -> SyncOutcome:
    """Run the rate-limited order sync on a throwaway engine."""
    async with task_session_factory() as session_factory:
        trigger = SyncTrigger(session_factory, get_settings_cache())
        return await trigger.run_orders()


@shared_task(bind=True)
def sync_orders_from_squarespace(self) -> dict:
    """
    Synchronize keyword-matching orders from Squarespace.

    Goes through the same rate limiter as the HTTP trigger, so a run that
    overlaps an externally triggered one is skipped.

    Returns:
        dict: Summary of sync operation
    """
    logger.info("Starting order sync from Squarespace")

    try:
        outcome = asyncio.run(run_order_sync())
    except SyncConfigurationError as e:
        logger.warning("Order sync skipped: not configured", error=str(e))
        return {"status": "not_configured", "error": str(e)}

    if not outcome.admitted:
        return {"status": outcome.status.value}

    return {
        "status": outcome.status.value,
        "added": outcome.orders.added,
        "updated": outcome.orders.updated,
    }
