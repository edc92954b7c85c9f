"""Member synchronization tasks."""

import asyncio

import structlog
from celery import shared_task

from dashboard_service.config import get_settings
from dashboard_service.errors import SyncConfigurationError
from dashboard_service.infrastructure.database.connection import task_session_factory
from dashboard_service.services.settings_cache import get_settings_cache
from dashboard_service.services.sync_trigger import SyncOutcome, SyncTrigger

logger = structlog.get_logger()


async def run_member_sync() -> SyncOutcome:
    """Run the rate-limited member sync on a throwaway engine."""
    async with task_session_factory() as session_factory:
        trigger = SyncTrigger(session_factory, get_settings_cache())
        return await trigger.run_members()


@shared_task(bind=True)
def sync_members_from_rubric(self) -> dict:
    """
    Add new Rubric members, their payments and form responses.

    When the suggested next check is sooner than the beat fallback, the
    task schedules itself again with that countdown. Runs rejected by the
    rate limiter never reschedule, so overlapping chains die out.

    Returns:
        dict: Summary of sync operation
    """
    logger.info("Starting member sync from Rubric")

    try:
        outcome = asyncio.run(run_member_sync())
    except SyncConfigurationError as e:
        logger.warning("Member sync skipped: not configured", error=str(e))
        return {"status": "not_configured", "error": str(e)}

    if not outcome.admitted:
        return {"status": outcome.status.value}

    fallback_seconds = get_settings().sync_members_fallback_interval_minutes * 60
    if outcome.next_check_in_seconds < fallback_seconds:
        self.apply_async(countdown=outcome.next_check_in_seconds)
        logger.info("Member sync rescheduled", countdown=outcome.next_check_in_seconds)

    return {
        "status": outcome.status.value,
        "new_members": len(outcome.members.new_members),
        "payments_added": outcome.members.payments_added,
        "responses_added": outcome.members.responses_added,
        "next_check_in_seconds": outcome.next_check_in_seconds,
    }
