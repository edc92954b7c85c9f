"""Celery application for the sync worker."""

from celery import Celery
from celery.schedules import crontab

from dashboard_service.config import get_settings
from dashboard_service.logging_config import configure_logging

settings = get_settings()

configure_logging()

# Create Celery app
app = Celery(
    "sync_worker",
    broker=settings.celery_broker,
    backend=settings.celery_backend,
    include=[
        "sync_worker.tasks.sync_orders",
        "sync_worker.tasks.sync_members",
    ],
)

# Celery configuration
app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,
    task_track_started=True,
    task_time_limit=600,  # 10 minutes
    task_soft_time_limit=540,  # 9 minutes
    worker_prefetch_multiplier=1,
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_default_queue="sync",
    task_routes={
        "sync_worker.tasks.*": {"queue": "sync"},
    },
)

# Beat schedule for periodic tasks
app.conf.beat_schedule = {
    # Incremental Squarespace order sync
    "sync-orders": {
        "task": "sync_worker.tasks.sync_orders.sync_orders_from_squarespace",
        "schedule": crontab(minute=f"*/{settings.sync_orders_interval_minutes}"),
    },
    # Fallback Rubric member sync; busier periods re-enqueue sooner
    "sync-members": {
        "task": "sync_worker.tasks.sync_members.sync_members_from_rubric",
        "schedule": crontab(minute=f"*/{settings.sync_members_fallback_interval_minutes}"),
    },
}


def run() -> None:
    """Run the Celery worker."""
    app.worker_main(["worker", "--loglevel=info", "-Q", "sync"])


if __name__ == "__main__":
    run()
