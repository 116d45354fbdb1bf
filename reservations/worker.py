"""Celery worker configuration.

Background work:
- Notification retries after a failed in-app write
- Periodic reconciliation of completed payments
"""

from celery import Celery
from celery.schedules import crontab

from reservations.config import settings

# Create Celery app
celery_app = Celery(
    "reservation_tasks",
    broker=settings.redis_url,
    backend=settings.redis_url,
    include=["reservations.tasks"],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="Africa/Casablanca",
    enable_utc=True,

    # Task execution settings
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    task_time_limit=300,  # 5 minutes max
    task_soft_time_limit=240,  # Soft limit at 4 minutes

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=4,

    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour

    # Retry settings
    task_default_retry_delay=settings.notification_retry_delay_seconds,
    task_max_retries=5,

    # Beat schedule for periodic tasks
    beat_schedule={
        # Repair completions whose booking or loyalty update was interrupted
        "reconcile-completed-payments": {
            "task": "reservations.tasks.reconcile_completed_payments",
            "schedule": crontab(minute=f"*/{settings.reconciliation_interval_minutes}"),
        },
    },
)


if __name__ == "__main__":
    celery_app.start()
