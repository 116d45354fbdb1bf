"""Celery background tasks.

- Notification delivery retries
- Reconciliation of recently completed payments
"""

import asyncio
import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError

from reservations.config import settings
from reservations.database import engine, get_db_context
from reservations.models.payment import Payment
from reservations.services.gateway_service import build_gateway_service
from reservations.services.notification_service import NotificationService
from reservations.services.payment_service import PaymentProcessor
from reservations.utils.dates import utc_now
from reservations.worker import celery_app  # noqa: F401  (configures the broker for apply_async)

logger = logging.getLogger(__name__)


def run_async(coro):
    """Run async function in sync context.

    Each task gets a fresh event loop, so pooled connections are disposed
    before it closes.
    """

    async def runner():
        try:
            return await coro
        finally:
            await engine.dispose()

    return asyncio.run(runner())


# ==================== NOTIFICATION TASKS ====================


@shared_task(bind=True, max_retries=5)
def deliver_notification(
    self,
    user_id: str,
    title: str,
    message: str,
    notification_type: str,
    link: str | None = None,
    data: dict | None = None,
):
    """Write an in-app notification whose first attempt failed."""
    try:
        notification_id = run_async(
            _deliver_notification(UUID(user_id), title, message, notification_type, link, data)
        )
        return {"status": "success", "notification_id": notification_id}
    except SQLAlchemyError as exc:
        logger.warning(f"Notification {notification_type} for user {user_id} failed, retrying: {exc}")
        raise self.retry(exc=exc, countdown=settings.notification_retry_delay_seconds)


async def _deliver_notification(
    user_id: UUID,
    title: str,
    message: str,
    notification_type: str,
    link: str | None,
    data: dict | None,
) -> str:
    async with get_db_context() as db:
        service = NotificationService(db)
        notification = await service.create_notification(user_id, title, message, notification_type, link, data)
        return str(notification.id)


# ==================== RECONCILIATION TASKS ====================


@shared_task(bind=True, max_retries=3)
def reconcile_completed_payments(self):
    """Re-apply booking confirmation and loyalty accrual of recent completions.

    Runs every ``reconciliation_interval_minutes``. Both steps are
    idempotent, so payments already fully processed are left unchanged.
    """
    try:
        count = run_async(_reconcile_completed_payments())
        return {"status": "success", "reconciled": count}
    except SQLAlchemyError as exc:
        raise self.retry(exc=exc, countdown=300)


async def _reconcile_completed_payments() -> int:
    since = utc_now() - timedelta(hours=settings.reconciliation_lookback_hours)
    gateways = build_gateway_service(settings)

    async with get_db_context() as db:
        result = await db.execute(
            select(Payment.id).where(Payment.status == "completed", Payment.completed_at >= since)
        )
        payment_ids = list(result.scalars().all())

        processor = PaymentProcessor(db, gateways)
        for payment_id in payment_ids:
            await processor.reconcile(payment_id)

    logger.info(f"Reconciled {len(payment_ids)} completed payments")
    return len(payment_ids)
