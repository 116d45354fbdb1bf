"""In-app notifications for payment and booking events.

Notifications are written after the payment and booking updates are
committed. A failed write never undoes those; it is handed to the Celery
``deliver_notification`` task to retry later.
"""

import logging
from typing import Any
from uuid import UUID

from kombu.exceptions import OperationalError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reservations.models.booking import Booking
from reservations.models.payment import Payment
from reservations.models.user import Notification

logger = logging.getLogger(__name__)


class NotificationService:
    """Creates user notifications, deferring failures to a retry task."""

    # Notification types
    PAYMENT_COMPLETED = "payment_completed"
    PAYMENT_FAILED = "payment_failed"
    PAYMENT_PENDING_REVIEW = "payment_pending_review"
    BOOKING_CANCELLED = "booking_cancelled"

    def __init__(self, db: AsyncSession, retry_delay_seconds: int = 60) -> None:
        self.db = db
        self.retry_delay_seconds = retry_delay_seconds

    async def create_notification(
        self,
        user_id: UUID,
        title: str,
        message: str,
        notification_type: str,
        link: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification:
        """Create and commit an in-app notification.

        Args:
            user_id: User to notify
            title: Notification title
            message: Notification body text
            notification_type: Type of notification
            link: Optional deep link
            data: Related identifiers

        Returns:
            Notification: Created notification
        """
        notification = Notification(
            user_id=user_id,
            title=title,
            message=message,
            notification_type=notification_type,
            link=link,
            data=data,
        )
        self.db.add(notification)
        await self.db.commit()
        return notification

    async def notify(
        self,
        user_id: UUID,
        title: str,
        message: str,
        notification_type: str,
        link: str | None = None,
        data: dict[str, Any] | None = None,
    ) -> Notification | None:
        """Create a notification, scheduling a retry if the write fails."""
        try:
            return await self.create_notification(user_id, title, message, notification_type, link, data)
        except SQLAlchemyError:
            await self.db.rollback()
            logger.exception(f"Failed to create {notification_type} notification for user {user_id}")
            self.schedule_retry(
                user_id=str(user_id),
                title=title,
                message=message,
                notification_type=notification_type,
                link=link,
                data=data,
            )
            return None

    def schedule_retry(self, **kwargs: Any) -> None:
        from reservations.tasks import deliver_notification

        try:
            deliver_notification.apply_async(kwargs=kwargs, countdown=self.retry_delay_seconds)
        except OperationalError:
            logger.exception(f"Could not queue {kwargs.get('notification_type')} notification retry")

    # ==================== PAYMENT EVENTS ====================

    async def payment_completed(self, payment: Payment) -> Notification | None:
        if payment.user_id is None:
            return None
        return await self.notify(
            user_id=payment.user_id,
            title="Payment received",
            message=f"Your payment of {payment.amount} {payment.currency} has been confirmed.",
            notification_type=self.PAYMENT_COMPLETED,
            link=f"/bookings/{payment.booking_id}",
            data={"payment_id": str(payment.id), "booking_id": str(payment.booking_id)},
        )

    async def payment_failed(self, payment: Payment, reason: str | None = None) -> Notification | None:
        if payment.user_id is None:
            return None
        message = f"Your payment of {payment.amount} {payment.currency} could not be completed."
        if reason:
            message = f"{message} Reason: {reason}"
        return await self.notify(
            user_id=payment.user_id,
            title="Payment failed",
            message=message,
            notification_type=self.PAYMENT_FAILED,
            link=f"/bookings/{payment.booking_id}",
            data={"payment_id": str(payment.id), "booking_id": str(payment.booking_id)},
        )

    async def payment_pending_review(self, payment: Payment) -> Notification | None:
        if payment.user_id is None:
            return None
        return await self.notify(
            user_id=payment.user_id,
            title="Payment under review",
            message="We received your payment details and will confirm them shortly.",
            notification_type=self.PAYMENT_PENDING_REVIEW,
            link=f"/bookings/{payment.booking_id}",
            data={"payment_id": str(payment.id), "booking_id": str(payment.booking_id)},
        )

    # ==================== BOOKING EVENTS ====================

    async def booking_cancelled(self, booking: Booking) -> Notification | None:
        if booking.user_id is None:
            return None
        return await self.notify(
            user_id=booking.user_id,
            title="Booking cancelled",
            message=f"Your booking {booking.reservation_number} has been cancelled.",
            notification_type=self.BOOKING_CANCELLED,
            link=f"/bookings/{booking.id}",
            data={"booking_id": str(booking.id)},
        )
