"""Tests for notification writes and retry scheduling."""

import pytest
from sqlalchemy import select
from sqlalchemy.exc import OperationalError

from reservations import tasks
from reservations.models.user import Notification
from reservations.services.notification_service import NotificationService


@pytest.mark.asyncio
async def test_notify_writes_notification(db_session, make_user):
    user = await make_user()
    service = NotificationService(db_session)

    notification = await service.notify(user.id, "Hello", "Welcome aboard", "welcome", link="/bookings")

    stored = await db_session.scalar(select(Notification).where(Notification.user_id == user.id))
    assert stored.id == notification.id
    assert stored.read is False


@pytest.mark.asyncio
async def test_failed_write_schedules_retry(db_session, make_user, monkeypatch):
    user = await make_user()
    service = NotificationService(db_session, retry_delay_seconds=15)
    queued = []

    async def broken_write(*args, **kwargs):
        raise OperationalError("INSERT INTO notifications", {}, Exception("database is locked"))

    def fake_apply_async(kwargs=None, countdown=None, **options):
        queued.append((kwargs, countdown))

    monkeypatch.setattr(service, "create_notification", broken_write)
    monkeypatch.setattr(tasks.deliver_notification, "apply_async", fake_apply_async)

    result = await service.notify(user.id, "Payment received", "Thanks", "payment_completed", data={"k": "v"})

    assert result is None
    assert len(queued) == 1
    kwargs, countdown = queued[0]
    assert countdown == 15
    assert kwargs["user_id"] == str(user.id)
    assert kwargs["notification_type"] == "payment_completed"
    assert kwargs["data"] == {"k": "v"}


@pytest.mark.asyncio
async def test_guest_events_are_not_notified(db_session, make_booking):
    booking = await make_booking()
    service = NotificationService(db_session)

    assert await service.booking_cancelled(booking) is None
