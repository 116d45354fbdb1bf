"""Booking ledger.

Bookings are priced once at creation and then only move through
conditional status updates. Payment completion confirms a pending booking;
cancelling a booking fails its open payments and takes back the loyalty
points it earned.
"""

import logging
from typing import Any
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from reservations.core.exceptions import InvalidStateTransition, NotFoundError
from reservations.domain.booking_state import assert_booking_transition, booking_sources_for
from reservations.domain.payment_state import sources_for
from reservations.models.booking import Booking
from reservations.models.payment import Payment
from reservations.schemas.booking import BookingCreate
from reservations.services.loyalty_service import LoyaltyLedger
from reservations.services.notification_service import NotificationService
from reservations.services.pricing_service import PricingEngine
from reservations.utils.dates import utc_now
from reservations.utils.references import generate_invoice_number, generate_reservation_number

logger = logging.getLogger(__name__)


class BookingLedger:
    """Creates bookings and applies their status transitions."""

    def __init__(
        self,
        db: AsyncSession,
        pricing: PricingEngine | None = None,
        loyalty: LoyaltyLedger | None = None,
        notifications: NotificationService | None = None,
        default_currency: str = "MAD",
    ):
        self.db = db
        self.pricing = pricing
        self.loyalty = loyalty or LoyaltyLedger(db)
        self.notifications = notifications or NotificationService(db)
        self.default_currency = default_currency

    async def create_booking(self, data: BookingCreate) -> Booking:
        """Price and store a new pending booking.

        Args:
            data: Validated booking request

        Returns:
            Booking: Created booking; price is None for custom service

        Raises:
            ValidationError: Invalid pricing parameters
            ProviderUnavailable: Distance lookup failed
        """
        if self.pricing is None:
            raise RuntimeError("BookingLedger needs a PricingEngine to create bookings")

        quote = await self.pricing.quote(
            data.service_type,
            vehicle_type=data.vehicle_type,
            passengers=data.passengers,
            hours=data.hours,
            origin=data.origin,
            destination=data.destination,
            airport_code=data.airport_code,
            airport_direction=data.airport_direction,
        )

        booking = Booking(
            reservation_number=await generate_reservation_number(self.db),
            user_id=data.user_id,
            customer_name=data.customer_name.strip(),
            customer_email=str(data.customer_email).lower(),
            customer_phone=data.customer_phone,
            service_type=quote.service_type.value,
            vehicle_type=data.vehicle_type,
            passengers=data.passengers,
            hours=data.hours,
            origin=data.origin,
            destination=data.destination,
            airport_code=data.airport_code.upper() if data.airport_code else None,
            airport_direction=data.airport_direction,
            service_date=data.service_date,
            service_time=data.service_time,
            notes=data.notes,
            calculated_price=quote.price,
            total=quote.price,
            currency=self.default_currency,
            status="pending",
        )
        self.db.add(booking)
        await self.db.commit()

        logger.info(
            f"Booking {booking.reservation_number} created: {booking.service_type}, "
            f"price {quote.price if quote.price is not None else 'on quote'}"
        )
        return booking

    async def get(self, booking_id: UUID) -> Booking:
        result = await self.db.execute(
            select(Booking).where(Booking.id == booking_id).execution_options(populate_existing=True)
        )
        booking = result.scalar_one_or_none()
        if not booking:
            raise NotFoundError("Booking", str(booking_id))
        return booking

    async def attach_payment(self, booking_id: UUID, payment_id: UUID) -> None:
        """Point the booking at its latest payment. Committed by the caller."""
        await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id)
            .values(payment_id=payment_id, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    async def confirm_if_pending(self, booking_id: UUID) -> bool:
        """Confirm the booking if it is still pending.

        Returns:
            bool: True when this call confirmed it
        """
        now = utc_now()
        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status == "pending")
            .values(
                status="confirmed",
                confirmed_at=now,
                invoice_number=generate_invoice_number(),
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        confirmed = result.rowcount == 1
        if confirmed:
            logger.info(f"Booking {booking_id} confirmed")
        return confirmed

    async def complete(self, booking_id: UUID) -> Booking:
        """Mark a confirmed booking as completed."""
        now = utc_now()
        return await self._transition(booking_id, "completed", completed_at=now, updated_at=now)

    async def cancel(self, booking_id: UUID, reason: str | None = None) -> Booking:
        """Cancel a pending or confirmed booking.

        Open payments of the booking are failed and points accrued for it
        are reversed after the cancellation is committed.

        Raises:
            NotFoundError: Booking not found
            InvalidStateTransition: Booking completed or already cancelled
        """
        now = utc_now()
        booking = await self._transition(
            booking_id,
            "cancelled",
            cancelled_at=now,
            cancellation_reason=reason,
            updated_at=now,
        )
        await self._fail_open_payments(booking_id)
        await self.loyalty.reverse_for_booking(booking_id)
        await self.db.refresh(booking)
        await self.notifications.booking_cancelled(booking)
        await self.db.refresh(booking)
        return booking

    async def _fail_open_payments(self, booking_id: UUID) -> int:
        now = utc_now()
        result = await self.db.execute(
            update(Payment)
            .where(Payment.booking_id == booking_id, Payment.status.in_(sources_for("failed")))
            .values(status="failed", failure_reason="Booking cancelled", failed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self.db.commit()
        if result.rowcount:
            logger.info(f"Failed {result.rowcount} open payment(s) of cancelled booking {booking_id}")
        return result.rowcount

    async def _transition(self, booking_id: UUID, target: str, **values: Any) -> Booking:
        booking = await self.get(booking_id)
        assert_booking_transition(booking.status, target)

        result = await self.db.execute(
            update(Booking)
            .where(Booking.id == booking_id, Booking.status.in_(booking_sources_for(target)))
            .values(status=target, **values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            current = await self.get(booking_id)
            raise InvalidStateTransition("booking", current.status, target)

        await self.db.commit()
        await self.db.refresh(booking)
        logger.info(f"Booking {booking.reservation_number} transitioned to {target}")
        return booking
