"""Payment processor.

Payments only change status through conditional UPDATE statements that
name the statuses a transition may start from. Whoever's update matches
the row wins the transition and runs its side effects; everyone else sees
a no-op or an InvalidStateTransition.

Side effects of completion run after the payment is committed, each in
its own transaction, in this order:
1. Confirm the booking if it is still pending
2. Accrue loyalty points
3. Notify the customer

A failure in any of them is logged and left to the reconciliation task;
the payment stays completed.
"""

import asyncio
import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from reservations.core.exceptions import (
    DuplicatePayment,
    InvalidStateTransition,
    NotFoundError,
    PaymentVerificationFailed,
    ProviderUnavailable,
    ValidationError,
    field_error,
)
from reservations.domain.payment_details import PaymentDetails, dump_details, with_evidence
from reservations.domain.payment_state import PAYMENT_STATUSES, assert_payment_transition, sources_for
from reservations.domain.pricing import money
from reservations.models.payment import Payment
from reservations.models.user import User
from reservations.services.booking_service import BookingLedger
from reservations.services.gateway_service import GatewayService
from reservations.services.loyalty_service import LoyaltyLedger
from reservations.services.notification_service import NotificationService
from reservations.utils.dates import as_utc, utc_now

logger = logging.getLogger(__name__)


def _invalid_details(e: PydanticValidationError) -> ValidationError:
    errors = [
        {"field": ".".join(str(part) for part in err["loc"]) or "details", "message": err["msg"]}
        for err in e.errors()
    ]
    return ValidationError("Invalid payment details", errors=errors)


@dataclass
class PaymentStats:
    total: int
    by_status: dict[str, int]
    completed_amount: Decimal


class PaymentProcessor:
    """Creates payments and drives them through their lifecycle."""

    def __init__(
        self,
        db: AsyncSession,
        gateways: GatewayService,
        bookings: BookingLedger | None = None,
        loyalty: LoyaltyLedger | None = None,
        notifications: NotificationService | None = None,
        verify_timeout: float = 10.0,
        default_currency: str = "MAD",
        allowed_currencies: Iterable[str] = ("MAD", "EUR", "USD", "USDT"),
    ):
        self.db = db
        self.gateways = gateways
        self.loyalty = loyalty or LoyaltyLedger(db)
        self.notifications = notifications or NotificationService(db)
        self.bookings = bookings or BookingLedger(db, loyalty=self.loyalty, notifications=self.notifications)
        self.verify_timeout = verify_timeout
        self.default_currency = default_currency.upper()
        self.allowed_currencies = frozenset(c.upper() for c in allowed_currencies)

    # ==================== QUERIES ====================

    async def get(self, payment_id: UUID) -> Payment:
        result = await self.db.execute(
            select(Payment).where(Payment.id == payment_id).execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if not payment:
            raise NotFoundError("Payment", str(payment_id))
        return payment

    async def list_for_booking(self, booking_id: UUID) -> list[Payment]:
        await self.bookings.get(booking_id)
        result = await self.db.execute(
            select(Payment).where(Payment.booking_id == booking_id).order_by(Payment.created_at.desc())
        )
        return list(result.scalars().all())

    def _criteria(
        self,
        status: str | None = None,
        method: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
    ) -> list[Any]:
        criteria = []
        if status is not None:
            if status not in PAYMENT_STATUSES:
                raise field_error("status", f"Unknown payment status '{status}'")
            criteria.append(Payment.status == status)
        if method is not None:
            criteria.append(Payment.payment_method == self.gateways.get(method).method.value)
        if start is not None:
            criteria.append(Payment.created_at >= as_utc(start).astimezone(UTC))
        if end is not None:
            criteria.append(Payment.created_at <= as_utc(end).astimezone(UTC))
        return criteria

    async def _page(self, criteria: list[Any], page: int, limit: int) -> tuple[list[Payment], int]:
        total = await self.db.scalar(select(func.count()).select_from(Payment).where(*criteria))
        result = await self.db.execute(
            select(Payment)
            .where(*criteria)
            .order_by(Payment.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    async def list_payments(
        self,
        status: str | None = None,
        method: str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        page: int = 1,
        limit: int = 50,
    ) -> tuple[list[Payment], int, PaymentStats]:
        """All payments, newest first, for the admin review queue.

        Args:
            status: Only payments in this status
            method: Only payments made with this method
            start: Only payments created at or after this time
            end: Only payments created at or before this time
            page: 1-based page number
            limit: Page size

        Returns:
            Tuple of the page, the number of matching payments and the
            statistics over all payments

        Raises:
            ValidationError: Unknown status
            InvalidPaymentMethod: Unknown method
        """
        payments, total = await self._page(self._criteria(status, method, start, end), page, limit)
        return payments, total, await self.stats()

    async def list_for_user(
        self,
        user_id: UUID,
        status: str | None = None,
        method: str | None = None,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[Payment], int]:
        """Payments of a user, newest first, with the total count."""
        if await self.db.get(User, user_id) is None:
            raise NotFoundError("User", str(user_id))
        criteria = [Payment.user_id == user_id, *self._criteria(status, method)]
        return await self._page(criteria, page, limit)

    async def stats(self) -> PaymentStats:
        """Payment counts per status and the amount collected."""
        result = await self.db.execute(select(Payment.status, func.count()).group_by(Payment.status))
        by_status = dict.fromkeys(PAYMENT_STATUSES, 0)
        by_status.update({status: count for status, count in result.all()})
        collected = await self.db.scalar(
            select(func.coalesce(func.sum(Payment.amount), 0)).where(Payment.status == "completed")
        )
        return PaymentStats(
            total=sum(by_status.values()),
            by_status=by_status,
            completed_amount=money(collected or 0),
        )

    async def _has_completed_payment(self, booking_id: UUID, exclude: UUID | None = None) -> bool:
        query = select(Payment.id).where(Payment.booking_id == booking_id, Payment.status == "completed")
        if exclude is not None:
            query = query.where(Payment.id != exclude)
        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    # ==================== CREATION ====================

    async def create_payment(
        self,
        booking_id: UUID,
        method: str,
        amount: Decimal | int | str,
        currency: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> tuple[Payment, dict[str, Any]]:
        """Create a pending payment for a booking.

        Args:
            booking_id: Booking being paid
            method: Payment method tag
            amount: Amount, must be positive
            currency: Currency code, defaults to the configured currency
            details: Customer supplied evidence for the method

        Returns:
            Tuple of the payment and the method's payment instructions

        Raises:
            InvalidPaymentMethod: Unknown method
            ValidationError: Bad amount, currency or details, or booking cancelled
            NotFoundError: Booking not found
            DuplicatePayment: Booking already has a completed payment
        """
        gateway = self.gateways.get(method)

        try:
            amount = money(amount)
        except (InvalidOperation, TypeError, ValueError):
            raise field_error("amount", "Amount must be a number")
        if amount <= 0:
            raise field_error("amount", "Amount must be greater than 0")

        currency = (currency or self.default_currency).upper()
        if currency not in self.allowed_currencies:
            allowed = ", ".join(sorted(self.allowed_currencies))
            raise field_error("currency", f"Currency '{currency}' is not supported. Allowed: {allowed}")

        booking = await self.bookings.get(booking_id)
        if booking.status == "cancelled":
            raise ValidationError("Cannot create a payment for a cancelled booking")
        if await self._has_completed_payment(booking_id):
            raise DuplicatePayment()

        order_id = gateway.new_order_id()
        try:
            method_details = gateway.build_details(booking, order_id, details)
        except PydanticValidationError as e:
            raise _invalid_details(e)

        payment = Payment(
            booking_id=booking.id,
            user_id=booking.user_id,
            amount=amount,
            currency=currency,
            payment_method=gateway.method.value,
            status="pending",
            provider_order_id=order_id,
            details=dump_details(method_details),
        )
        self.db.add(payment)
        await self.db.flush()
        await self.bookings.attach_payment(booking.id, payment.id)
        await self.db.commit()

        logger.info(
            f"Payment {payment.id} created for booking {booking.reservation_number}: "
            f"{amount} {currency} via {payment.payment_method}"
        )
        return payment, gateway.instructions(method_details)

    def instructions(self, method: str) -> dict[str, Any]:
        """Static payment instructions of a method."""
        return self.gateways.get(method).instructions()

    # ==================== TRANSITIONS ====================

    def _merge_evidence(self, payment: Payment, evidence: dict[str, Any] | None) -> PaymentDetails:
        try:
            return with_evidence(payment.method_details, evidence)
        except PydanticValidationError as e:
            raise _invalid_details(e)

    def _detach(self, payment: Payment) -> Payment:
        # Side effects may roll back the session, which would expire the payment
        self.db.expunge(payment)
        return payment

    async def confirm(
        self,
        payment_id: UUID,
        details: dict[str, Any] | None = None,
        notes: str | None = None,
    ) -> Payment:
        """Confirm a payment by hand (admin).

        Args:
            payment_id: Payment to confirm
            details: Evidence to record in the method details
            notes: Admin notes

        Returns:
            Payment: Completed payment; unchanged if it was already completed

        Raises:
            NotFoundError: Payment not found
            InvalidStateTransition: Payment failed
            DuplicatePayment: Another payment of the booking completed first
        """
        payment = await self.get(payment_id)
        if payment.status == "completed":
            logger.info(f"Payment {payment_id} already completed, confirm ignored")
            return payment
        assert_payment_transition(payment.status, "completed")

        values = {"notes": notes} if notes else {}
        payment, _ = await self.complete_with_evidence(payment, details, **values)
        return payment

    async def complete_with_evidence(
        self,
        payment: Payment,
        evidence: dict[str, Any] | None = None,
        **values: Any,
    ) -> tuple[Payment, bool]:
        """Move a payment to completed and run the completion side effects.

        Returns:
            Tuple of the payment and whether this call completed it. False
            means another caller had already completed it.

        Raises:
            InvalidStateTransition: Payment is failed
            DuplicatePayment: Another payment of the booking is completed
        """
        payment_id, booking_id = payment.id, payment.booking_id
        merged = self._merge_evidence(payment, evidence)
        if await self._has_completed_payment(booking_id, exclude=payment_id):
            await self.db.rollback()
            logger.warning(f"Payment {payment_id} rejected: booking {booking_id} already paid")
            raise DuplicatePayment()

        now = utc_now()
        try:
            result = await self.db.execute(
                update(Payment)
                .where(Payment.id == payment_id, Payment.status.in_(sources_for("completed")))
                .values(
                    status="completed",
                    completed_at=now,
                    details=dump_details(merged),
                    updated_at=now,
                    **values,
                )
                .execution_options(synchronize_session=False)
            )
        except IntegrityError:
            await self.db.rollback()
            logger.warning(f"Payment {payment_id} rejected: booking {booking_id} already paid")
            raise DuplicatePayment()

        if result.rowcount == 0:
            await self.db.rollback()
            current = await self.get(payment_id)
            if current.status == "completed":
                return current, False
            raise InvalidStateTransition("payment", current.status, "completed")

        await self.db.commit()
        await self.db.refresh(payment)
        logger.info(
            f"Payment {payment.id} completed: {payment.amount} {payment.currency} via {payment.payment_method}"
        )

        self._detach(payment)
        await self._after_completion(payment)
        return payment, True

    async def _after_completion(self, payment: Payment, notify: bool = True) -> None:
        booking = await self.bookings.get(payment.booking_id)
        if booking.status == "cancelled":
            logger.info(f"Booking {booking.id} is cancelled, payment {payment.id} earns no points")
        else:
            try:
                await self.bookings.confirm_if_pending(payment.booking_id)
            except SQLAlchemyError:
                await self.db.rollback()
                logger.exception(f"Booking {payment.booking_id} not confirmed after payment {payment.id}")

            try:
                await self.loyalty.accrue_for_payment(payment)
            except SQLAlchemyError:
                await self.db.rollback()
                logger.exception(f"Loyalty accrual failed for payment {payment.id}")

        if notify:
            await self.notifications.payment_completed(payment)

    async def mark_as_pending_review(self, payment_id: UUID, proof: dict[str, Any] | None = None) -> Payment:
        """Record the customer's proof of payment and queue it for review.

        Raises:
            NotFoundError: Payment not found
            InvalidStateTransition: Payment is not pending
        """
        payment = await self.get(payment_id)
        assert_payment_transition(payment.status, "pending_review")
        merged = self._merge_evidence(payment, proof)

        now = utc_now()
        result = await self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status.in_(sources_for("pending_review")))
            .values(status="pending_review", details=dump_details(merged), updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            current = await self.get(payment_id)
            raise InvalidStateTransition("payment", current.status, "pending_review")

        await self.db.commit()
        await self.db.refresh(payment)
        logger.info(f"Payment {payment_id} marked for review")

        self._detach(payment)
        await self.notifications.payment_pending_review(payment)
        return payment

    async def verify(self, payment_id: UUID, provider_reference: str | None = None) -> Payment:
        """Verify a payment with its provider and complete it when paid.

        Args:
            payment_id: Payment to verify
            provider_reference: Transaction hash or order reference from the customer

        Returns:
            Payment: Completed payment

        Raises:
            NotFoundError: Payment not found
            ValidationError: Method has no provider to verify with
            InvalidStateTransition: Payment failed
            ProviderUnavailable: Provider timed out or is down
            PaymentVerificationFailed: Provider did not confirm the payment
        """
        payment = await self.get(payment_id)
        gateway = self.gateways.get(payment.payment_method)
        if not gateway.supports_verification:
            raise ValidationError(f"{payment.payment_method} payments cannot be verified with a provider")

        if payment.status == "completed":
            logger.info(f"Payment {payment_id} already completed, verification skipped")
            return payment
        assert_payment_transition(payment.status, "completed")

        try:
            result = await asyncio.wait_for(
                gateway.verify_payment(payment.method_details, provider_reference),
                timeout=self.verify_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Verification of payment {payment_id} with {payment.payment_method} timed out")
            raise ProviderUnavailable(payment.payment_method, "verification timed out")

        if not result.verified:
            logger.info(f"Payment {payment_id} not verified: {result.error_message}")
            raise PaymentVerificationFailed(result.error_message or "Payment could not be verified with the provider")

        evidence = {"transaction_hash": provider_reference, "transaction_id": result.transaction_id}
        payment, _ = await self.complete_with_evidence(payment, evidence)
        return payment

    async def mark_as_failed(self, payment_id: UUID, reason: str) -> Payment:
        """Fail a payment that has not completed.

        Returns:
            Payment: Failed payment; unchanged if it was already failed

        Raises:
            NotFoundError: Payment not found
            InvalidStateTransition: Payment completed
        """
        payment = await self.get(payment_id)
        if payment.status == "failed":
            logger.info(f"Payment {payment_id} already failed")
            return payment
        assert_payment_transition(payment.status, "failed")

        payment, _ = await self.fail(payment, reason)
        return payment

    async def fail(self, payment: Payment, reason: str) -> tuple[Payment, bool]:
        """Move a payment to failed and notify the customer.

        Returns:
            Tuple of the payment and whether this call failed it

        Raises:
            InvalidStateTransition: Payment completed
        """
        payment_id = payment.id
        now = utc_now()
        result = await self.db.execute(
            update(Payment)
            .where(Payment.id == payment_id, Payment.status.in_(sources_for("failed")))
            .values(status="failed", failure_reason=reason, failed_at=now, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            current = await self.get(payment_id)
            if current.status == "failed":
                return current, False
            raise InvalidStateTransition("payment", current.status, "failed")

        await self.db.commit()
        await self.db.refresh(payment)
        logger.info(f"Payment {payment.id} failed: {reason}")

        self._detach(payment)
        await self.notifications.payment_failed(payment, reason)
        return payment, True

    # ==================== RECONCILIATION ====================

    async def reconcile(self, payment_id: UUID) -> Payment:
        """Re-run booking confirmation and loyalty accrual of a completed payment.

        Both steps are idempotent, so this repairs a completion whose side
        effects were interrupted. Notifications are not re-sent.
        """
        payment = await self.get(payment_id)
        if payment.status != "completed":
            logger.info(f"Payment {payment_id} is {payment.status}, nothing to reconcile")
            return payment

        self._detach(payment)
        await self._after_completion(payment, notify=False)
        return payment
