"""Webhook reconciliation.

Providers deliver at least once and in any order. Each delivery is
authenticated and parsed by the provider's gateway, matched to a payment
by provider order id and method, then applied through the payment
processor. Anything arriving after the payment reached a terminal status
is acknowledged as already processed without side effects.
"""

import logging
from collections.abc import Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from reservations.core.exceptions import DuplicatePayment, InvalidStateTransition, NotFoundError
from reservations.core.idempotency import IdempotencyStore, RedisIdempotencyStore, generate_idempotency_key
from reservations.domain.payment_details import PaymentMethod
from reservations.gateways.base import EventOutcome, ProviderEvent
from reservations.models.payment import Payment
from reservations.schemas.webhook import WebhookAck
from reservations.services.payment_service import PaymentProcessor

logger = logging.getLogger(__name__)

ALREADY_PROCESSED = "already_processed"
PROCESSED = "processed"
IGNORED = "ignored"


class WebhookReconciler:
    """Applies provider webhook events to payments."""

    def __init__(
        self,
        db: AsyncSession,
        processor: PaymentProcessor,
        idempotency: IdempotencyStore | RedisIdempotencyStore | None = None,
    ):
        self.db = db
        self.processor = processor
        self.idempotency = idempotency or IdempotencyStore()

    async def handle(self, method: str | PaymentMethod, body: bytes, headers: Mapping[str, str]) -> WebhookAck:
        """Process one webhook delivery.

        Args:
            method: Provider the delivery came from
            body: Raw request body, needed for signature checks
            headers: Request headers

        Returns:
            WebhookAck: What happened to the event

        Raises:
            MalformedWebhook: Invalid payload or signature
            NotFoundError: No payment with this order id and method
        """
        gateway = self.processor.gateways.get(method)
        event = gateway.parse_webhook(body, headers)

        key = generate_idempotency_key(
            f"webhook:{event.method.value}",
            event.order_id,
            {"status": event.status, "transaction_id": event.transaction_id},
        )
        previous = await self.idempotency.get(key)
        if previous is not None:
            logger.info(f"Duplicate {event.method.value} webhook for order {event.order_id}")
            return WebhookAck(**{**previous, "result": ALREADY_PROCESSED})

        payment = await self._find_payment(event)
        ack = await self.apply(payment, event)
        await self.idempotency.set(key, ack.model_dump())
        return ack

    async def _find_payment(self, event: ProviderEvent) -> Payment:
        result = await self.db.execute(
            select(Payment)
            .where(
                Payment.provider_order_id == event.order_id,
                Payment.payment_method == event.method.value,
            )
            .execution_options(populate_existing=True)
        )
        payment = result.scalar_one_or_none()
        if payment is None:
            logger.warning(f"{event.method.value} webhook for unknown order {event.order_id}")
            raise NotFoundError("Payment", event.order_id)
        return payment

    async def apply(self, payment: Payment, event: ProviderEvent) -> WebhookAck:
        """Apply a parsed event to its payment."""
        payment_id, status_before = str(payment.id), payment.status

        if event.outcome is EventOutcome.IGNORED:
            logger.info(f"Ignoring {event.method.value} status {event.status} for payment {payment_id}")
            return WebhookAck(result=IGNORED, payment_id=payment_id, payment_status=payment.status)

        if payment.status in ("completed", "failed"):
            logger.info(
                f"Late {event.method.value} {event.status} event for payment {payment_id} "
                f"(already {payment.status})"
            )
            return WebhookAck(result=ALREADY_PROCESSED, payment_id=payment_id, payment_status=payment.status)

        try:
            if event.outcome is EventOutcome.PAID:
                evidence = {"transaction_id": event.transaction_id}
                if event.method is PaymentMethod.BINANCE:
                    evidence["transaction_hash"] = event.raw.get("transactionHash") or event.raw.get("transaction_hash")
                payment, changed = await self.processor.complete_with_evidence(payment, evidence)
            else:
                payment, changed = await self.processor.fail(payment, f"Provider reported {event.status}")
        except InvalidStateTransition as e:
            logger.info(f"{event.method.value} {event.status} event for payment {payment_id} lost the race ({e.current})")
            return WebhookAck(result=ALREADY_PROCESSED, payment_id=payment_id, payment_status=e.current)
        except DuplicatePayment:
            logger.error(f"{event.method.value} reported payment {payment_id} paid but its booking is already paid")
            return WebhookAck(result=ALREADY_PROCESSED, payment_id=payment_id, payment_status=status_before)

        result = PROCESSED if changed else ALREADY_PROCESSED
        logger.info(f"{event.method.value} webhook for payment {payment_id}: {result}, status {payment.status}")
        return WebhookAck(result=result, payment_id=payment_id, payment_status=payment.status)
