"""Webhook endpoints for payment providers.

Responses tell the provider whether to redeliver: 200 for anything handled
(including late and duplicate events), 400 for payloads that will never
parse, 404 for unknown orders, 5xx for transient failures.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from reservations.api.deps import get_webhook_reconciler
from reservations.domain.payment_details import PaymentMethod
from reservations.schemas.webhook import WebhookAck
from reservations.services.webhook_service import WebhookReconciler

router = APIRouter()

Reconciler = Annotated[WebhookReconciler, Depends(get_webhook_reconciler)]


@router.post("/binance", response_model=WebhookAck, status_code=status.HTTP_200_OK)
async def binance_webhook(request: Request, reconciler: Reconciler) -> WebhookAck:
    """Handle Binance Pay order notifications."""
    # Raw body is needed for signature verification
    body = await request.body()
    return await reconciler.handle(PaymentMethod.BINANCE, body, request.headers)


@router.post("/redotpay", response_model=WebhookAck, status_code=status.HTTP_200_OK)
async def redotpay_webhook(request: Request, reconciler: Reconciler) -> WebhookAck:
    """Handle Redotpay payment notifications."""
    body = await request.body()
    return await reconciler.handle(PaymentMethod.REDOTPAY, body, request.headers)
