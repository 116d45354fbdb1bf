"""Payment endpoints."""

from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Body, Depends, Query, status

from reservations.api.deps import get_payment_processor
from reservations.schemas.payment import (
    AdminPaymentListResponse,
    PaymentConfirmRequest,
    PaymentCreate,
    PaymentCreatedResponse,
    PaymentFailRequest,
    PaymentListResponse,
    PaymentMarkPaidRequest,
    PaymentResponse,
    PaymentStatsResponse,
    PaymentVerifyRequest,
)
from reservations.services.payment_service import PaymentProcessor

router = APIRouter()

Processor = Annotated[PaymentProcessor, Depends(get_payment_processor)]


@router.post("", response_model=PaymentCreatedResponse, status_code=status.HTTP_201_CREATED)
async def create_payment(data: PaymentCreate, processor: Processor) -> PaymentCreatedResponse:
    """Create a pending payment and return how to pay it."""
    payment, instructions = await processor.create_payment(
        booking_id=data.booking_id,
        method=data.payment_method,
        amount=data.amount,
        currency=data.currency,
        details=data.details,
    )
    return PaymentCreatedResponse(
        payment=PaymentResponse.model_validate(payment),
        instructions=instructions,
    )


@router.get("", response_model=AdminPaymentListResponse)
async def list_payments(
    processor: Processor,
    status_filter: str | None = Query(None, alias="status"),
    method: str | None = Query(None),
    start: datetime | None = Query(None),
    end: datetime | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=100),
) -> AdminPaymentListResponse:
    """All payments, newest first, with counts per status (admin)."""
    payments, total, stats = await processor.list_payments(
        status=status_filter,
        method=method,
        start=start,
        end=end,
        page=page,
        limit=page_size,
    )
    return AdminPaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        total=total,
        page=page,
        page_size=page_size,
        stats=PaymentStatsResponse.model_validate(stats),
    )


@router.get("/user/{user_id}", response_model=PaymentListResponse)
async def list_user_payments(
    user_id: UUID,
    processor: Processor,
    status_filter: str | None = Query(None, alias="status"),
    method: str | None = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PaymentListResponse:
    """Payments of a user, newest first."""
    payments, total = await processor.list_for_user(
        user_id, status=status_filter, method=method, page=page, limit=page_size
    )
    return PaymentListResponse(
        payments=[PaymentResponse.model_validate(p) for p in payments],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/booking/{booking_id}", response_model=list[PaymentResponse])
async def list_booking_payments(booking_id: UUID, processor: Processor) -> list[PaymentResponse]:
    """Payments of a booking, newest first."""
    payments = await processor.list_for_booking(booking_id)
    return [PaymentResponse.model_validate(p) for p in payments]


@router.get("/methods/{method}/instructions")
async def get_payment_instructions(method: str, processor: Processor) -> dict[str, Any]:
    """Static payment instructions of a method (account, wallet, receiver)."""
    return processor.instructions(method)


@router.get("/{payment_id}", response_model=PaymentResponse)
async def get_payment(payment_id: UUID, processor: Processor) -> PaymentResponse:
    """Get payment details."""
    payment = await processor.get(payment_id)
    return PaymentResponse.model_validate(payment)


@router.put("/{payment_id}/confirm", response_model=PaymentResponse)
async def confirm_payment(
    payment_id: UUID,
    processor: Processor,
    data: Annotated[PaymentConfirmRequest | None, Body()] = None,
) -> PaymentResponse:
    """Confirm a payment by hand.

    Confirms the booking, accrues loyalty points and notifies the customer.
    Confirming an already completed payment is a no-op.
    """
    data = data or PaymentConfirmRequest()
    payment = await processor.confirm(payment_id, details=data.details, notes=data.notes)
    return PaymentResponse.model_validate(payment)


@router.put("/{payment_id}/mark-paid", response_model=PaymentResponse)
async def mark_payment_paid(
    payment_id: UUID,
    processor: Processor,
    data: Annotated[PaymentMarkPaidRequest | None, Body()] = None,
) -> PaymentResponse:
    """Customer reports the payment as sent, with proof for review."""
    payment = await processor.mark_as_pending_review(payment_id, data.details if data else None)
    return PaymentResponse.model_validate(payment)


@router.post("/{payment_id}/verify", response_model=PaymentResponse)
async def verify_payment(
    payment_id: UUID,
    processor: Processor,
    data: Annotated[PaymentVerifyRequest | None, Body()] = None,
) -> PaymentResponse:
    """Verify a Binance or Redotpay payment with the provider."""
    payment = await processor.verify(payment_id, data.provider_reference if data else None)
    return PaymentResponse.model_validate(payment)


@router.put("/{payment_id}/fail", response_model=PaymentResponse)
async def fail_payment(payment_id: UUID, data: PaymentFailRequest, processor: Processor) -> PaymentResponse:
    """Mark a payment that has not completed as failed."""
    payment = await processor.mark_as_failed(payment_id, data.reason)
    return PaymentResponse.model_validate(payment)
