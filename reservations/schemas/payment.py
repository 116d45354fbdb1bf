"""Payment-related Pydantic schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class PaymentCreate(BaseModel):
    """Schema for initiating a payment."""

    booking_id: UUID
    payment_method: str
    amount: Decimal
    currency: str | None = Field(None, max_length=4)
    # Method-specific evidence (bank reference, transaction hash...)
    details: dict[str, Any] | None = None


class PaymentResponse(BaseModel):
    """Schema for payment response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID
    user_id: UUID | None
    amount: Decimal
    currency: str
    payment_method: str
    status: str
    provider_order_id: str | None
    details: dict[str, Any]
    notes: str | None
    failure_reason: str | None
    reviewed_at: datetime | None
    completed_at: datetime | None
    failed_at: datetime | None
    created_at: datetime


class PaymentListResponse(BaseModel):
    """Schema for a page of payments."""

    payments: list[PaymentResponse]
    total: int
    page: int
    page_size: int


class PaymentStatsResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    total: int
    by_status: dict[str, int]
    completed_amount: Decimal


class AdminPaymentListResponse(PaymentListResponse):
    """Schema for the admin payment list with statistics over all payments."""

    stats: PaymentStatsResponse


class PaymentCreatedResponse(BaseModel):
    """Schema for a new payment and how to pay it."""

    payment: PaymentResponse
    instructions: dict[str, Any]


class PaymentConfirmRequest(BaseModel):
    """Schema for an admin confirming a payment."""

    details: dict[str, Any] | None = None
    notes: str | None = Field(None, max_length=1000)


class PaymentMarkPaidRequest(BaseModel):
    """Schema for a customer reporting a payment as sent."""

    details: dict[str, Any] | None = None


class PaymentVerifyRequest(BaseModel):
    """Schema for verifying a payment with its provider."""

    provider_reference: str | None = Field(None, max_length=200)


class PaymentFailRequest(BaseModel):
    """Schema for marking a payment as failed."""

    reason: str = Field(..., min_length=1, max_length=1000)
