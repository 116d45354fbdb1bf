"""Booking-related Pydantic schemas."""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field


class BookingCreate(BaseModel):
    """Schema for creating a booking."""

    user_id: UUID | None = None

    customer_name: str = Field(..., min_length=1, max_length=200)
    customer_email: EmailStr
    customer_phone: str | None = Field(None, max_length=30)

    service_type: str = Field(..., pattern="^(airport|intercity|hourly|custom)$")
    vehicle_type: str | None = None
    passengers: int | None = None
    hours: int | None = None
    origin: str | None = Field(None, max_length=255)
    destination: str | None = Field(None, max_length=255)
    airport_code: str | None = Field(None, max_length=3)
    airport_direction: str | None = Field(None, pattern="^(from|to)$")
    service_date: date | None = None
    service_time: str | None = Field(None, pattern=r"^\d{2}:\d{2}$")
    notes: str | None = Field(None, max_length=2000)


class BookingResponse(BaseModel):
    """Schema for booking response."""

    model_config = ConfigDict(from_attributes=True)

    id: UUID
    reservation_number: str
    invoice_number: str | None
    user_id: UUID | None

    customer_name: str
    customer_email: str
    customer_phone: str | None

    service_type: str
    vehicle_type: str | None
    passengers: int | None
    hours: int | None
    origin: str | None
    destination: str | None
    airport_code: str | None
    airport_direction: str | None
    service_date: date | None
    service_time: str | None
    notes: str | None

    calculated_price: Decimal | None
    total: Decimal | None
    currency: str

    status: str
    payment_id: UUID | None
    cancellation_reason: str | None

    confirmed_at: datetime | None
    completed_at: datetime | None
    cancelled_at: datetime | None
    created_at: datetime


class BookingCancelRequest(BaseModel):
    """Schema for canceling a booking."""

    reason: str | None = Field(None, max_length=1000)
