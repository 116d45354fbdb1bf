"""Pricing schemas."""

from decimal import Decimal
from typing import Any

from pydantic import BaseModel, Field


class QuoteRequest(BaseModel):
    """Schema for pricing a booking request without creating it."""

    service_type: str = Field(..., pattern="^(airport|intercity|hourly|custom)$")
    vehicle_type: str | None = None
    passengers: int | None = None
    hours: int | None = None
    origin: str | None = Field(None, max_length=255)
    destination: str | None = Field(None, max_length=255)
    airport_code: str | None = Field(None, max_length=3)
    airport_direction: str | None = Field(None, pattern="^(from|to)$")


class QuoteResponse(BaseModel):
    """Schema for a computed price."""

    service_type: str
    price: Decimal | None
    currency: str
    quote_required: bool
    breakdown: dict[str, Any] = {}


class AirportResponse(BaseModel):
    code: str
    name: str
    city: str
