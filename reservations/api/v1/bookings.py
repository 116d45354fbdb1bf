"""Booking endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Body, Depends, status

from reservations.api.deps import get_booking_ledger
from reservations.schemas.booking import BookingCancelRequest, BookingCreate, BookingResponse
from reservations.services.booking_service import BookingLedger

router = APIRouter()

Bookings = Annotated[BookingLedger, Depends(get_booking_ledger)]


@router.post("", response_model=BookingResponse, status_code=status.HTTP_201_CREATED)
async def create_booking(data: BookingCreate, bookings: Bookings) -> BookingResponse:
    """Create a booking priced from its service parameters.

    Custom service bookings are stored without a price and quoted by hand.
    """
    booking = await bookings.create_booking(data)
    return BookingResponse.model_validate(booking)


@router.get("/{booking_id}", response_model=BookingResponse)
async def get_booking(booking_id: UUID, bookings: Bookings) -> BookingResponse:
    """Get booking details."""
    booking = await bookings.get(booking_id)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/cancel", response_model=BookingResponse)
async def cancel_booking(
    booking_id: UUID,
    bookings: Bookings,
    data: Annotated[BookingCancelRequest | None, Body()] = None,
) -> BookingResponse:
    """Cancel a pending or confirmed booking and reverse its loyalty points."""
    booking = await bookings.cancel(booking_id, data.reason if data else None)
    return BookingResponse.model_validate(booking)


@router.post("/{booking_id}/complete", response_model=BookingResponse)
async def complete_booking(booking_id: UUID, bookings: Bookings) -> BookingResponse:
    """Mark a confirmed booking as completed."""
    booking = await bookings.complete(booking_id)
    return BookingResponse.model_validate(booking)
