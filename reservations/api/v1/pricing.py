"""Pricing endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends

from reservations.api.deps import get_pricing_engine
from reservations.config import settings
from reservations.domain.pricing import AIRPORTS
from reservations.schemas.pricing import AirportResponse, QuoteRequest, QuoteResponse
from reservations.services.pricing_service import PricingEngine

router = APIRouter()


@router.post("/quote", response_model=QuoteResponse)
async def quote(
    data: QuoteRequest,
    pricing: Annotated[PricingEngine, Depends(get_pricing_engine)],
) -> QuoteResponse:
    """Price a booking request without creating it."""
    result = await pricing.quote(
        data.service_type,
        vehicle_type=data.vehicle_type,
        passengers=data.passengers,
        hours=data.hours,
        origin=data.origin,
        destination=data.destination,
        airport_code=data.airport_code,
        airport_direction=data.airport_direction,
    )
    return QuoteResponse(
        service_type=result.service_type.value,
        price=result.price,
        currency=settings.default_currency,
        quote_required=result.quote_required,
        breakdown=result.breakdown,
    )


@router.get("/airports", response_model=list[AirportResponse])
async def list_airports() -> list[AirportResponse]:
    """Airports served by transfers."""
    return [
        AirportResponse(code=airport.code, name=airport.name, city=airport.city)
        for airport in AIRPORTS.values()
    ]
