"""Pricing engine.

Dispatches a booking request to the pricing rule of its service type.
Only intercity and out-of-town airport transfers need the distance lookup;
everything else is computed locally.
"""

import asyncio
import logging

from reservations.core.exceptions import ProviderUnavailable, field_error
from reservations.domain.pricing import (
    PriceQuote,
    ServiceType,
    airport_flat_price,
    airport_intercity_price,
    airport_route,
    custom_quote,
    get_airport,
    hourly_price,
    intercity_price,
    parse_service_type,
    parse_vehicle_type,
    validate_passengers,
)
from reservations.services.distance_service import DistanceLookup

logger = logging.getLogger(__name__)


def _require_location(field: str, value: str | None) -> str:
    if not value or not value.strip():
        raise field_error(field, f"{field.replace('_', ' ').capitalize()} is required")
    return value.strip()


class PricingEngine:
    """Computes booking prices."""

    def __init__(self, distance_lookup: DistanceLookup, lookup_timeout: float = 10.0):
        self.distance_lookup = distance_lookup
        self.lookup_timeout = lookup_timeout

    async def quote(
        self,
        service_type: str | ServiceType,
        *,
        vehicle_type: str | None = None,
        passengers: int | None = None,
        hours: int | None = None,
        origin: str | None = None,
        destination: str | None = None,
        airport_code: str | None = None,
        airport_direction: str | None = None,
    ) -> PriceQuote:
        """Price a booking request.

        Args:
            service_type: airport, intercity, hourly or custom
            vehicle_type: vito, v-class or sprinter
            passengers: Passenger count, at least 1
            hours: Whole hours for hourly service
            origin: Start location (intercity)
            destination: End location (intercity) or the non-airport
                endpoint (airport)
            airport_code: IATA code (airport)
            airport_direction: "from" or "to" the airport (airport)

        Returns:
            PriceQuote, with price None for custom service

        Raises:
            ValidationError: Missing or invalid parameter
            ProviderUnavailable: Distance lookup failed or timed out
        """
        service = parse_service_type(service_type)

        if service is ServiceType.CUSTOM:
            return custom_quote()

        if service is ServiceType.HOURLY:
            if passengers is not None:
                validate_passengers(passengers)
            return hourly_price(vehicle_type, hours)

        vehicle = parse_vehicle_type(vehicle_type)
        validate_passengers(passengers)

        if service is ServiceType.AIRPORT:
            return await self.airport_transfer(
                airport_code,
                _require_location("destination", destination),
                airport_direction or "from",
                vehicle.value,
                passengers,
            )

        return await self.intercity(
            _require_location("origin", origin),
            _require_location("destination", destination),
            vehicle.value,
            passengers,
        )

    async def intercity(self, origin: str, destination: str, vehicle_type: str, passengers: int) -> PriceQuote:
        distance = await self._lookup(origin, destination, vehicle_type, passengers)
        return intercity_price(origin, destination, distance)

    async def airport_transfer(
        self,
        airport_code: str | None,
        location: str,
        direction: str,
        vehicle_type: str,
        passengers: int,
    ) -> PriceQuote:
        airport = get_airport(airport_code)
        route_origin, route_destination = airport_route(airport, location, direction)
        if airport.serves(location):
            return airport_flat_price(airport, location)
        distance = await self._lookup(route_origin, route_destination, vehicle_type, passengers)
        return airport_intercity_price(airport, distance)

    async def _lookup(self, origin: str, destination: str, vehicle_type: str, passengers: int):
        try:
            return await asyncio.wait_for(
                self.distance_lookup.lookup(origin, destination, vehicle_type, passengers),
                timeout=self.lookup_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning(f"Distance lookup timed out: {origin!r} -> {destination!r}")
            raise ProviderUnavailable("distance", "lookup timed out")
