"""Pricing domain logic.

Rules:
- hourly: rate(vehicle) x hours, marked up by an hour-count surcharge tier
- airport: flat fare when the location is in the airport's own city,
  otherwise an intercity price between the airport city and the location
  plus the airport supplement
- intercity: distance lookup base price, plus the airport supplement when
  either endpoint is an airport
- custom: no automated price, a quote is negotiated out of band

All amounts are Decimal, rounded half-up to 2 decimals.
"""

import re
from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any

from reservations.core.exceptions import field_error

CENTS = Decimal("0.01")


class ServiceType(str, Enum):
    """Bookable service types."""

    AIRPORT = "airport"
    INTERCITY = "intercity"
    HOURLY = "hourly"
    CUSTOM = "custom"


class VehicleType(str, Enum):
    """Fleet vehicle types."""

    VITO = "vito"
    V_CLASS = "v-class"
    SPRINTER = "sprinter"


class AirportDirection(str, Enum):
    """Travel direction relative to the airport."""

    FROM = "from"
    TO = "to"


HOURLY_RATES: dict[VehicleType, Decimal] = {
    VehicleType.VITO: Decimal("187.5"),
    VehicleType.V_CLASS: Decimal("250"),
    VehicleType.SPRINTER: Decimal("275"),
}

# (min_hours, multiplier) - evaluated in order, first match wins
HOURLY_SURCHARGE_TIERS: list[tuple[int, Decimal]] = [
    (5, Decimal("1.00")),
    (3, Decimal("1.20")),
    (1, Decimal("1.30")),
]

AIRPORT_FLAT_FARE = Decimal("435")
AIRPORT_SUPPLEMENT = Decimal("54")

AIRPORT_KEYWORDS = ("aeropuerto", "airport", "aéroport", "aeroport")


@dataclass(frozen=True)
class Airport:
    """International airport and the city it serves."""

    code: str
    name: str
    city: str
    aliases: tuple[str, ...]

    def serves(self, location: str) -> bool:
        """True when ``location`` names this airport's city."""
        text = location.lower().strip()
        return any(alias in text for alias in self.aliases)


AIRPORTS: dict[str, Airport] = {
    airport.code: airport
    for airport in (
        Airport("CMN", "Mohammed V International", "Casablanca", ("casablanca", "casa")),
        Airport("RAK", "Marrakech Menara", "Marrakech", ("marrakech", "marrakesh")),
        Airport("AGA", "Agadir Al Massira", "Agadir", ("agadir",)),
        Airport("TNG", "Tanger Ibn Battuta", "Tánger", ("tanger", "tánger", "tangier")),
        Airport("TTU", "Tetouan Sania Ramel", "Tetouan", ("tetouan", "tetuan", "tétouan")),
        Airport("FEZ", "Fes Saiss", "Fez", ("fez", "fes", "fès")),
        Airport("RBA", "Rabat Sale", "Rabat", ("rabat", "sale", "salé")),
        Airport("OUD", "Oujda Angads", "Oujda", ("oujda",)),
        Airport("NDR", "Nador Al Aroui", "Nador", ("nador",)),
        Airport("ESU", "Essaouira Mogador", "Essaouira", ("essaouira", "mogador")),
        Airport("OZZ", "Ouarzazate", "Ouarzazate", ("ouarzazate", "ouarzazat")),
        Airport("VIL", "Dakhla", "Dakhla", ("dakhla",)),
        Airport("EUN", "Laayoune Hassan I", "Laayoune", ("laayoune", "el aaiún")),
    )
}


@dataclass(frozen=True)
class DistanceQuote:
    """Result of a distance lookup between two places."""

    distance_km: Decimal
    base_price: Decimal
    method: str = "approximate"


@dataclass(frozen=True)
class PriceQuote:
    """Computed price for a booking request.

    ``price`` is None when the service needs a manual quote.
    """

    service_type: ServiceType
    price: Decimal | None
    breakdown: dict[str, Any] = field(default_factory=dict)

    @property
    def quote_required(self) -> bool:
        return self.price is None


def money(value: Decimal | int | float | str) -> Decimal:
    """Round an amount half-up to cents."""
    return Decimal(str(value)).quantize(CENTS, rounding=ROUND_HALF_UP)


def parse_vehicle_type(vehicle_type: str | VehicleType | None) -> VehicleType:
    if isinstance(vehicle_type, VehicleType):
        return vehicle_type
    try:
        return VehicleType((vehicle_type or "").strip().lower())
    except ValueError:
        allowed = ", ".join(v.value for v in VehicleType)
        raise field_error("vehicle_type", f"Unknown vehicle type '{vehicle_type}'. Allowed: {allowed}")


def validate_passengers(passengers: int | None) -> int:
    if passengers is None or isinstance(passengers, bool) or not isinstance(passengers, int):
        raise field_error("passengers", "Passenger count must be a whole number")
    if passengers <= 0:
        raise field_error("passengers", "Passenger count must be at least 1")
    return passengers


def validate_hours(hours: int | float | Decimal | None) -> int:
    if hours is None or isinstance(hours, bool):
        raise field_error("hours", "Hours are required for hourly service")
    try:
        value = Decimal(str(hours))
    except InvalidOperation:
        raise field_error("hours", "Hours must be a number")
    if value <= 0:
        raise field_error("hours", "Hours must be greater than zero")
    if value != value.to_integral_value():
        raise field_error("hours", "Hours must be a whole number")
    return int(value)


def surcharge_multiplier(hours: int) -> Decimal:
    """Hour-count surcharge multiplier for hourly bookings."""
    for min_hours, multiplier in HOURLY_SURCHARGE_TIERS:
        if hours >= min_hours:
            return multiplier
    raise field_error("hours", "Minimum booking is 1 hour")


def hourly_price(vehicle_type: str | VehicleType, hours: int | float | Decimal) -> PriceQuote:
    """Price an hourly booking.

    Args:
        vehicle_type: Vehicle type name
        hours: Whole number of hours, at least 1

    Returns:
        PriceQuote with base, multiplier and hourly rate in the breakdown
    """
    vehicle = parse_vehicle_type(vehicle_type)
    whole_hours = validate_hours(hours)
    rate = HOURLY_RATES[vehicle]
    base = rate * whole_hours
    multiplier = surcharge_multiplier(whole_hours)
    return PriceQuote(
        service_type=ServiceType.HOURLY,
        price=money(base * multiplier),
        breakdown={
            "vehicle_type": vehicle.value,
            "hours": whole_hours,
            "hourly_rate": rate,
            "base_price": money(base),
            "surcharge_multiplier": multiplier,
        },
    )


def get_airport(code: str | None) -> Airport:
    airport = AIRPORTS.get((code or "").strip().upper())
    if airport is None:
        raise field_error("airport_code", f"Unknown airport code '{code}'")
    return airport


def is_airport_location(location: str) -> bool:
    """True when a free-text location refers to an airport.

    Matches an airport keyword, or a city alias together with that
    airport's IATA code written as a standalone uppercase token.
    """
    text = location.lower()
    if any(keyword in text for keyword in AIRPORT_KEYWORDS):
        return True
    tokens = set(re.findall(r"[A-Za-z]+", location))
    return any(airport.code in tokens and airport.serves(location) for airport in AIRPORTS.values())


def airport_route(airport: Airport, location: str, direction: str | AirportDirection) -> tuple[str, str]:
    """Return (origin, destination) for an airport transfer."""
    try:
        direction = AirportDirection(direction)
    except ValueError:
        raise field_error("airport_direction", "Direction must be 'from' or 'to'")
    if direction is AirportDirection.FROM:
        return airport.city, location
    return location, airport.city


def airport_flat_price(airport: Airport, location: str) -> PriceQuote:
    return PriceQuote(
        service_type=ServiceType.AIRPORT,
        price=money(AIRPORT_FLAT_FARE),
        breakdown={
            "airport_code": airport.code,
            "location": location,
            "same_city": True,
            "flat_fare": AIRPORT_FLAT_FARE,
        },
    )


def airport_intercity_price(airport: Airport, distance: DistanceQuote) -> PriceQuote:
    return PriceQuote(
        service_type=ServiceType.AIRPORT,
        price=money(distance.base_price + AIRPORT_SUPPLEMENT),
        breakdown={
            "airport_code": airport.code,
            "same_city": False,
            "distance_km": distance.distance_km,
            "base_price": distance.base_price,
            "airport_supplement": AIRPORT_SUPPLEMENT,
            "distance_method": distance.method,
        },
    )


def intercity_price(origin: str, destination: str, distance: DistanceQuote) -> PriceQuote:
    touches_airport = is_airport_location(origin) or is_airport_location(destination)
    supplement = AIRPORT_SUPPLEMENT if touches_airport else Decimal("0")
    return PriceQuote(
        service_type=ServiceType.INTERCITY,
        price=money(distance.base_price + supplement),
        breakdown={
            "distance_km": distance.distance_km,
            "base_price": distance.base_price,
            "airport_supplement": supplement,
            "distance_method": distance.method,
        },
    )


def custom_quote() -> PriceQuote:
    return PriceQuote(service_type=ServiceType.CUSTOM, price=None, breakdown={"quote_required": True})


def parse_service_type(service_type: str | ServiceType) -> ServiceType:
    try:
        return ServiceType(service_type)
    except ValueError:
        allowed = ", ".join(s.value for s in ServiceType)
        raise field_error("service_type", f"Unknown service type '{service_type}'. Allowed: {allowed}")
