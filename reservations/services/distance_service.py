"""Distance and base price lookup between two places.

Known city pairs are answered from an approximate road-distance table.
Other routes go to OpenRouteService when an API key is configured.
"""

import logging
from decimal import Decimal
from typing import Protocol

import httpx

from reservations.core.exceptions import ProviderUnavailable
from reservations.domain.pricing import DistanceQuote, VehicleType, money

logger = logging.getLogger(__name__)

VEHICLE_KM_RATES: dict[VehicleType, Decimal] = {
    VehicleType.VITO: Decimal("7"),
    VehicleType.V_CLASS: Decimal("9"),
    VehicleType.SPRINTER: Decimal("9"),
}
DEFAULT_KM_RATE = Decimal("1.5")
RETURN_TRIP_SUPPLEMENT = Decimal("0.40")
LONG_DISTANCE_KM = 220
LONG_DISTANCE_MAX_PASSENGERS = 5
LONG_DISTANCE_MULTIPLIER = Decimal("0.65")

CITY_ALIASES: dict[str, str] = {
    "marrakech": "marrakech",
    "marrakesh": "marrakech",
    "casablanca": "casablanca",
    "casa": "casablanca",
    "rabat": "rabat",
    "salé": "rabat",
    "fez": "fez",
    "fes": "fez",
    "fès": "fez",
    "tanger": "tanger",
    "tánger": "tanger",
    "tangier": "tanger",
    "tetouan": "tetouan",
    "tétouan": "tetouan",
    "tetuan": "tetouan",
    "chefchaouen": "chefchaouen",
    "chaouen": "chefchaouen",
    "agadir": "agadir",
    "taghazout": "taghazout",
    "inezgane": "inezgane",
    "essaouira": "essaouira",
    "mogador": "essaouira",
    "ouarzazate": "ouarzazate",
    "ouarzazat": "ouarzazate",
    "merzouga": "merzouga",
    "safi": "safi",
    "el jadida": "el jadida",
    "meknes": "meknes",
    "meknès": "meknes",
    "kenitra": "kenitra",
    "asilah": "asilah",
    "asila": "asilah",
    "oujda": "oujda",
    "nador": "nador",
}

# Longest alias first so "casablanca" wins over "casa"
_ALIASES_BY_LENGTH = sorted(CITY_ALIASES.items(), key=lambda item: len(item[0]), reverse=True)

_DISTANCE_TABLE: dict[str, dict[str, int]] = {
    "marrakech": {
        "casablanca": 240, "rabat": 330, "fez": 530, "tanger": 560, "agadir": 235,
        "taghazout": 255, "inezgane": 243, "ouarzazate": 200, "chefchaouen": 520,
        "tetouan": 580, "asilah": 600, "merzouga": 560, "essaouira": 180, "safi": 150,
        "el jadida": 200, "nador": 900, "oujda": 850,
    },
    "casablanca": {
        "rabat": 90, "fez": 290, "tanger": 320, "agadir": 475, "taghazout": 495, "oujda": 640,
    },
    "rabat": {
        "fez": 200, "tanger": 230, "agadir": 565, "chefchaouen": 260, "tetouan": 280,
        "asilah": 300, "kenitra": 40, "meknes": 140, "nador": 600, "oujda": 550,
    },
    "fez": {"tanger": 300},
    "tanger": {
        "chefchaouen": 110, "tetouan": 60, "asilah": 45, "agadir": 640, "essaouira": 760,
        "safi": 730, "el jadida": 420, "ouarzazate": 780, "merzouga": 920,
    },
    "agadir": {
        "essaouira": 175, "safi": 325, "el jadida": 375, "meknes": 705, "merzouga": 840,
        "ouarzazate": 280, "taghazout": 20, "inezgane": 8, "fez": 765, "chefchaouen": 710,
        "tetouan": 640, "asilah": 680,
    },
}

ROAD_DISTANCES_KM: dict[frozenset[str], int] = {
    frozenset({origin, destination}): km
    for origin, routes in _DISTANCE_TABLE.items()
    for destination, km in routes.items()
}


class DistanceLookup(Protocol):
    """Anything that can price the road between two places."""

    async def lookup(
        self,
        origin: str,
        destination: str,
        vehicle_type: str | None,
        passengers: int | None,
    ) -> DistanceQuote: ...


def normalize_city(location: str) -> str | None:
    text = location.lower().strip()
    for alias, city in _ALIASES_BY_LENGTH:
        if alias in text:
            return city
    return None


def approximate_distance(origin: str, destination: str) -> int | None:
    """Road distance in km between two known cities, None when unknown."""
    origin_city = normalize_city(origin)
    destination_city = normalize_city(destination)
    if origin_city is None or destination_city is None or origin_city == destination_city:
        return None
    return ROAD_DISTANCES_KM.get(frozenset({origin_city, destination_city}))


def vehicle_price(distance_km: Decimal, vehicle_type: str | None, passengers: int | None) -> Decimal:
    """Base price for a one-way transfer.

    The per-km rate includes the mandatory return-trip supplement. Long trips
    with small groups get the long-distance discount.
    """
    if distance_km <= 0:
        return money(0)
    try:
        rate = VEHICLE_KM_RATES[VehicleType(vehicle_type)]
    except (KeyError, ValueError):
        return money(distance_km * DEFAULT_KM_RATE)

    price = distance_km * rate * (1 + RETURN_TRIP_SUPPLEMENT)
    if distance_km > LONG_DISTANCE_KM and passengers and passengers < LONG_DISTANCE_MAX_PASSENGERS:
        price = price * LONG_DISTANCE_MULTIPLIER
    return money(price)


class DistanceService:
    """Default distance lookup: approximate table, then OpenRouteService."""

    def __init__(
        self,
        api_key: str | None = None,
        api_url: str = "https://api.openrouteservice.org",
        timeout: float = 10.0,
    ):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    async def lookup(
        self,
        origin: str,
        destination: str,
        vehicle_type: str | None,
        passengers: int | None,
    ) -> DistanceQuote:
        """Look up distance and base price.

        Raises:
            ProviderUnavailable: Route unknown and no routing API reachable
        """
        km = approximate_distance(origin, destination)
        if km is not None:
            distance = Decimal(km)
            return DistanceQuote(distance, vehicle_price(distance, vehicle_type, passengers), "approximate")

        if not self.api_key:
            logger.warning(f"No approximate distance for {origin!r} -> {destination!r} and no routing API key")
            raise ProviderUnavailable("distance", f"no route known between '{origin}' and '{destination}'")

        distance = await self._route_distance(origin, destination)
        return DistanceQuote(distance, vehicle_price(distance, vehicle_type, passengers), "api")

    async def _route_distance(self, origin: str, destination: str) -> Decimal:
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                start = await self._geocode(client, origin)
                end = await self._geocode(client, destination)
                response = await client.get(
                    f"{self.api_url}/v2/directions/driving-car",
                    params={
                        "api_key": self.api_key,
                        "start": f"{start[0]},{start[1]}",
                        "end": f"{end[0]},{end[1]}",
                    },
                )
                response.raise_for_status()
        except httpx.TimeoutException:
            raise ProviderUnavailable("distance", "routing request timed out")
        except httpx.HTTPError as e:
            raise ProviderUnavailable("distance", str(e))

        routes = response.json().get("routes") or []
        if not routes or "summary" not in routes[0]:
            raise ProviderUnavailable("distance", "no route returned")
        meters = Decimal(str(routes[0]["summary"]["distance"]))
        return (meters / 1000).quantize(Decimal("0.1"))

    async def _geocode(self, client: httpx.AsyncClient, text: str) -> tuple[float, float]:
        response = await client.get(
            f"{self.api_url}/geocoding/search",
            params={"api_key": self.api_key, "text": text, "boundary.country": "MA"},
        )
        response.raise_for_status()
        features = response.json().get("features") or []
        if not features:
            raise ProviderUnavailable("distance", f"could not geocode '{text}'")
        lng, lat = features[0]["geometry"]["coordinates"][:2]
        return lng, lat
