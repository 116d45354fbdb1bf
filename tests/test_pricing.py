"""Tests for the pricing rules, the pricing engine and the distance table."""

from decimal import Decimal

import pytest

from reservations.core.exceptions import ProviderUnavailable, ValidationError
from reservations.domain.pricing import hourly_price, is_airport_location
from reservations.services.distance_service import DistanceService, approximate_distance, vehicle_price
from reservations.services.pricing_service import PricingEngine


# ==================== HOURLY ====================


@pytest.mark.parametrize(
    "vehicle_type, hours, expected",
    [
        ("vito", 2, "487.50"),
        ("vito", 4, "900.00"),
        ("vito", 6, "1125.00"),
        ("v-class", 1, "325.00"),
        ("sprinter", 3, "990.00"),
        ("VITO", 5, "937.50"),
    ],
)
def test_hourly_price(vehicle_type, hours, expected):
    quote = hourly_price(vehicle_type, hours)
    assert quote.price == Decimal(expected)


def test_hourly_breakdown_shows_surcharge():
    quote = hourly_price("vito", 2)
    assert quote.breakdown["base_price"] == Decimal("375.00")
    assert quote.breakdown["surcharge_multiplier"] == Decimal("1.30")


@pytest.mark.parametrize("hours", [0, -2, 2.5, None])
def test_hourly_rejects_invalid_hours(hours):
    with pytest.raises(ValidationError) as exc:
        hourly_price("vito", hours)
    assert exc.value.errors[0]["field"] == "hours"


def test_hourly_rejects_unknown_vehicle():
    with pytest.raises(ValidationError) as exc:
        hourly_price("bus", 2)
    assert exc.value.errors[0]["field"] == "vehicle_type"


# ==================== AIRPORT DETECTION ====================


@pytest.mark.parametrize(
    "location, expected",
    [
        ("Aeropuerto de Marrakech", True),
        ("Casablanca airport terminal 1", True),
        ("RAK Marrakech", True),
        ("Rakia street, Casablanca", False),
        ("Hotel Atlas, Fez", False),
    ],
)
def test_is_airport_location(location, expected):
    assert is_airport_location(location) is expected


# ==================== ENGINE ====================


@pytest.mark.asyncio
async def test_airport_transfer_in_airport_city_is_flat(fake_lookup):
    lookup = fake_lookup()
    engine = PricingEngine(lookup)

    for vehicle, passengers in (("vito", 1), ("sprinter", 12)):
        quote = await engine.quote(
            "airport",
            vehicle_type=vehicle,
            passengers=passengers,
            airport_code="rak",
            destination="Riad Dar Anika, Marrakech medina",
        )
        assert quote.price == Decimal("435.00")

    assert lookup.calls == []


@pytest.mark.asyncio
async def test_airport_transfer_to_other_city_adds_supplement(fake_lookup):
    lookup = fake_lookup(base_price="1000")
    engine = PricingEngine(lookup)

    quote = await engine.quote(
        "airport",
        vehicle_type="vito",
        passengers=2,
        airport_code="RAK",
        destination="Casablanca",
        airport_direction="from",
    )

    assert quote.price == Decimal("1054.00")
    assert lookup.calls == [("Marrakech", "Casablanca")]


@pytest.mark.asyncio
async def test_airport_transfer_direction_to_reverses_route(fake_lookup):
    lookup = fake_lookup(base_price="1000")
    engine = PricingEngine(lookup)

    await engine.quote(
        "airport",
        vehicle_type="vito",
        passengers=2,
        airport_code="RAK",
        destination="Casablanca",
        airport_direction="to",
    )

    assert lookup.calls == [("Casablanca", "Marrakech")]


@pytest.mark.asyncio
async def test_intercity_price_is_base_price(fake_lookup):
    engine = PricingEngine(fake_lookup(base_price="800"))
    quote = await engine.quote(
        "intercity", vehicle_type="vito", passengers=3, origin="Marrakech", destination="Casablanca"
    )
    assert quote.price == Decimal("800.00")
    assert quote.breakdown["airport_supplement"] == Decimal("0")


@pytest.mark.asyncio
async def test_intercity_touching_airport_adds_supplement(fake_lookup):
    engine = PricingEngine(fake_lookup(base_price="800"))
    quote = await engine.quote(
        "intercity",
        vehicle_type="vito",
        passengers=3,
        origin="Aeropuerto de Marrakech",
        destination="Casablanca",
    )
    assert quote.price == Decimal("854.00")


@pytest.mark.asyncio
async def test_custom_requires_quote(fake_lookup):
    engine = PricingEngine(fake_lookup())
    quote = await engine.quote("custom")
    assert quote.price is None
    assert quote.quote_required is True


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "params, field",
    [
        ({"service_type": "intercity", "vehicle_type": "vito", "passengers": 2, "origin": "Marrakech"}, "destination"),
        ({"service_type": "intercity", "vehicle_type": "vito", "passengers": 0, "origin": "A", "destination": "B"}, "passengers"),
        ({"service_type": "airport", "vehicle_type": "vito", "passengers": 2, "airport_code": "XXX", "destination": "Rabat"}, "airport_code"),
        ({"service_type": "hourly", "vehicle_type": "vito"}, "hours"),
        ({"service_type": "boat"}, "service_type"),
    ],
)
async def test_quote_validation_errors(params, field, fake_lookup):
    engine = PricingEngine(fake_lookup())
    params = dict(params)
    service_type = params.pop("service_type")
    with pytest.raises(ValidationError) as exc:
        await engine.quote(service_type, **params)
    assert exc.value.errors[0]["field"] == field


@pytest.mark.asyncio
async def test_slow_distance_lookup_is_provider_unavailable(fake_lookup):
    engine = PricingEngine(fake_lookup(delay=1), lookup_timeout=0.05)
    with pytest.raises(ProviderUnavailable) as exc:
        await engine.quote(
            "intercity", vehicle_type="vito", passengers=2, origin="Rabat", destination="Fez"
        )
    assert exc.value.status_code == 503
    assert exc.value.headers["Retry-After"] == "30"


# ==================== DISTANCE TABLE ====================


def test_approximate_distance_is_symmetric():
    assert approximate_distance("Marrakech", "Casablanca") == 240
    assert approximate_distance("Hotel in Casablanca", "Marrakesh") == 240
    assert approximate_distance("Marrakech", "Marrakech") is None


def test_vehicle_price_long_distance_discount():
    # 240 km x 7 x 1.4, then the small-group long-distance multiplier
    assert vehicle_price(Decimal("240"), "vito", 2) == Decimal("1528.80")
    assert vehicle_price(Decimal("240"), "vito", 6) == Decimal("2352.00")
    assert vehicle_price(Decimal("100"), None, 2) == Decimal("150.00")


@pytest.mark.asyncio
async def test_distance_service_uses_table():
    quote = await DistanceService().lookup("Marrakech", "Agadir", "v-class", 7)
    assert quote.distance_km == Decimal("235")
    assert quote.base_price == Decimal("2961.00")


@pytest.mark.asyncio
async def test_distance_service_unknown_route_without_api_key():
    with pytest.raises(ProviderUnavailable):
        await DistanceService().lookup("Ifrane", "Zagora", "vito", 2)
