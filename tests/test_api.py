"""HTTP API tests."""

from decimal import Decimal
from uuid import uuid4

import pytest


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


# ==================== PRICING ====================


@pytest.mark.asyncio
async def test_quote_hourly(client):
    response = await client.post(
        "/api/v1/pricing/quote", json={"service_type": "hourly", "vehicle_type": "vito", "hours": 2}
    )

    assert response.status_code == 200
    data = response.json()
    assert Decimal(data["price"]) == Decimal("487.50")
    assert data["currency"] == "MAD"
    assert data["quote_required"] is False


@pytest.mark.asyncio
async def test_quote_invalid_hours(client):
    response = await client.post(
        "/api/v1/pricing/quote", json={"service_type": "hourly", "vehicle_type": "vito", "hours": 0}
    )

    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "hours"


@pytest.mark.asyncio
async def test_quote_rejects_unknown_service(client):
    response = await client.post("/api/v1/pricing/quote", json={"service_type": "helicopter"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_list_airports(client):
    response = await client.get("/api/v1/pricing/airports")

    assert response.status_code == 200
    codes = {airport["code"] for airport in response.json()}
    assert {"RAK", "CMN"} <= codes


# ==================== BOOKINGS ====================


@pytest.mark.asyncio
async def test_create_booking(client, distance_lookup):
    response = await client.post(
        "/api/v1/bookings",
        json={
            "customer_name": "  Amina Benali ",
            "customer_email": "Amina@Example.com",
            "service_type": "intercity",
            "vehicle_type": "vito",
            "passengers": 3,
            "origin": "Marrakech",
            "destination": "Essaouira",
            "service_date": "2026-11-02",
            "service_time": "09:30",
        },
    )

    assert response.status_code == 201
    data = response.json()
    assert data["reservation_number"].startswith("RES-")
    assert data["customer_name"] == "Amina Benali"
    assert data["customer_email"] == "amina@example.com"
    assert data["status"] == "pending"
    assert Decimal(data["total"]) == Decimal("800")
    assert distance_lookup.calls == [("Marrakech", "Essaouira")]

    fetched = await client.get(f"/api/v1/bookings/{data['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["reservation_number"] == data["reservation_number"]


@pytest.mark.asyncio
async def test_create_custom_booking_has_no_price(client):
    response = await client.post(
        "/api/v1/bookings",
        json={
            "customer_name": "Karim",
            "customer_email": "karim@example.com",
            "service_type": "custom",
            "notes": "Desert tour for a wedding party",
        },
    )

    assert response.status_code == 201
    assert response.json()["total"] is None


@pytest.mark.asyncio
async def test_create_booking_requires_email(client):
    response = await client.post(
        "/api/v1/bookings",
        json={"customer_name": "Karim", "service_type": "hourly", "vehicle_type": "vito", "hours": 2},
    )
    assert response.status_code == 422
    assert response.json()["detail"] == "Validation failed"
    assert response.json()["errors"][0]["field"] == "customer_email"


@pytest.mark.asyncio
async def test_get_unknown_booking(client):
    response = await client.get(f"/api/v1/bookings/{uuid4()}")
    assert response.status_code == 404


# ==================== PAYMENT FLOW ====================


@pytest.mark.asyncio
async def test_confirmed_payment_flow(client, make_user, make_booking):
    user = await make_user()
    booking = await make_booking(user_id=user.id, total="12345")

    created = await client.post(
        "/api/v1/payments",
        json={"booking_id": str(booking.id), "payment_method": "bank_transfer", "amount": "12345"},
    )
    assert created.status_code == 201
    payment = created.json()["payment"]
    instructions = created.json()["instructions"]
    assert payment["status"] == "pending"
    assert payment["currency"] == "MAD"
    assert instructions["reference"] == f"RES-{booking.id}"

    confirmed = await client.put(
        f"/api/v1/payments/{payment['id']}/confirm", json={"notes": "Seen on statement"}
    )
    assert confirmed.status_code == 200
    assert confirmed.json()["status"] == "completed"
    assert confirmed.json()["notes"] == "Seen on statement"

    booking_data = (await client.get(f"/api/v1/bookings/{booking.id}")).json()
    assert booking_data["status"] == "confirmed"
    assert booking_data["payment_id"] == payment["id"]
    assert booking_data["invoice_number"].startswith("INV-")

    summary = (await client.get(f"/api/v1/loyalty/users/{user.id}")).json()
    assert summary["points"] == 1234
    assert summary["total_bookings"] == 1
    assert summary["membership_level"] == "bronze"
    assert summary["next_level"]["tier"] == "silver"
    assert summary["next_level"]["points_needed"] == 2266
    assert Decimal(summary["next_level"]["amount_needed"]) == Decimal("22660")

    # Confirming again changes nothing
    again = await client.put(f"/api/v1/payments/{payment['id']}/confirm")
    assert again.status_code == 200
    assert (await client.get(f"/api/v1/loyalty/users/{user.id}")).json()["points"] == 1234

    payments = (await client.get(f"/api/v1/payments/booking/{booking.id}")).json()
    assert [p["id"] for p in payments] == [payment["id"]]


@pytest.mark.asyncio
async def test_cancel_reverses_points(client, make_user, make_booking):
    user = await make_user()
    booking = await make_booking(user_id=user.id)
    created = await client.post(
        "/api/v1/payments",
        json={"booking_id": str(booking.id), "payment_method": "cash", "amount": "1200"},
    )
    await client.put(f"/api/v1/payments/{created.json()['payment']['id']}/confirm")
    assert (await client.get(f"/api/v1/loyalty/users/{user.id}")).json()["points"] == 120

    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel", json={"reason": "Trip postponed"})
    assert response.status_code == 200
    assert response.json()["status"] == "cancelled"
    assert response.json()["cancellation_reason"] == "Trip postponed"

    assert (await client.get(f"/api/v1/loyalty/users/{user.id}")).json()["points"] == 0

    history = (await client.get(f"/api/v1/loyalty/users/{user.id}/history")).json()
    assert history["total"] == 2
    assert [e["reason"] for e in history["entries"]] == ["booking_cancelled", "booking_confirmed"]

    response = await client.post(f"/api/v1/bookings/{booking.id}/complete")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_complete_booking(client, make_booking):
    booking = await make_booking(status="confirmed")

    response = await client.post(f"/api/v1/bookings/{booking.id}/complete")
    assert response.status_code == 200
    assert response.json()["status"] == "completed"
    assert response.json()["completed_at"] is not None

    response = await client.post(f"/api/v1/bookings/{booking.id}/cancel")
    assert response.status_code == 409


@pytest.mark.asyncio
async def test_mark_paid_then_fail(client, make_booking):
    booking = await make_booking()
    created = await client.post(
        "/api/v1/payments",
        json={"booking_id": str(booking.id), "payment_method": "binance", "amount": "1200", "currency": "USDT"},
    )
    payment_id = created.json()["payment"]["id"]
    assert created.json()["instructions"]["account_id"] == "89150838"

    response = await client.put(
        f"/api/v1/payments/{payment_id}/mark-paid",
        json={"details": {"transaction_hash": "0x9f8e7d6c5b4a"}},
    )
    assert response.status_code == 200
    assert response.json()["status"] == "pending_review"
    assert response.json()["details"]["transaction_hash"] == "0x9f8e7d6c5b4a"
    assert response.json()["details"]["account_id"] == "89150838"

    response = await client.put(f"/api/v1/payments/{payment_id}/fail", json={"reason": "Hash not found"})
    assert response.status_code == 200
    assert response.json()["status"] == "failed"
    assert response.json()["failure_reason"] == "Hash not found"

    response = await client.put(f"/api/v1/payments/{payment_id}/confirm")
    assert response.status_code == 409

    response = await client.put(f"/api/v1/payments/{payment_id}/fail", json={"reason": ""})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_create_payment_validation(client, make_booking):
    booking = await make_booking()

    response = await client.post(
        "/api/v1/payments",
        json={"booking_id": str(booking.id), "payment_method": "paypal", "amount": "100"},
    )
    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "payment_method"

    response = await client.post(
        "/api/v1/payments",
        json={"booking_id": str(uuid4()), "payment_method": "cash", "amount": "100"},
    )
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_payment_instructions(client, settings):
    response = await client.get("/api/v1/payments/methods/bank_transfer/instructions")
    assert response.status_code == 200
    assert response.json()["account_number"] == settings.bank_account_number
    assert "reference_format" not in response.json()

    response = await client.get("/api/v1/payments/methods/paypal/instructions")
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_payment_listings(client, make_user, make_booking):
    user = await make_user()
    booking = await make_booking(user_id=user.id)
    guest_booking = await make_booking()

    reported = await client.post(
        "/api/v1/payments",
        json={"booking_id": str(booking.id), "payment_method": "cash", "amount": "1200"},
    )
    reported_id = reported.json()["payment"]["id"]
    await client.put(f"/api/v1/payments/{reported_id}/mark-paid")
    transfer = await client.post(
        "/api/v1/payments",
        json={"booking_id": str(guest_booking.id), "payment_method": "bank_transfer", "amount": "500"},
    )
    transfer_id = transfer.json()["payment"]["id"]

    response = await client.get("/api/v1/payments", params={"status": "pending_review"})
    assert response.status_code == 200
    data = response.json()
    assert [p["id"] for p in data["payments"]] == [reported_id]
    assert data["total"] == 1
    assert data["stats"]["total"] == 2
    assert data["stats"]["by_status"]["pending_review"] == 1
    assert data["stats"]["by_status"]["pending"] == 1
    assert Decimal(data["stats"]["completed_amount"]) == Decimal("0")

    response = await client.get("/api/v1/payments", params={"method": "bank_transfer", "page_size": 1})
    assert [p["id"] for p in response.json()["payments"]] == [transfer_id]
    assert response.json()["page_size"] == 1

    response = await client.get("/api/v1/payments", params={"status": "refunded"})
    assert response.status_code == 422
    assert response.json()["errors"][0]["field"] == "status"

    mine = await client.get(f"/api/v1/payments/user/{user.id}")
    assert mine.status_code == 200
    assert [p["id"] for p in mine.json()["payments"]] == [reported_id]
    assert mine.json()["total"] == 1

    response = await client.get(f"/api/v1/payments/user/{uuid4()}")
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_get_unknown_payment(client):
    response = await client.get(f"/api/v1/payments/{uuid4()}")
    assert response.status_code == 404


# ==================== LOYALTY ====================


@pytest.mark.asyncio
async def test_reward_redemption_over_http(client, make_user):
    user = await make_user(points=600)

    seeded = await client.post("/api/v1/loyalty/rewards/seed")
    assert seeded.status_code == 200
    assert len(seeded.json()) == 7
    reward = next(r for r in seeded.json() if r["points_required"] == 500)

    available = (await client.get("/api/v1/loyalty/rewards")).json()
    assert [r["points_required"] for r in available] == [200, 500, 1000, 2000, 2500, 3000, 5000]

    redeemed = await client.post(
        f"/api/v1/loyalty/rewards/{reward['id']}/redeem", json={"user_id": str(user.id)}
    )
    assert redeemed.status_code == 201
    user_reward = redeemed.json()
    assert user_reward["points_spent"] == 500

    again = await client.post(f"/api/v1/loyalty/rewards/{reward['id']}/redeem", json={"user_id": str(user.id)})
    assert again.status_code == 400
    assert "500 required, 100 available" in again.json()["detail"]

    used = await client.post(f"/api/v1/loyalty/users/{user.id}/rewards/{user_reward['id']}/use")
    assert used.status_code == 200
    assert used.json()["used"] is True

    used_again = await client.post(f"/api/v1/loyalty/users/{user.id}/rewards/{user_reward['id']}/use")
    assert used_again.status_code == 422

    unused = await client.get(f"/api/v1/loyalty/users/{user.id}/rewards", params={"include_used": "false"})
    assert unused.json() == []


@pytest.mark.asyncio
async def test_history_pagination(client, make_user, make_reward):
    user = await make_user(points=1000)
    reward = await make_reward(points_required=100)
    for _ in range(3):
        response = await client.post(
            f"/api/v1/loyalty/rewards/{reward.id}/redeem", json={"user_id": str(user.id)}
        )
        assert response.status_code == 201

    page = (await client.get(f"/api/v1/loyalty/users/{user.id}/history", params={"page": 2, "page_size": 2})).json()

    assert page["total"] == 3
    assert page["page"] == 2
    assert [e["points_after"] for e in page["entries"]] == [900]

    response = await client.get(f"/api/v1/loyalty/users/{user.id}/history", params={"page": 0})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_unknown_user_summary(client):
    response = await client.get(f"/api/v1/loyalty/users/{uuid4()}")
    assert response.status_code == 404
