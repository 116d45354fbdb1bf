#!/usr/bin/env python3
"""
Booking, payment and loyalty flow against a running API.

This script only orchestrates API calls.
All pricing, payment and loyalty rules live in the backend.

Usage:
    python scripts/flow_book_and_pay.py --user-id <UUID>
    python scripts/flow_book_and_pay.py --service-type intercity --origin Marrakech --destination Essaouira
    python scripts/flow_book_and_pay.py --service-type airport --airport-code RAK --destination "Hotel Atlas, Agadir"

Flow:
    1. Quote the service
    2. Create booking
    3. Create payment
    4. Report payment as sent (mark-paid)
    5. Confirm payment (admin)
    6. Show loyalty summary
    7. Complete booking
"""

import argparse
import json
import sys

import httpx

BASE_URL = "http://localhost:8000"


def api_request(method: str, endpoint: str, data: dict | None = None) -> dict:
    """Make an API request."""
    url = f"{BASE_URL}{endpoint}"
    response = httpx.request(method, url, json=data, timeout=10.0, follow_redirects=True)
    return {"status": response.status_code, "data": response.json() if response.text else {}}


def print_step(step: int, title: str):
    """Print step header."""
    print(f"\n{'='*60}")
    print(f"STEP {step}: {title}")
    print("="*60)


def print_result(result: dict, fields: list[str] | None = None):
    """Print result, optionally filtering fields."""
    if result["status"] >= 400:
        print(f"ERROR ({result['status']}): {json.dumps(result['data'], indent=2)}")
        return False

    print(f"Status: {result['status']}")
    data = result["data"]
    if fields and isinstance(data, dict):
        data = {k: data.get(k) for k in fields if k in data}
    print(json.dumps(data, indent=2))
    return True


def main():
    parser = argparse.ArgumentParser(description="Booking, payment and loyalty flow")
    parser.add_argument("--user-id", help="Loyalty member UUID (guest booking if omitted)")
    parser.add_argument("--service-type", default="hourly", choices=["airport", "intercity", "hourly", "custom"])
    parser.add_argument("--vehicle-type", default="vito", choices=["vito", "v-class", "sprinter"])
    parser.add_argument("--passengers", type=int, default=2)
    parser.add_argument("--hours", type=int, default=4)
    parser.add_argument("--origin")
    parser.add_argument("--destination")
    parser.add_argument("--airport-code")
    parser.add_argument("--airport-direction", default="from", choices=["from", "to"])
    parser.add_argument("--payment-method", default="bank_transfer",
                        choices=["cash", "bank_transfer", "binance", "redotpay", "moneygram"])
    parser.add_argument("--skip-complete", action="store_true", help="Skip the complete step")
    args = parser.parse_args()

    service = {
        "service_type": args.service_type,
        "vehicle_type": args.vehicle_type,
        "passengers": args.passengers,
        "hours": args.hours if args.service_type == "hourly" else None,
        "origin": args.origin,
        "destination": args.destination,
        "airport_code": args.airport_code,
        "airport_direction": args.airport_direction if args.service_type == "airport" else None,
    }

    # Step 1: Quote
    print_step(1, "Quote the service")
    quote_result = api_request("POST", "/api/v1/pricing/quote", service)
    if not print_result(quote_result):
        sys.exit(1)

    if quote_result["data"]["quote_required"]:
        print("\nCustom service: price is quoted by hand, nothing to pay yet")
        sys.exit(0)

    # Step 2: Create booking
    print_step(2, "Create booking")
    booking_result = api_request("POST", "/api/v1/bookings", {
        **service,
        "user_id": args.user_id,
        "customer_name": "Flow Test",
        "customer_email": "flow@example.com",
    })
    if not print_result(booking_result, ["id", "reservation_number", "total", "currency", "status"]):
        sys.exit(1)

    booking_id = booking_result["data"]["id"]
    reservation_number = booking_result["data"]["reservation_number"]
    total = booking_result["data"]["total"]
    print(f"\nBooking created: {reservation_number}")

    # Step 3: Create payment
    print_step(3, "Create payment")
    payment_result = api_request("POST", "/api/v1/payments", {
        "booking_id": booking_id,
        "payment_method": args.payment_method,
        "amount": total,
    })
    if not print_result(payment_result):
        sys.exit(1)

    payment_id = payment_result["data"]["payment"]["id"]
    print(f"\nPayment created: {payment_id}")

    # Step 4: Customer reports the payment
    print_step(4, "Report payment as sent")
    mark_paid_result = api_request("PUT", f"/api/v1/payments/{payment_id}/mark-paid", {
        "details": {"reference": reservation_number},
    })
    if not print_result(mark_paid_result, ["id", "status", "details"]):
        sys.exit(1)

    # Step 5: Admin confirms
    print_step(5, "Confirm payment")
    confirm_result = api_request("PUT", f"/api/v1/payments/{payment_id}/confirm", {
        "notes": "Confirmed by flow script",
    })
    if not print_result(confirm_result, ["id", "status", "completed_at"]):
        sys.exit(1)
    print("\nPayment COMPLETED")

    # Step 6: Loyalty
    if args.user_id:
        print_step(6, "Loyalty summary")
        summary_result = api_request("GET", f"/api/v1/loyalty/users/{args.user_id}")
        if not print_result(summary_result):
            sys.exit(1)

    if args.skip_complete:
        print("\n" + "="*60)
        print("FLOW COMPLETE (skipped complete)")
        print("="*60)
        return

    # Step 7: Complete booking
    print_step(7, "Complete booking")
    complete_result = api_request("POST", f"/api/v1/bookings/{booking_id}/complete")
    if not print_result(complete_result, ["id", "reservation_number", "status", "invoice_number", "completed_at"]):
        sys.exit(1)

    # Final summary
    print("\n" + "="*60)
    print("FULL FLOW COMPLETE")
    print("="*60)
    print(f"Booking:   {reservation_number}")
    print(f"Invoice:   {complete_result['data']['invoice_number']}")
    print(f"Total:     {total} {booking_result['data']['currency']}")


if __name__ == "__main__":
    main()
