"""Main API router that includes all endpoint routers."""

from fastapi import APIRouter

from reservations.api.v1 import bookings, loyalty, payments, pricing, webhooks

api_router = APIRouter()

# Pricing
api_router.include_router(pricing.router, prefix="/pricing", tags=["Pricing"])

# Bookings
api_router.include_router(bookings.router, prefix="/bookings", tags=["Bookings"])

# Payments
api_router.include_router(payments.router, prefix="/payments", tags=["Payments"])

# Webhooks
api_router.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])

# Loyalty
api_router.include_router(loyalty.router, prefix="/loyalty", tags=["Loyalty"])
