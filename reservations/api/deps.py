"""API dependencies: database session and service wiring."""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from reservations.config import settings
from reservations.core.idempotency import IdempotencyStore, RedisIdempotencyStore, build_idempotency_store
from reservations.database import get_db
from reservations.services.booking_service import BookingLedger
from reservations.services.distance_service import DistanceLookup, DistanceService
from reservations.services.gateway_service import GatewayService, build_gateway_service
from reservations.services.loyalty_service import LoyaltyLedger
from reservations.services.notification_service import NotificationService
from reservations.services.payment_service import PaymentProcessor
from reservations.services.pricing_service import PricingEngine
from reservations.services.webhook_service import WebhookReconciler

__all__ = [
    "get_db",
    "get_gateway_service",
    "get_idempotency_store",
    "get_distance_lookup",
    "get_pricing_engine",
    "get_loyalty_ledger",
    "get_notification_service",
    "get_booking_ledger",
    "get_payment_processor",
    "get_webhook_reconciler",
]

DbSession = Annotated[AsyncSession, Depends(get_db)]


# ==================== PROCESS-WIDE SINGLETONS ====================


@lru_cache
def get_gateway_service() -> GatewayService:
    """Gateway registry built once from static provider configuration."""
    return build_gateway_service(settings)


@lru_cache
def get_idempotency_store() -> IdempotencyStore | RedisIdempotencyStore:
    return build_idempotency_store(
        settings.idempotency_backend,
        settings.redis_url,
        settings.webhook_dedup_ttl_seconds,
    )


@lru_cache
def get_distance_lookup() -> DistanceLookup:
    return DistanceService(
        api_key=settings.openrouteservice_api_key,
        api_url=settings.openrouteservice_url,
        timeout=settings.provider_timeout_seconds,
    )


# ==================== PER-REQUEST SERVICES ====================


def get_pricing_engine(
    distance_lookup: Annotated[DistanceLookup, Depends(get_distance_lookup)],
) -> PricingEngine:
    return PricingEngine(distance_lookup, lookup_timeout=settings.provider_timeout_seconds)


def get_loyalty_ledger(db: DbSession) -> LoyaltyLedger:
    return LoyaltyLedger(db)


def get_notification_service(db: DbSession) -> NotificationService:
    return NotificationService(db, retry_delay_seconds=settings.notification_retry_delay_seconds)


def get_booking_ledger(
    db: DbSession,
    pricing: Annotated[PricingEngine, Depends(get_pricing_engine)],
    loyalty: Annotated[LoyaltyLedger, Depends(get_loyalty_ledger)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> BookingLedger:
    return BookingLedger(
        db,
        pricing=pricing,
        loyalty=loyalty,
        notifications=notifications,
        default_currency=settings.default_currency,
    )


def get_payment_processor(
    db: DbSession,
    gateways: Annotated[GatewayService, Depends(get_gateway_service)],
    bookings: Annotated[BookingLedger, Depends(get_booking_ledger)],
    loyalty: Annotated[LoyaltyLedger, Depends(get_loyalty_ledger)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
) -> PaymentProcessor:
    return PaymentProcessor(
        db,
        gateways,
        bookings=bookings,
        loyalty=loyalty,
        notifications=notifications,
        verify_timeout=settings.provider_timeout_seconds,
        default_currency=settings.default_currency,
        allowed_currencies=settings.allowed_currencies,
    )


def get_webhook_reconciler(
    db: DbSession,
    processor: Annotated[PaymentProcessor, Depends(get_payment_processor)],
    idempotency: Annotated[IdempotencyStore | RedisIdempotencyStore, Depends(get_idempotency_store)],
) -> WebhookReconciler:
    return WebhookReconciler(db, processor, idempotency)
