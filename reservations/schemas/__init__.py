"""Pydantic schemas for API validation."""

from reservations.schemas.booking import (
    BookingCancelRequest,
    BookingCreate,
    BookingResponse,
)
from reservations.schemas.loyalty import (
    LoyaltySummaryResponse,
    NextLevelResponse,
    PointsHistoryListResponse,
    PointsHistoryResponse,
    RedeemRequest,
    RewardResponse,
    UserRewardResponse,
)
from reservations.schemas.payment import (
    AdminPaymentListResponse,
    PaymentConfirmRequest,
    PaymentCreate,
    PaymentCreatedResponse,
    PaymentFailRequest,
    PaymentListResponse,
    PaymentMarkPaidRequest,
    PaymentResponse,
    PaymentStatsResponse,
    PaymentVerifyRequest,
)
from reservations.schemas.pricing import AirportResponse, QuoteRequest, QuoteResponse
from reservations.schemas.webhook import (
    BinanceWebhookPayload,
    RedotpayWebhookPayload,
    WebhookAck,
)

__all__ = [
    # Pricing
    "QuoteRequest",
    "QuoteResponse",
    "AirportResponse",
    # Booking
    "BookingCreate",
    "BookingResponse",
    "BookingCancelRequest",
    # Payment
    "PaymentCreate",
    "PaymentResponse",
    "PaymentCreatedResponse",
    "PaymentConfirmRequest",
    "PaymentMarkPaidRequest",
    "PaymentVerifyRequest",
    "PaymentFailRequest",
    "PaymentListResponse",
    "PaymentStatsResponse",
    "AdminPaymentListResponse",
    # Loyalty
    "LoyaltySummaryResponse",
    "NextLevelResponse",
    "PointsHistoryResponse",
    "PointsHistoryListResponse",
    "RewardResponse",
    "RedeemRequest",
    "UserRewardResponse",
    # Webhooks
    "BinanceWebhookPayload",
    "RedotpayWebhookPayload",
    "WebhookAck",
]
