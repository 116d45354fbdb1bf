"""Core utilities: exceptions, idempotency, middleware."""

from reservations.core.exceptions import (
    AppException,
    DuplicatePayment,
    InsufficientPoints,
    InvalidPaymentMethod,
    InvalidStateTransition,
    MalformedWebhook,
    NotFoundError,
    PaymentError,
    PaymentVerificationFailed,
    ProviderUnavailable,
    RedemptionLimitReached,
    RewardExpired,
    ValidationError,
)

__all__ = [
    "AppException",
    "DuplicatePayment",
    "InsufficientPoints",
    "InvalidPaymentMethod",
    "InvalidStateTransition",
    "MalformedWebhook",
    "NotFoundError",
    "PaymentError",
    "PaymentVerificationFailed",
    "ProviderUnavailable",
    "RedemptionLimitReached",
    "RewardExpired",
    "ValidationError",
]
