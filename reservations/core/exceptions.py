"""Custom application exceptions."""

from typing import Any

from fastapi import HTTPException, status


class AppException(HTTPException):
    """Base application exception."""

    def __init__(
        self,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail: str = "An unexpected error occurred",
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)


class ValidationError(AppException):
    """Validation error exception."""

    def __init__(self, detail: str = "Validation failed", errors: list[dict[str, Any]] | None = None) -> None:
        self.errors = errors
        super().__init__(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail=detail)


def field_error(field: str, message: str) -> ValidationError:
    """Build a ValidationError carrying a single field-level error."""
    return ValidationError(message, errors=[{"field": field, "message": message}])


class InvalidPaymentMethod(ValidationError):
    """Payment method outside the supported set."""

    def __init__(self, method: str, allowed: list[str] | tuple[str, ...]) -> None:
        message = f"Invalid payment method '{method}'. Allowed: {', '.join(allowed)}"
        super().__init__(message, errors=[{"field": "payment_method", "message": message}])


class MalformedWebhook(AppException):
    """Webhook payload could not be parsed or authenticated."""

    def __init__(self, detail: str = "Malformed webhook payload") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class NotFoundError(AppException):
    """Resource not found exception."""

    def __init__(self, resource: str = "Resource", identifier: str | None = None) -> None:
        detail = f"{resource} not found"
        if identifier:
            detail = f"{resource} with ID '{identifier}' not found"
        super().__init__(status_code=status.HTTP_404_NOT_FOUND, detail=detail)


class DuplicatePayment(AppException):
    """Booking already has a completed payment."""

    def __init__(self, detail: str = "This booking already has a completed payment") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class InvalidStateTransition(AppException):
    """Transition not permitted from the current status."""

    def __init__(self, entity: str, current: str, target: str) -> None:
        self.current = current
        self.target = target
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            detail=f"Invalid {entity} transition: {current} -> {target}",
        )


class InsufficientPoints(AppException):
    """User does not hold enough points for the redemption."""

    def __init__(self, required: int, available: int) -> None:
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"Insufficient points: {required} required, {available} available",
        )


class RewardExpired(AppException):
    """Reward validity window has passed."""

    def __init__(self, detail: str = "This reward has expired") -> None:
        super().__init__(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)


class RedemptionLimitReached(AppException):
    """Reward has no redemptions left."""

    def __init__(self, detail: str = "This reward has reached its redemption limit") -> None:
        super().__init__(status_code=status.HTTP_409_CONFLICT, detail=detail)


class PaymentError(AppException):
    """Payment processing error."""

    def __init__(self, detail: str = "Payment processing failed") -> None:
        super().__init__(status_code=status.HTTP_402_PAYMENT_REQUIRED, detail=detail)


class PaymentVerificationFailed(PaymentError):
    """Provider did not confirm the payment."""

    def __init__(self, detail: str = "Payment could not be verified with the provider") -> None:
        super().__init__(detail=detail)


class ExternalServiceError(AppException):
    """External service error."""

    def __init__(self, service: str, detail: str | None = None, headers: dict[str, str] | None = None) -> None:
        message = f"External service '{service}' is unavailable"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=message, headers=headers)


class ProviderUnavailable(ExternalServiceError):
    """Distance lookup or payment provider timed out or failed. Retryable."""

    retryable = True

    def __init__(self, service: str, detail: str | None = None, retry_after: int = 30) -> None:
        super().__init__(service, detail, headers={"Retry-After": str(retry_after)})
