"""Base payment gateway interface.

One adapter per payment method, selected by the payment's method tag.
Business logic should NOT live in adapters - only static account info,
provider communication and webhook parsing.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from reservations.core.exceptions import MalformedWebhook
from reservations.domain.payment_details import PaymentDetails, PaymentMethod
from reservations.models.booking import Booking


class EventOutcome(str, Enum):
    """What a provider event means for the payment."""

    PAID = "paid"
    FAILED = "failed"
    IGNORED = "ignored"


@dataclass
class VerificationResult:
    """Result of a provider verification query."""

    verified: bool
    transaction_id: str | None = None
    error_message: str | None = None
    raw_response: dict | None = None


@dataclass
class ProviderEvent:
    """Normalised inbound webhook event."""

    method: PaymentMethod
    order_id: str
    status: str
    outcome: EventOutcome
    transaction_id: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


class PaymentGateway(ABC):
    """Abstract base class for payment method adapters."""

    supports_verification: bool = False

    @property
    @abstractmethod
    def method(self) -> PaymentMethod:
        """Return the payment method handled by this adapter."""
        pass

    def new_order_id(self) -> str | None:
        """Order id to share with the provider, None for offline methods."""
        return None

    @abstractmethod
    def build_details(
        self,
        booking: Booking,
        order_id: str | None,
        evidence: dict[str, Any] | None = None,
    ) -> PaymentDetails:
        """Build the detail record of a new payment.

        Args:
            booking: Booking being paid
            order_id: Provider order id from new_order_id()
            evidence: Customer supplied fields, filtered per method

        Returns:
            Method-specific detail record
        """
        pass

    @abstractmethod
    def instructions(self, details: PaymentDetails | None = None) -> dict[str, Any]:
        """Payment instructions shown to the customer."""
        pass

    async def verify_payment(
        self,
        details: PaymentDetails,
        reference: str | None,
    ) -> VerificationResult:
        """Ask the provider whether the payment went through.

        Raises:
            ProviderUnavailable: Provider timed out or is down
        """
        return VerificationResult(
            verified=False,
            error_message=f"{self.method.value} payments require manual confirmation",
        )

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> ProviderEvent:
        """Authenticate and parse a webhook delivery.

        Raises:
            MalformedWebhook: Payload invalid or signature mismatch
        """
        raise MalformedWebhook(f"{self.method.value} does not send webhooks")
