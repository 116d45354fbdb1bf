"""Offline payment adapters: cash, bank transfer and MoneyGram.

These methods have no provider API; an admin confirms them by hand.
"""

from dataclasses import asdict, dataclass
from typing import Any

from reservations.domain.payment_details import (
    BankTransferDetails,
    CashDetails,
    MoneyGramDetails,
    PaymentDetails,
    PaymentMethod,
    with_evidence,
)
from reservations.gateways.base import PaymentGateway
from reservations.models.booking import Booking


@dataclass(frozen=True)
class BankAccountInfo:
    bank_name: str
    account_number: str
    account_holder: str
    swift_code: str
    iban: str
    address: str
    currency: str
    reference_format: str = "RES-{booking_id}"

    def reference_for(self, booking: Booking) -> str:
        return self.reference_format.format(
            booking_id=booking.id,
            reservation_number=booking.reservation_number,
        )


@dataclass(frozen=True)
class MoneyGramAccountInfo:
    reference_number: str
    receiver_name: str
    country: str
    city: str


class CashGateway(PaymentGateway):
    """Cash paid to the driver or at the office."""

    @property
    def method(self) -> PaymentMethod:
        return PaymentMethod.CASH

    def build_details(
        self,
        booking: Booking,
        order_id: str | None,
        evidence: dict[str, Any] | None = None,
    ) -> PaymentDetails:
        return with_evidence(CashDetails(), evidence)

    def instructions(self, details: PaymentDetails | None = None) -> dict[str, Any]:
        return {
            "method": self.method.value,
            "message": "Pay in cash to the driver or at our office. An agent will confirm receipt.",
        }


class BankTransferGateway(PaymentGateway):
    """Bank transfer confirmed by an admin once the funds are visible."""

    def __init__(self, account: BankAccountInfo):
        self.account = account

    @property
    def method(self) -> PaymentMethod:
        return PaymentMethod.BANK_TRANSFER

    def build_details(
        self,
        booking: Booking,
        order_id: str | None,
        evidence: dict[str, Any] | None = None,
    ) -> PaymentDetails:
        details = BankTransferDetails(suggested_reference=self.account.reference_for(booking))
        return with_evidence(details, evidence)

    def instructions(self, details: PaymentDetails | None = None) -> dict[str, Any]:
        info = asdict(self.account)
        info.pop("reference_format")
        info["method"] = self.method.value
        if isinstance(details, BankTransferDetails):
            info["reference"] = details.suggested_reference
        return info


class MoneyGramGateway(PaymentGateway):
    """MoneyGram transfer to a fixed receiver."""

    def __init__(self, account: MoneyGramAccountInfo):
        self.account = account

    @property
    def method(self) -> PaymentMethod:
        return PaymentMethod.MONEYGRAM

    def build_details(
        self,
        booking: Booking,
        order_id: str | None,
        evidence: dict[str, Any] | None = None,
    ) -> PaymentDetails:
        details = MoneyGramDetails(**asdict(self.account))
        return with_evidence(details, evidence)

    def instructions(self, details: PaymentDetails | None = None) -> dict[str, Any]:
        return {"method": self.method.value, **asdict(self.account)}
