"""Per-method payment detail records.

Each payment carries exactly one detail record, selected by its method.
Provider account fields (wallet, merchant, receiver) come from configuration;
only the evidence fields listed in ``EVIDENCE_FIELDS`` are accepted from
customers and admins.
"""

from datetime import date
from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class PaymentMethod(str, Enum):
    """Supported payment methods."""

    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    BINANCE = "binance"
    REDOTPAY = "redotpay"
    MONEYGRAM = "moneygram"


PROVIDER_METHODS = frozenset({PaymentMethod.BINANCE, PaymentMethod.REDOTPAY})


class _Details(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class CashDetails(_Details):
    method: Literal["cash"] = "cash"
    received_by: str | None = None
    receipt_number: str | None = None


class BankTransferDetails(_Details):
    method: Literal["bank_transfer"] = "bank_transfer"
    reference: str | None = None
    bank_name: str | None = None
    account_number: str | None = None
    transfer_date: date | None = None
    proof_image: str | None = None
    suggested_reference: str | None = None


class BinanceDetails(_Details):
    method: Literal["binance"] = "binance"
    account_id: str
    wallet_address: str = ""
    network: str = "BSC"
    currency: str = "USDT"
    merchant_trade_no: str
    transaction_hash: str | None = None
    transaction_id: str | None = None


class RedotpayDetails(_Details):
    method: Literal["redotpay"] = "redotpay"
    account_id: str
    merchant_id: str = ""
    order_id: str
    transaction_id: str | None = None


class MoneyGramDetails(_Details):
    method: Literal["moneygram"] = "moneygram"
    reference_number: str
    receiver_name: str
    country: str
    city: str
    control_number: str | None = None


PaymentDetails = Annotated[
    Union[CashDetails, BankTransferDetails, BinanceDetails, RedotpayDetails, MoneyGramDetails],
    Field(discriminator="method"),
]

_details_adapter: TypeAdapter[PaymentDetails] = TypeAdapter(PaymentDetails)

EVIDENCE_FIELDS: dict[PaymentMethod, frozenset[str]] = {
    PaymentMethod.CASH: frozenset({"received_by", "receipt_number"}),
    PaymentMethod.BANK_TRANSFER: frozenset(
        {"reference", "bank_name", "account_number", "transfer_date", "proof_image"}
    ),
    PaymentMethod.BINANCE: frozenset({"transaction_hash", "transaction_id"}),
    PaymentMethod.REDOTPAY: frozenset({"transaction_id"}),
    PaymentMethod.MONEYGRAM: frozenset({"control_number"}),
}


def load_details(data: dict[str, Any]) -> PaymentDetails:
    """Parse a stored detail record."""
    return _details_adapter.validate_python(data)


def dump_details(details: PaymentDetails) -> dict[str, Any]:
    """Serialize a detail record for the JSON column."""
    return details.model_dump(mode="json")


def with_evidence(details: PaymentDetails, evidence: dict[str, Any] | None) -> PaymentDetails:
    """Return ``details`` updated with the evidence fields its method accepts.

    Unknown fields and None values are ignored, so configured account
    fields can never be overwritten.
    """
    if not evidence:
        return details
    allowed = EVIDENCE_FIELDS[PaymentMethod(details.method)]
    updates = {key: value for key, value in evidence.items() if key in allowed and value is not None}
    if not updates:
        return details
    return load_details({**details.model_dump(), **updates})
