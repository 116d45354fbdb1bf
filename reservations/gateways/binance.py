"""Binance Pay gateway adapter.

Payments go to a fixed Binance account; the order is identified by the
merchantTradeNo generated at payment creation. Requests and webhook
deliveries are signed with HMAC-SHA512 over
``timestamp + "\\n" + nonce + "\\n" + body + "\\n"``.
"""

import hashlib
import hmac
import json
import logging
import secrets
import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from reservations.core.exceptions import MalformedWebhook, ProviderUnavailable
from reservations.domain.payment_details import BinanceDetails, PaymentDetails, PaymentMethod, with_evidence
from reservations.gateways.base import EventOutcome, PaymentGateway, ProviderEvent, VerificationResult
from reservations.models.booking import Booking
from reservations.schemas.webhook import BinanceWebhookPayload
from reservations.utils.references import generate_provider_order_id

logger = logging.getLogger(__name__)

PAID_STATUSES = frozenset({"SUCCESS", "PAID"})
FAILED_STATUSES = frozenset({"FAILED", "CANCELLED"})

# Without API credentials a transaction hash of this length is accepted as evidence
MIN_TX_HASH_LENGTH = 10


@dataclass(frozen=True)
class BinanceAccountInfo:
    account_id: str
    wallet_address: str
    network: str
    currency: str


def sign_payload(secret: str, timestamp: str, nonce: str, body: str) -> str:
    message = f"{timestamp}\n{nonce}\n{body}\n"
    return hmac.new(secret.encode(), message.encode(), hashlib.sha512).hexdigest().upper()


class BinancePayGateway(PaymentGateway):
    """Binance Pay adapter."""

    supports_verification = True

    def __init__(
        self,
        account: BinanceAccountInfo,
        api_key: str | None = None,
        secret_key: str | None = None,
        api_url: str = "https://bpay.binanceapi.com",
        webhook_secret: str | None = None,
        timeout: float = 10.0,
    ):
        self.account = account
        self.api_key = api_key
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.webhook_secret = webhook_secret
        self.timeout = timeout

    @property
    def method(self) -> PaymentMethod:
        return PaymentMethod.BINANCE

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.secret_key)

    def new_order_id(self) -> str:
        return generate_provider_order_id("BNB")

    def build_details(
        self,
        booking: Booking,
        order_id: str | None,
        evidence: dict[str, Any] | None = None,
    ) -> PaymentDetails:
        details = BinanceDetails(merchant_trade_no=order_id, **asdict(self.account))
        return with_evidence(details, evidence)

    def instructions(self, details: PaymentDetails | None = None) -> dict[str, Any]:
        info = {"method": self.method.value, **asdict(self.account)}
        if isinstance(details, BinanceDetails):
            info["merchant_trade_no"] = details.merchant_trade_no
        return info

    def _signed_headers(self, body: str) -> dict[str, str]:
        timestamp = str(int(time.time() * 1000))
        nonce = secrets.token_hex(16)
        return {
            "Content-Type": "application/json",
            "BinancePay-Timestamp": timestamp,
            "BinancePay-Nonce": nonce,
            "BinancePay-Certificate-SN": self.api_key or "",
            "BinancePay-Signature": sign_payload(self.secret_key or "", timestamp, nonce, body),
        }

    async def verify_payment(
        self,
        details: PaymentDetails,
        reference: str | None,
    ) -> VerificationResult:
        """Verify a Binance payment.

        With API credentials the order is queried by merchantTradeNo.
        Without them the customer's transaction hash is checked for shape only.

        Args:
            details: Binance detail record of the payment
            reference: Transaction hash reported by the customer

        Returns:
            VerificationResult
        """
        assert isinstance(details, BinanceDetails)
        tx_hash = (reference or details.transaction_hash or "").strip()

        if not self.is_configured:
            if len(tx_hash) >= MIN_TX_HASH_LENGTH:
                return VerificationResult(
                    verified=True,
                    transaction_id=tx_hash,
                    raw_response={"mode": "sandbox", "transaction_hash": tx_hash},
                )
            return VerificationResult(verified=False, error_message="Invalid transaction hash")

        body = json.dumps({"merchantTradeNo": details.merchant_trade_no}, separators=(",", ":"))
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.api_url}/binancepay/openapi/v2/order/query",
                    content=body,
                    headers=self._signed_headers(body),
                )
        except httpx.TimeoutException:
            raise ProviderUnavailable("binance", "order query timed out")
        except httpx.HTTPError as e:
            raise ProviderUnavailable("binance", str(e))

        if response.status_code >= 500:
            raise ProviderUnavailable("binance", f"HTTP {response.status_code}")

        data = response.json()
        order = data.get("data") or {}
        if data.get("status") == "SUCCESS" and order.get("status") == "PAID":
            return VerificationResult(
                verified=True,
                transaction_id=order.get("transactionId") or tx_hash or None,
                raw_response=data,
            )

        logger.info(f"Binance order {details.merchant_trade_no} not paid: {order.get('status')}")
        return VerificationResult(
            verified=False,
            error_message=data.get("errorMessage") or f"Order status {order.get('status')}",
            raw_response=data,
        )

    def _check_signature(self, body: bytes, headers: Mapping[str, str]) -> None:
        headers = {key.lower(): value for key, value in headers.items()}
        timestamp = headers.get("binancepay-timestamp")
        nonce = headers.get("binancepay-nonce")
        signature = headers.get("binancepay-signature")
        if not (timestamp and nonce and signature):
            raise MalformedWebhook("Missing Binance signature headers")
        expected = sign_payload(self.webhook_secret or "", timestamp, nonce, body.decode("utf-8", errors="replace"))
        if not hmac.compare_digest(expected, signature.upper()):
            raise MalformedWebhook("Invalid Binance signature")

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> ProviderEvent:
        if self.webhook_secret:
            self._check_signature(body, headers)

        try:
            payload = BinanceWebhookPayload.model_validate_json(body)
        except PydanticValidationError as e:
            raise MalformedWebhook(f"Invalid Binance payload: {e.error_count()} error(s)")

        status = payload.status.strip().upper()
        if status in PAID_STATUSES:
            outcome = EventOutcome.PAID
        elif status in FAILED_STATUSES:
            outcome = EventOutcome.FAILED
        else:
            outcome = EventOutcome.IGNORED

        return ProviderEvent(
            method=self.method,
            order_id=payload.merchant_trade_no,
            status=status,
            outcome=outcome,
            transaction_id=payload.transaction_id,
            raw=payload.model_dump(),
        )
