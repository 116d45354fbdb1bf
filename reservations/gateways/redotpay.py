"""Redotpay gateway adapter.

Requests and notifications are signed with an uppercase MD5 of the sorted
``key=value`` pairs followed by ``&key=<secret>``.
"""

import hashlib
import hmac
import json
import logging
import time
from collections.abc import Mapping
from dataclasses import asdict, dataclass
from typing import Any

import httpx
from pydantic import ValidationError as PydanticValidationError

from reservations.core.exceptions import MalformedWebhook, ProviderUnavailable
from reservations.domain.payment_details import PaymentDetails, PaymentMethod, RedotpayDetails, with_evidence
from reservations.gateways.base import EventOutcome, PaymentGateway, ProviderEvent, VerificationResult
from reservations.models.booking import Booking
from reservations.schemas.webhook import RedotpayWebhookPayload
from reservations.utils.references import generate_provider_order_id

logger = logging.getLogger(__name__)

PAID_STATUSES = frozenset({"paid", "completed", "success"})
FAILED_STATUSES = frozenset({"failed", "cancelled"})
VERIFIED_STATUSES = frozenset({"paid", "success"})


@dataclass(frozen=True)
class RedotpayAccountInfo:
    account_id: str
    merchant_id: str


def sign_params(params: Mapping[str, Any], secret: str) -> str:
    """Uppercase MD5 signature over sorted non-empty params, ``sign`` excluded."""
    pairs = [
        f"{key}={params[key]}"
        for key in sorted(params)
        if key != "sign" and params[key] not in (None, "")
    ]
    message = "&".join(pairs) + f"&key={secret}"
    return hashlib.md5(message.encode()).hexdigest().upper()


class RedotpayGateway(PaymentGateway):
    """Redotpay adapter."""

    supports_verification = True

    def __init__(
        self,
        account: RedotpayAccountInfo,
        api_key: str | None = None,
        secret_key: str | None = None,
        api_url: str = "https://api.redotpay.com",
        timeout: float = 10.0,
    ):
        self.account = account
        self.api_key = api_key
        self.secret_key = secret_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    @property
    def method(self) -> PaymentMethod:
        return PaymentMethod.REDOTPAY

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key and self.secret_key)

    def new_order_id(self) -> str:
        return generate_provider_order_id("RDP")

    def build_details(
        self,
        booking: Booking,
        order_id: str | None,
        evidence: dict[str, Any] | None = None,
    ) -> PaymentDetails:
        details = RedotpayDetails(order_id=order_id, **asdict(self.account))
        return with_evidence(details, evidence)

    def instructions(self, details: PaymentDetails | None = None) -> dict[str, Any]:
        info = {"method": self.method.value, **asdict(self.account)}
        if isinstance(details, RedotpayDetails):
            info["order_id"] = details.order_id
        return info

    async def verify_payment(
        self,
        details: PaymentDetails,
        reference: str | None,
    ) -> VerificationResult:
        """Query Redotpay for the order status.

        Args:
            details: Redotpay detail record of the payment
            reference: Order id override, defaults to the stored one

        Returns:
            VerificationResult, verified when the order is paid
        """
        assert isinstance(details, RedotpayDetails)
        if not self.is_configured:
            return VerificationResult(verified=False, error_message="Redotpay is not configured")

        params: dict[str, Any] = {
            "merchantId": self.account.merchant_id,
            "orderId": reference or details.order_id,
            "timestamp": str(int(time.time() * 1000)),
        }
        params["sign"] = sign_params(params, self.secret_key or "")

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.api_url}/v1/payment/query",
                    json=params,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
        except httpx.TimeoutException:
            raise ProviderUnavailable("redotpay", "payment query timed out")
        except httpx.HTTPError as e:
            raise ProviderUnavailable("redotpay", str(e))

        if response.status_code >= 500:
            raise ProviderUnavailable("redotpay", f"HTTP {response.status_code}")

        data = response.json()
        order = data.get("data") or {}
        status = str(order.get("status", "")).lower()
        if status in VERIFIED_STATUSES:
            return VerificationResult(
                verified=True,
                transaction_id=order.get("transactionId"),
                raw_response=data,
            )

        logger.info(f"Redotpay order {params['orderId']} not paid: {status or 'unknown'}")
        return VerificationResult(
            verified=False,
            error_message=data.get("message") or f"Order status {status or 'unknown'}",
            raw_response=data,
        )

    def parse_webhook(self, body: bytes, headers: Mapping[str, str]) -> ProviderEvent:
        try:
            data = json.loads(body)
        except ValueError:
            raise MalformedWebhook("Invalid Redotpay payload: body is not JSON")
        if not isinstance(data, dict):
            raise MalformedWebhook("Invalid Redotpay payload: expected an object")

        try:
            payload = RedotpayWebhookPayload.model_validate(data)
        except PydanticValidationError as e:
            raise MalformedWebhook(f"Invalid Redotpay payload: {e.error_count()} error(s)")

        if self.secret_key:
            expected = sign_params(data, self.secret_key)
            if not payload.sign or not hmac.compare_digest(expected, payload.sign.upper()):
                raise MalformedWebhook("Invalid Redotpay signature")

        status = payload.status.strip().lower()
        if status in PAID_STATUSES:
            outcome = EventOutcome.PAID
        elif status in FAILED_STATUSES:
            outcome = EventOutcome.FAILED
        else:
            outcome = EventOutcome.IGNORED

        return ProviderEvent(
            method=self.method,
            order_id=payload.order_id,
            status=status,
            outcome=outcome,
            transaction_id=payload.transaction_id,
            raw=data,
        )
