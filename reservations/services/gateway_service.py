"""Payment gateway service.

Routes payment-method operations to the matching gateway adapter.
No business logic here - only adapter selection.
"""

from collections.abc import Iterable

from reservations.config import Settings
from reservations.core.exceptions import InvalidPaymentMethod
from reservations.domain.payment_details import PaymentMethod
from reservations.gateways.base import PaymentGateway
from reservations.gateways.binance import BinanceAccountInfo, BinancePayGateway
from reservations.gateways.manual import (
    BankAccountInfo,
    BankTransferGateway,
    CashGateway,
    MoneyGramAccountInfo,
    MoneyGramGateway,
)
from reservations.gateways.redotpay import RedotpayAccountInfo, RedotpayGateway

ALLOWED_METHODS = tuple(m.value for m in PaymentMethod)


class GatewayService:
    """Registry of payment gateways keyed by payment method."""

    def __init__(self, gateways: Iterable[PaymentGateway]):
        self._gateways: dict[PaymentMethod, PaymentGateway] = {g.method: g for g in gateways}

    def get(self, method: str | PaymentMethod) -> PaymentGateway:
        """Get the gateway for a payment method.

        Raises:
            InvalidPaymentMethod: Method unknown or not registered
        """
        try:
            method = PaymentMethod(method)
        except ValueError:
            raise InvalidPaymentMethod(str(method), ALLOWED_METHODS)
        gateway = self._gateways.get(method)
        if gateway is None:
            raise InvalidPaymentMethod(method.value, ALLOWED_METHODS)
        return gateway

    def replace(self, gateway: PaymentGateway) -> None:
        """Swap the adapter registered for ``gateway.method``."""
        self._gateways[gateway.method] = gateway


def build_gateway_service(settings: Settings) -> GatewayService:
    """Build the gateway registry from static configuration."""
    timeout = settings.provider_timeout_seconds
    return GatewayService(
        [
            CashGateway(),
            BankTransferGateway(
                BankAccountInfo(
                    bank_name=settings.bank_name,
                    account_number=settings.bank_account_number,
                    account_holder=settings.bank_account_holder,
                    swift_code=settings.bank_swift_code,
                    iban=settings.bank_iban,
                    address=settings.bank_address,
                    currency=settings.bank_currency,
                    reference_format=settings.bank_reference_format,
                )
            ),
            MoneyGramGateway(
                MoneyGramAccountInfo(
                    reference_number=settings.moneygram_reference_number,
                    receiver_name=settings.moneygram_receiver_name,
                    country=settings.moneygram_country,
                    city=settings.moneygram_city,
                )
            ),
            BinancePayGateway(
                BinanceAccountInfo(
                    account_id=settings.binance_account_id,
                    wallet_address=settings.binance_wallet_address,
                    network=settings.binance_network,
                    currency=settings.binance_currency,
                ),
                api_key=settings.binance_api_key,
                secret_key=settings.binance_secret_key,
                api_url=settings.binance_api_url,
                webhook_secret=settings.binance_webhook_secret,
                timeout=timeout,
            ),
            RedotpayGateway(
                RedotpayAccountInfo(
                    account_id=settings.redotpay_account_id,
                    merchant_id=settings.redotpay_merchant_id,
                ),
                api_key=settings.redotpay_api_key,
                secret_key=settings.redotpay_secret_key,
                api_url=settings.redotpay_api_url,
                timeout=timeout,
            ),
        ]
    )
