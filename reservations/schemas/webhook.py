"""Webhook payload schemas."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class BinanceWebhookPayload(BaseModel):
    """Binance Pay order notification."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    merchant_trade_no: str = Field(min_length=1, validation_alias=AliasChoices("merchantTradeNo", "merchant_trade_no"))
    status: str = Field(min_length=1)
    transaction_id: str | None = Field(
        default=None, validation_alias=AliasChoices("transactionId", "transaction_id")
    )


class RedotpayWebhookPayload(BaseModel):
    """Redotpay order notification."""

    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    order_id: str = Field(min_length=1, validation_alias=AliasChoices("orderId", "order_id"))
    status: str = Field(min_length=1)
    transaction_id: str | None = Field(
        default=None, validation_alias=AliasChoices("transactionId", "transaction_id")
    )
    sign: str | None = None


class WebhookAck(BaseModel):
    """Acknowledgement returned to the provider."""

    received: bool = True
    result: str
    payment_id: str | None = None
    payment_status: str | None = None
