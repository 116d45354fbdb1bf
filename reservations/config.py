"""Application configuration via pydantic-settings."""

from __future__ import annotations

from functools import lru_cache
from typing import List, Literal, Optional

from pydantic import Field, computed_field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "Yassline Reservations"
    app_version: str = "1.0.0"
    environment: Literal["development", "staging", "production"] = "development"
    debug: bool = False
    api_prefix: str = "/api/v1"
    log_level: str = "INFO"

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    workers: int = 4

    # Database
    postgres_host: str = "localhost"
    postgres_port: int = 5432
    postgres_user: str = "yassline"
    postgres_password: str = Field(default="yassline_secret")
    postgres_db: str = "reservations"
    db_pool_size: int = 20
    db_max_overflow: int = 10

    @computed_field
    @property
    def database_url(self) -> str:
        """Async PostgreSQL connection URL."""
        return (
            f"postgresql+asyncpg://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    @computed_field
    @property
    def sync_database_url(self) -> str:
        """Sync PostgreSQL connection URL for Alembic."""
        return (
            f"postgresql://{self.postgres_user}:{self.postgres_password}"
            f"@{self.postgres_host}:{self.postgres_port}/{self.postgres_db}"
        )

    # Redis
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    @computed_field
    @property
    def redis_url(self) -> str:
        """Redis connection URL."""
        auth = f":{self.redis_password}@" if self.redis_password else ""
        return f"redis://{auth}{self.redis_host}:{self.redis_port}/{self.redis_db}"

    # Webhook deduplication
    idempotency_backend: Literal["memory", "redis"] = "memory"
    webhook_dedup_ttl_seconds: int = 86400

    # Payments
    default_currency: str = "MAD"
    allowed_currencies: List[str] = ["MAD", "EUR", "USD", "USDT", "BTC", "ETH"]
    provider_timeout_seconds: float = 10.0

    # Binance Pay
    binance_api_key: Optional[str] = None
    binance_secret_key: Optional[str] = None
    binance_api_url: str = "https://bpay.binanceapi.com"
    binance_webhook_secret: Optional[str] = None
    binance_account_id: str = "89150838"
    binance_wallet_address: str = ""
    binance_network: str = "BSC"
    binance_currency: str = "USDT"

    # Redotpay
    redotpay_api_key: Optional[str] = None
    redotpay_secret_key: Optional[str] = None
    redotpay_api_url: str = "https://api.redotpay.com"
    redotpay_merchant_id: str = ""
    redotpay_account_id: str = "1764625181"

    # MoneyGram (static receiver info)
    moneygram_reference_number: str = "MONEYGRAM_REF"
    moneygram_receiver_name: str = "Yassline Tour"
    moneygram_country: str = "Marruecos"
    moneygram_city: str = "Marrakech"

    # Bank transfer
    bank_name: str = "Banco"
    bank_account_number: str = ""
    bank_account_holder: str = "Yassline Tour"
    bank_swift_code: str = ""
    bank_iban: str = ""
    bank_address: str = ""
    bank_currency: str = "MAD"
    bank_reference_format: str = "RES-{booking_id}"

    # Distance lookup
    openrouteservice_api_key: Optional[str] = None
    openrouteservice_url: str = "https://api.openrouteservice.org"

    # Background work
    notification_retry_delay_seconds: int = 60
    reconciliation_interval_minutes: int = 10
    reconciliation_lookback_hours: int = 48

    # CORS
    cors_origins: List[str] = ["http://localhost:3000", "http://localhost:8080"]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
