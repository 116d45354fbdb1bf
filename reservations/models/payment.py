"""Payment database model."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import JSON, CheckConstraint, DateTime, ForeignKey, Index, Numeric, String, Text, Uuid, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from reservations.database import Base
from reservations.domain.payment_details import PaymentDetails, load_details
from reservations.utils.dates import utc_now


class Payment(Base):
    """Evidence of a funds transfer for a booking."""

    __tablename__ = "payments"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'pending_review', 'completed', 'failed')",
            name="ck_payments_status",
        ),
        CheckConstraint(
            "payment_method IN ('cash', 'bank_transfer', 'binance', 'redotpay', 'moneygram')",
            name="ck_payments_method",
        ),
        CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
        # At most one completed payment per booking
        Index(
            "uq_payments_booking_completed",
            "booking_id",
            unique=True,
            postgresql_where=text("status = 'completed'"),
            sqlite_where=text("status = 'completed'"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    booking_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("bookings.id"), nullable=False, index=True
    )
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(4), default="MAD")
    payment_method: Mapped[str] = mapped_column(
        String(20), nullable=False
    )  # cash, bank_transfer, binance, redotpay, moneygram
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, pending_review, completed, failed

    # Identifier echoed back by the provider in webhooks
    provider_order_id: Mapped[str | None] = mapped_column(String(64), unique=True, index=True)
    details: Mapped[dict] = mapped_column(JSON().with_variant(JSONB(), "postgresql"), nullable=False)

    notes: Mapped[str | None] = mapped_column(Text)
    failure_reason: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    @property
    def method_details(self) -> PaymentDetails:
        return load_details(self.details)
