"""Booking database model."""

from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, Date, DateTime, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from reservations.database import Base
from reservations.utils.dates import utc_now


class Booking(Base):
    """Customer request for a transport service."""

    __tablename__ = "bookings"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        CheckConstraint(
            "service_type IN ('airport', 'intercity', 'hourly', 'custom')",
            name="ck_bookings_service_type",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    reservation_number: Mapped[str] = mapped_column(String(30), unique=True, nullable=False, index=True)
    invoice_number: Mapped[str | None] = mapped_column(String(30), unique=True)
    user_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, index=True)

    # Customer
    customer_name: Mapped[str] = mapped_column(String(200), nullable=False)
    customer_email: Mapped[str] = mapped_column(String(255), nullable=False)
    customer_phone: Mapped[str | None] = mapped_column(String(30))

    # Service
    service_type: Mapped[str] = mapped_column(String(20), nullable=False)  # airport, intercity, hourly, custom
    vehicle_type: Mapped[str | None] = mapped_column(String(20))
    passengers: Mapped[int | None] = mapped_column(Integer)
    hours: Mapped[int | None] = mapped_column(Integer)
    origin: Mapped[str | None] = mapped_column(String(255))
    destination: Mapped[str | None] = mapped_column(String(255))
    airport_code: Mapped[str | None] = mapped_column(String(3))
    airport_direction: Mapped[str | None] = mapped_column(String(4))  # from, to
    service_date: Mapped[date | None] = mapped_column(Date)
    service_time: Mapped[str | None] = mapped_column(String(5))
    notes: Mapped[str | None] = mapped_column(Text)

    # Pricing
    calculated_price: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    total: Mapped[Decimal | None] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(4), default="MAD")

    status: Mapped[str] = mapped_column(
        String(20), nullable=False, default="pending", index=True
    )  # pending, confirmed, completed, cancelled
    payment_id: Mapped[uuid.UUID | None] = mapped_column(Uuid)
    cancellation_reason: Mapped[str | None] = mapped_column(Text)

    # Timestamps
    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
