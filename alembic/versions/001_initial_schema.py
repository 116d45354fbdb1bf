"""Initial database schema.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all initial tables for the reservation platform:
- Users and loyalty balances
- Bookings
- Payments (one completed payment per booking)
- Rewards, redeemed rewards and the points ledger
- Notifications
"""

from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers
revision: str = "001_initial"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create all database tables."""

    # ==================== USERS ====================
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("phone", sa.String(30)),
        sa.Column("role", sa.String(20), server_default="customer"),
        sa.Column("points", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_spent", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_bookings", sa.Integer, nullable=False, server_default="0"),
        sa.Column("membership_level", sa.String(20), nullable=False, server_default="bronze"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
    )

    # ==================== BOOKINGS ====================
    op.create_table(
        "bookings",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("reservation_number", sa.String(30), unique=True, nullable=False, index=True),
        sa.Column("invoice_number", sa.String(30), unique=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("customer_name", sa.String(200), nullable=False),
        sa.Column("customer_email", sa.String(255), nullable=False),
        sa.Column("customer_phone", sa.String(30)),
        sa.Column("service_type", sa.String(20), nullable=False),
        sa.Column("vehicle_type", sa.String(20)),
        sa.Column("passengers", sa.Integer),
        sa.Column("hours", sa.Integer),
        sa.Column("origin", sa.String(255)),
        sa.Column("destination", sa.String(255)),
        sa.Column("airport_code", sa.String(3)),
        sa.Column("airport_direction", sa.String(4)),
        sa.Column("service_date", sa.Date),
        sa.Column("service_time", sa.String(5)),
        sa.Column("notes", sa.Text),
        sa.Column("calculated_price", sa.Numeric(12, 2)),
        sa.Column("total", sa.Numeric(12, 2)),
        sa.Column("currency", sa.String(4), server_default="MAD"),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("payment_id", postgresql.UUID(as_uuid=True)),
        sa.Column("cancellation_reason", sa.Text),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'confirmed', 'completed', 'cancelled')",
            name="ck_bookings_status",
        ),
        sa.CheckConstraint(
            "service_type IN ('airport', 'intercity', 'hourly', 'custom')",
            name="ck_bookings_service_type",
        ),
    )

    # ==================== PAYMENTS ====================
    op.create_table(
        "payments",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("bookings.id"), nullable=False, index=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), index=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(4), server_default="MAD"),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="pending", index=True),
        sa.Column("provider_order_id", sa.String(64), unique=True, index=True),
        sa.Column("details", postgresql.JSONB, nullable=False),
        sa.Column("notes", sa.Text),
        sa.Column("failure_reason", sa.Text),
        sa.Column("reviewed_at", sa.DateTime(timezone=True)),
        sa.Column("completed_at", sa.DateTime(timezone=True)),
        sa.Column("failed_at", sa.DateTime(timezone=True)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint(
            "status IN ('pending', 'pending_review', 'completed', 'failed')",
            name="ck_payments_status",
        ),
        sa.CheckConstraint(
            "payment_method IN ('cash', 'bank_transfer', 'binance', 'redotpay', 'moneygram')",
            name="ck_payments_method",
        ),
        sa.CheckConstraint("amount > 0", name="ck_payments_amount_positive"),
    )
    # At most one completed payment per booking
    op.create_index(
        "uq_payments_booking_completed",
        "payments",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status = 'completed'"),
    )

    # ==================== REWARDS ====================
    op.create_table(
        "rewards",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("points_required", sa.Integer, nullable=False),
        sa.Column("reward_type", sa.String(20), nullable=False),
        sa.Column("discount_percent", sa.Numeric(5, 2)),
        sa.Column("discount_amount", sa.Numeric(12, 2)),
        sa.Column("service_type", sa.String(20)),
        sa.Column("active", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("valid_until", sa.DateTime(timezone=True)),
        sa.Column("max_redemptions", sa.Integer),
        sa.Column("current_redemptions", sa.Integer, nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("points_required > 0", name="ck_rewards_points_positive"),
        sa.CheckConstraint(
            "max_redemptions IS NULL OR current_redemptions <= max_redemptions",
            name="ck_rewards_redemption_cap",
        ),
    )

    op.create_table(
        "user_rewards",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("reward_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("rewards.id"), nullable=False),
        sa.Column("points_spent", sa.Integer, nullable=False),
        sa.Column("used", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("redeemed_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("used_at", sa.DateTime(timezone=True)),
    )

    # ==================== POINTS LEDGER ====================
    op.create_table(
        "points_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True)),
        sa.Column("payment_id", postgresql.UUID(as_uuid=True)),
        sa.Column("reward_id", postgresql.UUID(as_uuid=True)),
        sa.Column("points", sa.Integer, nullable=False),
        sa.Column("points_before", sa.Integer, nullable=False),
        sa.Column("points_after", sa.Integer, nullable=False),
        sa.Column("reason", sa.String(30), nullable=False),
        sa.Column("description", sa.Text),
        sa.Column("amount", sa.Numeric(12, 2)),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
        sa.UniqueConstraint("booking_id", "reason", name="uq_points_history_booking_reason"),
    )

    # ==================== NOTIFICATIONS ====================
    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=False, index=True),
        sa.Column("notification_type", sa.String(50), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("link", sa.String(500)),
        sa.Column("data", postgresql.JSONB),
        sa.Column("read", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )


def downgrade() -> None:
    """Drop all database tables in reverse order."""
    op.drop_table("notifications")
    op.drop_table("points_history")
    op.drop_table("user_rewards")
    op.drop_table("rewards")
    op.drop_index("uq_payments_booking_completed", table_name="payments")
    op.drop_table("payments")
    op.drop_table("bookings")
    op.drop_table("users")
