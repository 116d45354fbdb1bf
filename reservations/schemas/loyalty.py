"""Loyalty schemas."""

from datetime import datetime
from decimal import Decimal
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class NextLevelResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    tier: str
    points_needed: int
    amount_needed: Decimal


class LoyaltySummaryResponse(BaseModel):
    """Schema for a user's loyalty status."""

    model_config = ConfigDict(from_attributes=True)

    user_id: UUID
    points: int
    total_spent: Decimal
    total_bookings: int
    membership_level: str
    next_level: NextLevelResponse | None


class PointsHistoryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    booking_id: UUID | None
    payment_id: UUID | None
    reward_id: UUID | None
    points: int
    points_before: int
    points_after: int
    reason: str
    description: str | None
    amount: Decimal | None
    created_at: datetime


class PointsHistoryListResponse(BaseModel):
    """Schema for paginated points history."""

    entries: list[PointsHistoryResponse]
    total: int
    page: int
    page_size: int


class RewardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    name: str
    description: str | None
    points_required: int
    reward_type: str
    discount_percent: Decimal | None
    discount_amount: Decimal | None
    service_type: str | None
    active: bool
    valid_until: datetime | None
    max_redemptions: int | None
    current_redemptions: int


class RedeemRequest(BaseModel):
    """Schema for redeeming a reward."""

    user_id: UUID


class UserRewardResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    user_id: UUID
    reward_id: UUID
    points_spent: int
    used: bool
    redeemed_at: datetime
    used_at: datetime | None
