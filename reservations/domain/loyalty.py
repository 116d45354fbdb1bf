"""Loyalty domain logic.

Points accrue at one point per 10 currency units spent (fraction dropped).
Membership tier is a pure projection of the point balance:
- diamante: 1,000,000+
- platinum: 100,000+
- gold: 10,000+
- silver: 3,500+
- bronze: below 3,500
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

POINTS_PER_CURRENCY_UNIT = Decimal("10")


class MembershipTier(str, Enum):
    """Membership tiers, lowest first."""

    BRONZE = "bronze"
    SILVER = "silver"
    GOLD = "gold"
    PLATINUM = "platinum"
    DIAMANTE = "diamante"

    @property
    def rank(self) -> int:
        return list(MembershipTier).index(self)


class PointsReason(str, Enum):
    """Reasons recorded on points history entries."""

    BOOKING_CONFIRMED = "booking_confirmed"
    BOOKING_CANCELLED = "booking_cancelled"
    REWARD_REDEEMED = "reward_redeemed"
    ADMIN_ADJUSTMENT = "admin_adjustment"
    BONUS = "bonus"


# (min_points, tier) - evaluated in order, first match wins
TIER_THRESHOLDS: list[tuple[int, MembershipTier]] = [
    (1_000_000, MembershipTier.DIAMANTE),
    (100_000, MembershipTier.PLATINUM),
    (10_000, MembershipTier.GOLD),
    (3_500, MembershipTier.SILVER),
    (0, MembershipTier.BRONZE),
]


@dataclass(frozen=True)
class NextLevel:
    """Distance from a point balance to the next tier."""

    tier: MembershipTier
    points_needed: int
    amount_needed: Decimal


def points_for_amount(amount: Decimal | int | str) -> int:
    """Points earned for spending ``amount``; negative amounts earn nothing."""
    value = Decimal(str(amount))
    if value <= 0:
        return 0
    return int(value // POINTS_PER_CURRENCY_UNIT)


def tier_for_points(points: int) -> MembershipTier:
    for min_points, tier in TIER_THRESHOLDS:
        if points >= min_points:
            return tier
    return MembershipTier.BRONZE


def next_level(points: int) -> NextLevel | None:
    """Next tier above the current balance, or None at the top tier."""
    current = tier_for_points(points)
    for min_points, tier in reversed(TIER_THRESHOLDS):
        if tier.rank > current.rank:
            needed = min_points - points
            return NextLevel(tier=tier, points_needed=needed, amount_needed=needed * POINTS_PER_CURRENCY_UNIT)
    return None
