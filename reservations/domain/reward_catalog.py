"""Default reward catalog."""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum


class RewardType(str, Enum):
    DISCOUNT = "discount"
    SERVICE = "service"
    UPGRADE = "upgrade"


@dataclass(frozen=True)
class RewardSeed:
    """Catalog entry used to (re)seed the rewards table."""

    name: str
    description: str
    points_required: int
    reward_type: RewardType
    discount_percent: Decimal | None = None
    discount_amount: Decimal | None = None
    service_type: str | None = None
    max_redemptions: int | None = None


DEFAULT_REWARD_CATALOG: tuple[RewardSeed, ...] = (
    RewardSeed(
        name="10 € discount",
        description="10 € off your next booking",
        points_required=200,
        reward_type=RewardType.DISCOUNT,
        discount_amount=Decimal("10"),
    ),
    RewardSeed(
        name="10% discount",
        description="10% off your next booking",
        points_required=500,
        reward_type=RewardType.DISCOUNT,
        discount_percent=Decimal("10"),
    ),
    RewardSeed(
        name="15% discount",
        description="15% off your next booking",
        points_required=1000,
        reward_type=RewardType.DISCOUNT,
        discount_percent=Decimal("15"),
    ),
    RewardSeed(
        name="20% discount",
        description="20% off your next booking",
        points_required=2000,
        reward_type=RewardType.DISCOUNT,
        discount_percent=Decimal("20"),
    ),
    RewardSeed(
        name="Premium vehicle upgrade",
        description="Upgrade to a premium vehicle at no extra cost",
        points_required=2500,
        reward_type=RewardType.UPGRADE,
    ),
    RewardSeed(
        name="Free airport transfer",
        description="One airport transfer on the house",
        points_required=3000,
        reward_type=RewardType.SERVICE,
        service_type="airport",
    ),
    RewardSeed(
        name="50 € discount",
        description="50 € off your next booking",
        points_required=5000,
        reward_type=RewardType.DISCOUNT,
        discount_amount=Decimal("50"),
    ),
)
