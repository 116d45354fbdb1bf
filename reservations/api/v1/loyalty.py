"""Loyalty endpoints."""

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Query, status

from reservations.api.deps import get_loyalty_ledger
from reservations.schemas.loyalty import (
    LoyaltySummaryResponse,
    NextLevelResponse,
    PointsHistoryListResponse,
    PointsHistoryResponse,
    RedeemRequest,
    RewardResponse,
    UserRewardResponse,
)
from reservations.services.loyalty_service import LoyaltyLedger

router = APIRouter()

Loyalty = Annotated[LoyaltyLedger, Depends(get_loyalty_ledger)]


@router.get("/users/{user_id}", response_model=LoyaltySummaryResponse)
async def get_loyalty_summary(user_id: UUID, loyalty: Loyalty) -> LoyaltySummaryResponse:
    """Points, totals, membership level and distance to the next level."""
    summary = await loyalty.get_summary(user_id)
    upcoming = summary.next_level
    return LoyaltySummaryResponse(
        user_id=summary.user_id,
        points=summary.points,
        total_spent=summary.total_spent,
        total_bookings=summary.total_bookings,
        membership_level=summary.membership_level.value,
        next_level=NextLevelResponse(
            tier=upcoming.tier.value,
            points_needed=upcoming.points_needed,
            amount_needed=upcoming.amount_needed,
        )
        if upcoming
        else None,
    )


@router.get("/users/{user_id}/history", response_model=PointsHistoryListResponse)
async def get_points_history(
    user_id: UUID,
    loyalty: Loyalty,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
) -> PointsHistoryListResponse:
    """Points movements, newest first."""
    entries, total = await loyalty.get_history(user_id, page=page, limit=page_size)
    return PointsHistoryListResponse(
        entries=[PointsHistoryResponse.model_validate(e) for e in entries],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.get("/users/{user_id}/rewards", response_model=list[UserRewardResponse])
async def list_user_rewards(
    user_id: UUID,
    loyalty: Loyalty,
    include_used: bool = Query(True),
) -> list[UserRewardResponse]:
    """Rewards redeemed by a user."""
    rewards = await loyalty.list_user_rewards(user_id, include_used=include_used)
    return [UserRewardResponse.model_validate(r) for r in rewards]


@router.post("/users/{user_id}/rewards/{user_reward_id}/use", response_model=UserRewardResponse)
async def use_reward(user_id: UUID, user_reward_id: UUID, loyalty: Loyalty) -> UserRewardResponse:
    """Mark a redeemed reward as used."""
    user_reward = await loyalty.use_reward(user_id, user_reward_id)
    return UserRewardResponse.model_validate(user_reward)


@router.get("/rewards", response_model=list[RewardResponse])
async def list_available_rewards(loyalty: Loyalty) -> list[RewardResponse]:
    """Rewards that can currently be redeemed, cheapest first."""
    rewards = await loyalty.list_available_rewards()
    return [RewardResponse.model_validate(r) for r in rewards]


@router.post("/rewards/seed", response_model=list[RewardResponse])
async def seed_rewards(loyalty: Loyalty) -> list[RewardResponse]:
    """Replace the reward catalog with the default catalog."""
    rewards = await loyalty.seed_rewards()
    return [RewardResponse.model_validate(r) for r in rewards]


@router.post(
    "/rewards/{reward_id}/redeem",
    response_model=UserRewardResponse,
    status_code=status.HTTP_201_CREATED,
)
async def redeem_reward(reward_id: UUID, data: RedeemRequest, loyalty: Loyalty) -> UserRewardResponse:
    """Spend points on a reward."""
    user_reward = await loyalty.redeem(data.user_id, reward_id)
    return UserRewardResponse.model_validate(user_reward)
