"""Loyalty ledger.

Point balances only move through conditional UPDATE statements, and every
movement is recorded in the append-only points history. Accrual and
reversal are keyed on (booking_id, reason), so replays are rejected by the
database rather than by read-then-write checks.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import case, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from reservations.core.exceptions import (
    InsufficientPoints,
    NotFoundError,
    RedemptionLimitReached,
    RewardExpired,
    ValidationError,
)
from reservations.domain.loyalty import (
    MembershipTier,
    NextLevel,
    PointsReason,
    next_level,
    points_for_amount,
    tier_for_points,
)
from reservations.domain.reward_catalog import DEFAULT_REWARD_CATALOG, RewardSeed
from reservations.models.booking import Booking
from reservations.models.payment import Payment
from reservations.models.user import PointsHistory, Reward, User, UserReward
from reservations.utils.dates import as_utc, utc_now

logger = logging.getLogger(__name__)


@dataclass
class LoyaltySummary:
    user_id: UUID
    points: int
    total_spent: Decimal
    total_bookings: int
    membership_level: MembershipTier
    next_level: NextLevel | None


class LoyaltyLedger:
    """Points, tiers and reward redemption for users."""

    def __init__(self, db: AsyncSession, catalog: tuple[RewardSeed, ...] = DEFAULT_REWARD_CATALOG):
        self.db = db
        self.catalog = catalog

    async def _get_user(self, user_id: UUID) -> User:
        user = await self.db.get(User, user_id, populate_existing=True)
        if not user:
            raise NotFoundError("User", str(user_id))
        return user

    async def _get_reward(self, reward_id: UUID) -> Reward:
        reward = await self.db.get(Reward, reward_id, populate_existing=True)
        if not reward:
            raise NotFoundError("Reward", str(reward_id))
        return reward

    async def _balance(self, user_id: UUID) -> int:
        result = await self.db.execute(select(User.points).where(User.id == user_id))
        return result.scalar_one()

    async def _history_entry(self, booking_id: UUID, reason: PointsReason) -> PointsHistory | None:
        result = await self.db.execute(
            select(PointsHistory).where(
                PointsHistory.booking_id == booking_id,
                PointsHistory.reason == reason.value,
            )
        )
        return result.scalar_one_or_none()

    async def _sync_tier(self, user_id: UUID, points: int) -> MembershipTier:
        """Bring the cached membership level in line with ``points``. No commit."""
        tier = tier_for_points(points)
        await self.db.execute(
            update(User)
            .where(User.id == user_id, User.membership_level != tier.value)
            .values(membership_level=tier.value)
            .execution_options(synchronize_session=False)
        )
        return tier

    # ==================== ACCRUAL ====================

    async def accrue_for_payment(self, payment: Payment) -> PointsHistory | None:
        """Credit points for a completed payment.

        Runs at most once per booking. The points history unique key is the
        final guard; a replay rolls back the whole accrual.

        Args:
            payment: Completed payment

        Returns:
            PointsHistory entry, or None when skipped or already accrued
        """
        # Rollback expires instances, so nothing below reads ``payment`` lazily
        payment_id, booking_id, user_id, amount = payment.id, payment.booking_id, payment.user_id, payment.amount

        if user_id is None:
            logger.info(f"Booking {booking_id} has no user, loyalty accrual skipped")
            return None

        if await self._history_entry(booking_id, PointsReason.BOOKING_CONFIRMED):
            logger.info(f"Points already accrued for booking {booking_id}")
            return None

        points = points_for_amount(amount)
        try:
            result = await self.db.execute(
                update(User)
                .where(
                    User.id == user_id,
                    select(Booking.id).where(Booking.id == booking_id, Booking.status != "cancelled").exists(),
                )
                .values(
                    points=User.points + points,
                    total_spent=User.total_spent + amount,
                    total_bookings=User.total_bookings + 1,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                await self.db.rollback()
                logger.warning(f"User {user_id} not found or booking {booking_id} cancelled, loyalty accrual skipped")
                return None

            balance = await self._balance(user_id)
            entry = PointsHistory(
                user_id=user_id,
                booking_id=booking_id,
                payment_id=payment_id,
                points=points,
                points_before=balance - points,
                points_after=balance,
                reason=PointsReason.BOOKING_CONFIRMED.value,
                description=f"Points earned for payment {payment_id}",
                amount=amount,
            )
            self.db.add(entry)
            tier = await self._sync_tier(user_id, balance)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Points already accrued for booking {booking_id}")
            return None

        logger.info(
            f"Accrued {points} points to user {user_id} for booking {booking_id} "
            f"(balance {balance}, tier {tier.value})"
        )
        return entry

    async def reverse_for_booking(self, booking_id: UUID) -> PointsHistory | None:
        """Take back points and spend accrued for a cancelled booking, never below zero.

        Returns:
            PointsHistory entry, or None when nothing was accrued or it was
            already reversed
        """
        accrual = await self._history_entry(booking_id, PointsReason.BOOKING_CONFIRMED)
        if accrual is None or await self._history_entry(booking_id, PointsReason.BOOKING_CANCELLED):
            return None

        user_id = accrual.user_id
        spent = accrual.amount or Decimal("0")
        try:
            result = await self.db.execute(
                select(User.points).where(User.id == user_id).with_for_update()
            )
            before = result.scalar_one()
            deducted = min(accrual.points, before)
            await self.db.execute(
                update(User)
                .where(User.id == user_id, User.points >= deducted)
                .values(
                    points=User.points - deducted,
                    total_spent=case((User.total_spent > spent, User.total_spent - spent), else_=0),
                    total_bookings=case((User.total_bookings > 0, User.total_bookings - 1), else_=0),
                )
                .execution_options(synchronize_session=False)
            )
            entry = PointsHistory(
                user_id=user_id,
                booking_id=booking_id,
                payment_id=accrual.payment_id,
                points=-deducted,
                points_before=before,
                points_after=before - deducted,
                reason=PointsReason.BOOKING_CANCELLED.value,
                description=f"Points reversed for cancelled booking {booking_id}",
                amount=spent,
            )
            self.db.add(entry)
            await self._sync_tier(user_id, before - deducted)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info(f"Points already reversed for booking {booking_id}")
            return None

        logger.info(f"Reversed {deducted} points from user {user_id} for booking {booking_id}")
        return entry

    # ==================== SUMMARY ====================

    async def get_summary(self, user_id: UUID) -> LoyaltySummary:
        """Loyalty summary with the tier derived from the current balance."""
        user = await self._get_user(user_id)
        tier = tier_for_points(user.points)
        if user.membership_level != tier.value:
            await self._sync_tier(user.id, user.points)
            await self.db.commit()
            logger.info(f"Membership level of user {user.id} updated to {tier.value}")

        return LoyaltySummary(
            user_id=user.id,
            points=user.points,
            total_spent=user.total_spent,
            total_bookings=user.total_bookings,
            membership_level=tier,
            next_level=next_level(user.points),
        )

    async def get_history(
        self,
        user_id: UUID,
        page: int = 1,
        limit: int = 20,
    ) -> tuple[list[PointsHistory], int]:
        """Points history, newest first, with the total entry count."""
        await self._get_user(user_id)
        total = await self.db.scalar(
            select(func.count()).select_from(PointsHistory).where(PointsHistory.user_id == user_id)
        )
        result = await self.db.execute(
            select(PointsHistory)
            .where(PointsHistory.user_id == user_id)
            .order_by(PointsHistory.created_at.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
        return list(result.scalars().all()), total or 0

    # ==================== REWARDS ====================

    async def list_available_rewards(self, now: datetime | None = None) -> list[Reward]:
        """Active rewards that have not expired and still have redemptions left."""
        now = now or utc_now()
        result = await self.db.execute(
            select(Reward)
            .where(
                Reward.active.is_(True),
                or_(Reward.valid_until.is_(None), Reward.valid_until >= now),
                or_(
                    Reward.max_redemptions.is_(None),
                    Reward.current_redemptions < Reward.max_redemptions,
                ),
            )
            .order_by(Reward.points_required)
        )
        return list(result.scalars().all())

    async def redeem(self, user_id: UUID, reward_id: UUID) -> UserReward:
        """Spend points on a reward.

        The reward counter and the user balance are both claimed with
        conditional updates in one transaction, so only one of several
        concurrent redemptions can take the last slot.

        Args:
            user_id: Redeeming user
            reward_id: Reward to redeem

        Returns:
            UserReward: The redeemed reward

        Raises:
            NotFoundError: User or reward not found
            ValidationError: Reward inactive
            InsufficientPoints: Balance below the reward cost
            RewardExpired: Reward validity has passed
            RedemptionLimitReached: No redemptions left
        """
        user = await self._get_user(user_id)
        reward = await self._get_reward(reward_id)
        cost = reward.points_required

        now = utc_now()
        if not reward.active:
            raise ValidationError("This reward is not available")
        if user.points < cost:
            raise InsufficientPoints(cost, user.points)
        if reward.valid_until is not None and as_utc(reward.valid_until) < now:
            raise RewardExpired()
        if reward.max_redemptions is not None and reward.current_redemptions >= reward.max_redemptions:
            raise RedemptionLimitReached()

        claimed = await self.db.execute(
            update(Reward)
            .where(
                Reward.id == reward_id,
                Reward.active.is_(True),
                or_(Reward.valid_until.is_(None), Reward.valid_until >= now),
                or_(
                    Reward.max_redemptions.is_(None),
                    Reward.current_redemptions < Reward.max_redemptions,
                ),
            )
            .values(current_redemptions=Reward.current_redemptions + 1)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            await self.db.rollback()
            raise self._claim_rejected(await self._get_reward(reward_id), now)

        debited = await self.db.execute(
            update(User)
            .where(User.id == user_id, User.points >= cost)
            .values(points=User.points - cost)
            .execution_options(synchronize_session=False)
        )
        if debited.rowcount == 0:
            await self.db.rollback()
            available = await self._balance(user_id)
            raise InsufficientPoints(cost, available)

        balance = await self._balance(user_id)
        user_reward = UserReward(user_id=user_id, reward_id=reward_id, points_spent=cost)
        self.db.add(user_reward)
        self.db.add(
            PointsHistory(
                user_id=user_id,
                reward_id=reward_id,
                points=-cost,
                points_before=balance + cost,
                points_after=balance,
                reason=PointsReason.REWARD_REDEEMED.value,
                description=f"Redeemed {reward.name}",
            )
        )
        await self._sync_tier(user_id, balance)
        await self.db.commit()

        logger.info(f"User {user_id} redeemed reward {reward_id} for {cost} points (balance {balance})")
        return user_reward

    @staticmethod
    def _claim_rejected(reward: Reward, now: datetime) -> Exception:
        if not reward.active:
            return ValidationError("This reward is not available")
        if reward.valid_until is not None and as_utc(reward.valid_until) < now:
            return RewardExpired()
        return RedemptionLimitReached()

    async def list_user_rewards(self, user_id: UUID, include_used: bool = True) -> list[UserReward]:
        await self._get_user(user_id)
        query = select(UserReward).where(UserReward.user_id == user_id)
        if not include_used:
            query = query.where(UserReward.used.is_(False))
        result = await self.db.execute(query.order_by(UserReward.redeemed_at.desc()))
        return list(result.scalars().all())

    async def use_reward(self, user_id: UUID, user_reward_id: UUID) -> UserReward:
        """Mark a redeemed reward as used.

        Raises:
            NotFoundError: No such reward for this user
            ValidationError: Reward already used
        """
        result = await self.db.execute(
            update(UserReward)
            .where(
                UserReward.id == user_reward_id,
                UserReward.user_id == user_id,
                UserReward.used.is_(False),
            )
            .values(used=True, used_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            await self.db.rollback()
            existing = await self.db.get(UserReward, user_reward_id)
            if existing is None or existing.user_id != user_id:
                raise NotFoundError("Reward", str(user_reward_id))
            raise ValidationError("This reward has already been used")

        await self.db.commit()
        user_reward = await self.db.get(UserReward, user_reward_id, populate_existing=True)
        logger.info(f"User {user_id} used reward {user_reward_id}")
        return user_reward

    async def seed_rewards(self, catalog: tuple[RewardSeed, ...] | None = None) -> list[Reward]:
        """Replace the active catalog with ``catalog``.

        Rewards are matched by name. Entries missing from the catalog are
        deactivated rather than deleted, since redeemed rewards reference them.
        """
        catalog = catalog if catalog is not None else self.catalog
        result = await self.db.execute(select(Reward))
        existing = {reward.name: reward for reward in result.scalars().all()}

        seeded: list[Reward] = []
        for seed in catalog:
            reward = existing.pop(seed.name, None)
            if reward is None:
                reward = Reward(name=seed.name, current_redemptions=0)
                self.db.add(reward)
            reward.description = seed.description
            reward.points_required = seed.points_required
            reward.reward_type = seed.reward_type.value
            reward.discount_percent = seed.discount_percent
            reward.discount_amount = seed.discount_amount
            reward.service_type = seed.service_type
            reward.max_redemptions = seed.max_redemptions
            reward.active = True
            seeded.append(reward)

        for reward in existing.values():
            reward.active = False

        await self.db.commit()
        logger.info(f"Seeded {len(seeded)} rewards, deactivated {len(existing)}")
        return sorted(seeded, key=lambda r: r.points_required)
