"""Tests for the loyalty ledger: redemption, reversal, catalog and history."""

import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import func, select, update

from reservations.core.exceptions import (
    InsufficientPoints,
    InvalidStateTransition,
    NotFoundError,
    RedemptionLimitReached,
    RewardExpired,
    ValidationError,
)
from reservations.core.immutability import ImmutabilityViolationError
from reservations.domain.loyalty import MembershipTier
from reservations.domain.reward_catalog import DEFAULT_REWARD_CATALOG
from reservations.models.payment import Payment
from reservations.models.user import PointsHistory, Reward, User, UserReward
from reservations.services.booking_service import BookingLedger
from reservations.services.loyalty_service import LoyaltyLedger
from reservations.services.payment_service import PaymentProcessor
from reservations.utils.dates import utc_now


@pytest.fixture
def ledger(db_session) -> LoyaltyLedger:
    return LoyaltyLedger(db_session)


async def points_of(db_session, user_id) -> int:
    return (await db_session.get(User, user_id, populate_existing=True)).points


# ==================== REDEEM ====================


@pytest.mark.asyncio
async def test_redeem_with_exact_points_leaves_zero(ledger, db_session, make_user, make_reward):
    user = await make_user(points=500)
    reward = await make_reward(points_required=500, max_redemptions=10)

    user_reward = await ledger.redeem(user.id, reward.id)

    assert user_reward.points_spent == 500
    assert user_reward.used is False
    assert await points_of(db_session, user.id) == 0

    stored_reward = await db_session.get(Reward, reward.id, populate_existing=True)
    assert stored_reward.current_redemptions == 1

    entries, total = await ledger.get_history(user.id)
    assert total == 1
    assert entries[0].reason == "reward_redeemed"
    assert entries[0].points == -500
    assert (entries[0].points_before, entries[0].points_after) == (500, 0)


@pytest.mark.asyncio
async def test_redeem_with_insufficient_points(ledger, db_session, make_user, make_reward):
    user = await make_user(points=499)
    reward = await make_reward(points_required=500, max_redemptions=3)

    with pytest.raises(InsufficientPoints) as exc:
        await ledger.redeem(user.id, reward.id)

    assert "500 required, 499 available" in exc.value.detail
    assert await points_of(db_session, user.id) == 499
    assert (await db_session.get(Reward, reward.id, populate_existing=True)).current_redemptions == 0


@pytest.mark.asyncio
async def test_redeem_check_order(ledger, make_user, make_reward):
    poor = await make_user(email="poor@example.com", points=10)
    rich = await make_user(email="rich@example.com", points=10_000)
    inactive = await make_reward(name="Retired", active=False)
    expired = await make_reward(name="Summer deal", valid_until=utc_now() - timedelta(days=1), max_redemptions=1, current_redemptions=1)
    full = await make_reward(name="Limited", max_redemptions=2, current_redemptions=2)

    # Inactive wins over insufficient points
    with pytest.raises(ValidationError):
        await ledger.redeem(poor.id, inactive.id)
    # Insufficient points wins over expiry
    with pytest.raises(InsufficientPoints):
        await ledger.redeem(poor.id, expired.id)
    # Expiry wins over the redemption limit
    with pytest.raises(RewardExpired):
        await ledger.redeem(rich.id, expired.id)
    with pytest.raises(RedemptionLimitReached):
        await ledger.redeem(rich.id, full.id)


@pytest.mark.asyncio
async def test_redeem_unknown_reward_or_user(ledger, make_user, make_reward):
    user = await make_user(points=1000)
    reward = await make_reward()

    with pytest.raises(NotFoundError):
        await ledger.redeem(user.id, user.id)
    with pytest.raises(NotFoundError):
        await ledger.redeem(reward.id, reward.id)


@pytest.mark.asyncio
async def test_last_slot_race_has_one_winner(session_factory, make_user, make_reward):
    first = await make_user(email="first@example.com", points=1000)
    second = await make_user(email="second@example.com", points=1000)
    reward = await make_reward(points_required=500, max_redemptions=1)

    async def attempt(user_id):
        async with session_factory() as session:
            return await LoyaltyLedger(session).redeem(user_id, reward.id)

    results = await asyncio.gather(attempt(first.id), attempt(second.id), return_exceptions=True)

    assert len([r for r in results if isinstance(r, UserReward)]) == 1
    assert len([r for r in results if isinstance(r, RedemptionLimitReached)]) == 1

    async with session_factory() as session:
        stored = await session.get(Reward, reward.id)
        assert stored.current_redemptions == 1
        balances = await session.scalars(select(User.points).where(User.id.in_([first.id, second.id])))
        assert sorted(balances) == [500, 1000]


@pytest.mark.asyncio
async def test_concurrent_redemptions_cannot_overspend(session_factory, make_user, make_reward):
    user = await make_user(points=500)
    reward = await make_reward(points_required=500)

    async def attempt():
        async with session_factory() as session:
            return await LoyaltyLedger(session).redeem(user.id, reward.id)

    results = await asyncio.gather(attempt(), attempt(), return_exceptions=True)

    assert len([r for r in results if isinstance(r, UserReward)]) == 1
    assert len([r for r in results if isinstance(r, InsufficientPoints)]) == 1
    async with session_factory() as session:
        assert (await session.get(User, user.id)).points == 0


class StaleRewardLedger(LoyaltyLedger):
    """Ledger whose first reward read is a snapshot taken before the reward changed."""

    def __init__(self, db, snapshot: Reward):
        super().__init__(db)
        self.snapshot = snapshot

    async def _get_reward(self, reward_id):
        if self.snapshot is not None:
            snapshot, self.snapshot = self.snapshot, None
            return snapshot
        return await super()._get_reward(reward_id)


def redeemable_copy(reward: Reward) -> Reward:
    return Reward(
        id=reward.id,
        name=reward.name,
        points_required=reward.points_required,
        reward_type=reward.reward_type,
        active=True,
        valid_until=None,
        max_redemptions=None,
        current_redemptions=0,
    )


@pytest.mark.asyncio
async def test_claim_rechecks_active_and_expiry(db_session, make_user, make_reward):
    user = await make_user(points=1000)
    retired = await make_reward(name="Retired", active=False)
    expired = await make_reward(name="Summer deal", valid_until=utc_now() - timedelta(days=1))

    with pytest.raises(ValidationError):
        await StaleRewardLedger(db_session, redeemable_copy(retired)).redeem(user.id, retired.id)
    with pytest.raises(RewardExpired):
        await StaleRewardLedger(db_session, redeemable_copy(expired)).redeem(user.id, expired.id)

    assert await points_of(db_session, user.id) == 1000
    claims = await db_session.scalars(select(Reward.current_redemptions).where(Reward.id.in_([retired.id, expired.id])))
    assert list(claims) == [0, 0]
    assert await db_session.scalar(select(func.count()).select_from(UserReward)) == 0


# ==================== USER REWARDS ====================


@pytest.mark.asyncio
async def test_use_reward_once(ledger, make_user, make_reward):
    user = await make_user(points=1000)
    other = await make_user(email="other@example.com")
    reward = await make_reward(points_required=200)
    user_reward = await ledger.redeem(user.id, reward.id)

    used = await ledger.use_reward(user.id, user_reward.id)
    assert used.used is True
    assert used.used_at is not None

    with pytest.raises(ValidationError):
        await ledger.use_reward(user.id, user_reward.id)
    with pytest.raises(NotFoundError):
        await ledger.use_reward(other.id, user_reward.id)

    assert await ledger.list_user_rewards(user.id, include_used=False) == []
    assert [r.id for r in await ledger.list_user_rewards(user.id)] == [user_reward.id]


# ==================== CATALOG ====================


@pytest.mark.asyncio
async def test_available_rewards_filters_all_conditions(ledger, make_reward):
    now = utc_now()
    await make_reward(name="Upgrade", points_required=2500)
    await make_reward(name="Airport", points_required=3000, valid_until=now + timedelta(days=30), max_redemptions=5)
    await make_reward(name="Expired", points_required=100, valid_until=now - timedelta(hours=1))
    await make_reward(name="Retired", points_required=150, active=False)
    await make_reward(name="Sold out", points_required=200, max_redemptions=3, current_redemptions=3)

    rewards = await ledger.list_available_rewards(now)

    assert [r.name for r in rewards] == ["Upgrade", "Airport"]


@pytest.mark.asyncio
async def test_seed_rewards_replaces_catalog(ledger, db_session, make_reward):
    old = await make_reward(name="Legacy voucher", points_required=50)

    seeded = await ledger.seed_rewards()
    assert [r.points_required for r in seeded] == [200, 500, 1000, 2000, 2500, 3000, 5000]
    assert {r.name for r in seeded} == {seed.name for seed in DEFAULT_REWARD_CATALOG}

    airport = next(r for r in seeded if r.service_type == "airport")
    assert airport.reward_type == "service"
    assert next(r for r in seeded if r.name == "50 € discount").discount_amount == Decimal("50")

    reseeded = await ledger.seed_rewards()
    assert {r.id for r in reseeded} == {r.id for r in seeded}

    assert (await db_session.get(Reward, old.id, populate_existing=True)).active is False
    assert "Legacy voucher" not in [r.name for r in await ledger.list_available_rewards()]
    assert await db_session.scalar(select(func.count()).select_from(Reward)) == 8


# ==================== SUMMARY ====================


@pytest.mark.asyncio
async def test_summary_derives_and_persists_tier(ledger, db_session, make_user):
    user = await make_user(points=12_000, membership_level="bronze")

    summary = await ledger.get_summary(user.id)

    assert summary.membership_level is MembershipTier.GOLD
    assert summary.next_level.tier is MembershipTier.PLATINUM
    assert summary.next_level.points_needed == 88_000
    stored = await db_session.get(User, user.id, populate_existing=True)
    assert stored.membership_level == "gold"


@pytest.mark.asyncio
async def test_history_is_paginated_newest_first(ledger, make_user, make_reward):
    user = await make_user(points=1000)
    cheap = await make_reward(name="Cheap", points_required=100)
    await ledger.redeem(user.id, cheap.id)
    await ledger.redeem(user.id, cheap.id)
    await ledger.redeem(user.id, cheap.id)

    first_page, total = await ledger.get_history(user.id, page=1, limit=2)
    second_page, _ = await ledger.get_history(user.id, page=2, limit=2)

    assert total == 3
    assert [e.points_after for e in first_page] == [700, 800]
    assert [e.points_after for e in second_page] == [900]


@pytest.mark.asyncio
async def test_points_history_is_append_only(ledger, db_session, make_user, make_reward):
    user = await make_user(points=1000)
    reward = await make_reward(points_required=100)
    await ledger.redeem(user.id, reward.id)
    entry = await db_session.scalar(select(PointsHistory).where(PointsHistory.user_id == user.id))

    entry.points = 5000
    with pytest.raises(ImmutabilityViolationError):
        await db_session.commit()
    await db_session.rollback()


# ==================== ACCRUAL AND REVERSAL ====================


@pytest.mark.asyncio
async def test_cancelled_booking_reverses_points(db_session, gateways, make_user, make_booking):
    user = await make_user()
    booking = await make_booking(user_id=user.id)
    processor = PaymentProcessor(db_session, gateways)
    payment, _ = await processor.create_payment(booking.id, "cash", "12345")
    await processor.confirm(payment.id)
    assert await points_of(db_session, user.id) == 1234

    cancelled = await BookingLedger(db_session).cancel(booking.id, "Flight cancelled")

    assert cancelled.status == "cancelled"
    assert cancelled.cancellation_reason == "Flight cancelled"
    stored_user = await db_session.get(User, user.id, populate_existing=True)
    assert stored_user.points == 0
    assert stored_user.total_spent == Decimal("0")
    assert stored_user.total_bookings == 0

    reversal = await db_session.scalar(
        select(PointsHistory).where(
            PointsHistory.booking_id == booking.id, PointsHistory.reason == "booking_cancelled"
        )
    )
    assert reversal.points == -1234
    assert reversal.amount == Decimal("12345")
    assert await LoyaltyLedger(db_session).reverse_for_booking(booking.id) is None

    with pytest.raises(InvalidStateTransition):
        await BookingLedger(db_session).cancel(booking.id)


@pytest.mark.asyncio
async def test_reversal_never_goes_below_zero(db_session, gateways, make_user, make_booking, make_reward):
    user = await make_user()
    booking = await make_booking(user_id=user.id)
    reward = await make_reward(points_required=1000)
    processor = PaymentProcessor(db_session, gateways)
    payment, _ = await processor.create_payment(booking.id, "cash", "12345")
    await processor.confirm(payment.id)
    await LoyaltyLedger(db_session).redeem(user.id, reward.id)

    await BookingLedger(db_session).cancel(booking.id)

    assert await points_of(db_session, user.id) == 0
    reversal = await db_session.scalar(
        select(PointsHistory).where(
            PointsHistory.booking_id == booking.id, PointsHistory.reason == "booking_cancelled"
        )
    )
    assert reversal.points == -234
    assert (reversal.points_before, reversal.points_after) == (234, 0)


@pytest.mark.asyncio
async def test_reversal_clamps_spend_totals_at_zero(db_session, gateways, make_user, make_booking):
    user = await make_user()
    booking = await make_booking(user_id=user.id)
    processor = PaymentProcessor(db_session, gateways)
    payment, _ = await processor.create_payment(booking.id, "cash", "1000")
    await processor.confirm(payment.id)
    await db_session.execute(
        update(User).where(User.id == user.id).values(total_spent=Decimal("400"), total_bookings=0)
    )
    await db_session.commit()

    await BookingLedger(db_session).cancel(booking.id)

    stored = await db_session.get(User, user.id, populate_existing=True)
    assert stored.points == 0
    assert stored.total_spent == Decimal("0")
    assert stored.total_bookings == 0


@pytest.mark.asyncio
async def test_accrual_updates_tier(db_session, gateways, make_user, make_booking):
    user = await make_user()
    booking = await make_booking(user_id=user.id, total="35000")
    processor = PaymentProcessor(db_session, gateways)
    payment, _ = await processor.create_payment(booking.id, "bank_transfer", "35000")

    await processor.confirm(payment.id)

    stored = await db_session.get(User, user.id, populate_existing=True)
    assert stored.points == 3500
    assert stored.membership_level == "silver"


@pytest.mark.asyncio
async def test_no_accrual_for_cancelled_booking(ledger, db_session, session_factory, make_user, make_booking):
    user = await make_user()
    booking = await make_booking(user_id=user.id, status="cancelled")
    async with session_factory() as session:
        payment = Payment(
            booking_id=booking.id,
            user_id=user.id,
            amount=Decimal("1000"),
            currency="MAD",
            payment_method="cash",
            status="completed",
            details={"method": "cash"},
            completed_at=utc_now(),
        )
        session.add(payment)
        await session.commit()

    assert await ledger.accrue_for_payment(payment) is None

    stored = await db_session.get(User, user.id, populate_existing=True)
    assert stored.points == 0
    assert stored.total_bookings == 0
    assert await db_session.scalar(select(func.count()).select_from(PointsHistory)) == 0
