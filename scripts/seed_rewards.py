#!/usr/bin/env python3
"""Seed the reward catalog with the default rewards."""

import asyncio

from reservations.database import close_db, get_db_context
from reservations.services.loyalty_service import LoyaltyLedger


async def seed_rewards() -> None:
    """Upsert the default catalog and deactivate rewards no longer in it."""
    async with get_db_context() as session:
        rewards = await LoyaltyLedger(session).seed_rewards()
        for reward in rewards:
            print(f"  {reward.points_required:>5} pts  {reward.name}")
        print(f"Seeded {len(rewards)} rewards")
    await close_db()


if __name__ == "__main__":
    asyncio.run(seed_rewards())
