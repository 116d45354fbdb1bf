"""Reservation, invoice and provider order reference generation."""

import random
import string
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

REFERENCE_CHARS = string.ascii_uppercase + string.digits


def _random_part(length: int) -> str:
    return "".join(random.choices(REFERENCE_CHARS, k=length))


async def generate_reservation_number(db: AsyncSession) -> str:
    """Generate a unique reservation number.

    Args:
        db: Database session for uniqueness check

    Returns:
        str: Reservation number like 'RES-20261019-A3B7K9'
    """
    from reservations.models.booking import Booking

    date_part = datetime.now().strftime("%Y%m%d")
    while True:
        reservation_number = f"RES-{date_part}-{_random_part(6)}"
        result = await db.execute(
            select(Booking.id).where(Booking.reservation_number == reservation_number)
        )
        if result.scalar_one_or_none() is None:
            return reservation_number


def generate_invoice_number() -> str:
    """Generate an invoice number like 'INV-20261019-K9M2Q7'."""
    date_part = datetime.now().strftime("%Y%m%d")
    return f"INV-{date_part}-{_random_part(6)}"


def generate_provider_order_id(prefix: str) -> str:
    """Generate the order id sent to a payment provider.

    Binance limits merchantTradeNo to 32 alphanumeric characters, so the
    id stays alphanumeric: prefix + date + 12 random characters.

    Returns:
        str: Order id like 'BNB20261019K9M2Q7ZX41PA'
    """
    date_part = datetime.now().strftime("%Y%m%d")
    return f"{prefix}{date_part}{_random_part(12)}"
