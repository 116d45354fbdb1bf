"""
Pytest fixtures for test database, client, and seeded records.

Each test gets its own SQLite database file. Transactions are opened with
BEGIN IMMEDIATE so concurrent sessions serialise the way row locks do on
PostgreSQL.
"""

import asyncio
from decimal import Decimal
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from reservations.api.deps import get_distance_lookup, get_gateway_service, get_idempotency_store
from reservations.config import Settings
from reservations.core.idempotency import IdempotencyStore
from reservations.core.immutability import register_immutability_enforcement
from reservations.database import Base, get_db
from reservations.domain.pricing import DistanceQuote
from reservations.main import app
from reservations.models.booking import Booking
from reservations.models.user import Reward, User
from reservations.services.gateway_service import build_gateway_service
from reservations.utils.references import generate_reservation_number

BINANCE_WEBHOOK_SECRET = "binance-webhook-secret"
REDOTPAY_SECRET_KEY = "redotpay-secret"

register_immutability_enforcement()


class FakeDistanceLookup:
    """Distance lookup returning a fixed base price and recording its calls."""

    def __init__(self, base_price: str = "800", distance_km: str = "240", delay: float = 0):
        self.base_price = Decimal(base_price)
        self.distance_km = Decimal(distance_km)
        self.delay = delay
        self.calls: list[tuple[str, str]] = []

    async def lookup(self, origin, destination, vehicle_type, passengers) -> DistanceQuote:
        self.calls.append((origin, destination))
        if self.delay:
            await asyncio.sleep(self.delay)
        return DistanceQuote(self.distance_km, self.base_price, "approximate")


@pytest_asyncio.fixture(scope="function")
async def engine(tmp_path):
    """Per-test SQLite database with all tables created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'reservations.db'}", echo=False)

    @event.listens_for(engine.sync_engine, "connect")
    def disable_implicit_begin(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def begin_immediate(conn):
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
def settings() -> Settings:
    return Settings(
        binance_webhook_secret=BINANCE_WEBHOOK_SECRET,
        redotpay_secret_key=REDOTPAY_SECRET_KEY,
        binance_wallet_address="0xWALLET",
        bank_account_number="MA64011519000001205000534921",
    )


@pytest.fixture
def gateways(settings):
    return build_gateway_service(settings)


@pytest.fixture
def idempotency_store() -> IdempotencyStore:
    return IdempotencyStore()


@pytest.fixture
def fake_lookup():
    """Build a FakeDistanceLookup with custom pricing or delay."""
    return FakeDistanceLookup


@pytest.fixture
def distance_lookup(fake_lookup) -> FakeDistanceLookup:
    return fake_lookup()


@pytest_asyncio.fixture(scope="function")
async def client(
    session_factory, gateways, idempotency_store, distance_lookup
) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client with a session per request and test collaborators."""

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_gateway_service] = lambda: gateways
    app.dependency_overrides[get_idempotency_store] = lambda: idempotency_store
    app.dependency_overrides[get_distance_lookup] = lambda: distance_lookup

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== RECORD FACTORIES ====================
# Each factory commits through its own short-lived session. Call them
# before the test's own session opens a transaction.


@pytest.fixture
def make_user(session_factory):
    async def factory(email: str = "amina@example.com", points: int = 0, **values) -> User:
        async with session_factory() as session:
            user = User(email=email, name="Amina Benali", points=points, **values)
            session.add(user)
            await session.commit()
            return user

    return factory


@pytest.fixture
def make_booking(session_factory):
    async def factory(user_id=None, status: str = "pending", total: str = "1200") -> Booking:
        async with session_factory() as session:
            booking = Booking(
                reservation_number=await generate_reservation_number(session),
                user_id=user_id,
                customer_name="Amina Benali",
                customer_email="amina@example.com",
                service_type="hourly",
                vehicle_type="vito",
                hours=4,
                calculated_price=Decimal(total),
                total=Decimal(total),
                currency="MAD",
                status=status,
            )
            session.add(booking)
            await session.commit()
            return booking

    return factory


@pytest.fixture
def make_reward(session_factory):
    async def factory(
        name: str = "10% discount",
        points_required: int = 500,
        max_redemptions: int | None = None,
        current_redemptions: int = 0,
        active: bool = True,
        valid_until=None,
    ) -> Reward:
        async with session_factory() as session:
            reward = Reward(
                name=name,
                description=name,
                points_required=points_required,
                reward_type="discount",
                discount_percent=Decimal("10"),
                max_redemptions=max_redemptions,
                current_redemptions=current_redemptions,
                active=active,
                valid_until=valid_until,
            )
            session.add(reward)
            await session.commit()
            return reward

    return factory
