"""
Test fixtures for Brocante backend tests.

Provides:
- In-memory SQLite database for isolated testing
- Async test client with proper session management
- Test data factories for products and reservations
"""
# IMPORTANT: Set environment variables BEFORE any other imports
import os

TEST_ADMIN_SECRET = "test_admin_secret"
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

os.environ["DATABASE_URL"] = TEST_DATABASE_URL
os.environ["ADMIN_SECRET"] = TEST_ADMIN_SECRET
# Development mode for tests (disables ALLOWED_ORIGINS requirement)
os.environ["ENVIRONMENT"] = "development"
# The lifespan is not run by ASGITransport, but keep the sweeper off regardless
os.environ["SWEEP_ENABLED"] = "false"
# All test requests share one client address
os.environ["RESERVATION_RATE_LIMIT"] = "1000/minute"
os.environ.pop("RESERVATION_WEBHOOK_URL", None)

import pytest
from datetime import datetime, timedelta
from decimal import Decimal
from typing import AsyncGenerator, Optional

from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import (
    create_async_engine,
    AsyncSession,
    async_sessionmaker,
)
from sqlalchemy.pool import StaticPool

from brocante.app.core.base import Base
from brocante.app.main import app
from brocante.app.api.deps import get_session
from brocante.app.models.product import Product
from brocante.app.models.reservation import Reservation
from brocante.app.models.faq import Faq  # noqa: F401 - register with Base.metadata
from brocante.app.services.products import generate_slug


def future_pickup(days: int = 3, hour: int = 17) -> str:
    """ISO-8601 pickup time a few days from now, UTC with trailing Z."""
    moment = (datetime.utcnow() + timedelta(days=days)).replace(hour=hour, minute=0, second=0, microsecond=0)
    return moment.isoformat() + "Z"


@pytest.fixture
async def test_engine():
    """
    Fresh in-memory database per test.
    StaticPool keeps a single connection so every session sees the same data.
    """
    engine = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
        echo=False,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine) -> async_sessionmaker:
    return async_sessionmaker(
        bind=test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """
    Async HTTP client for testing API endpoints.

    Each API call gets its own session to avoid transaction conflicts
    with the test_session used for fixtures.
    """
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def admin_header() -> dict:
    return {"X-Admin-Token": TEST_ADMIN_SECRET}


# --- Test Data Factories ---

@pytest.fixture
def make_product(test_session: AsyncSession):
    """Factory: insert a product and return it."""
    counter = {"n": 0}

    async def _make(
        name: str = "Eichenstuhl",
        category: str = "furniture",
        price: str = "45.00",
        is_available: bool = True,
        is_pinned: bool = False,
        image_urls: Optional[list] = None,
        created_at: Optional[datetime] = None,
    ) -> Product:
        counter["n"] += 1
        product_id = f"{counter['n']:08x}-0000-4000-8000-000000000000"
        product = Product(
            id=product_id,
            name=name,
            slug=generate_slug(name, product_id),
            description=f"{name} in gutem Zustand",
            price=Decimal(price),
            category=category,
            image_urls=image_urls if image_urls is not None else [f"https://img.example/{product_id}/1.jpg"],
            is_available=is_available,
            is_pinned=is_pinned,
            created_at=created_at or datetime.utcnow(),
        )
        test_session.add(product)
        await test_session.commit()
        await test_session.refresh(product)
        return product

    return _make


@pytest.fixture
async def test_product(make_product) -> Product:
    """An available product."""
    return await make_product()


@pytest.fixture
async def sold_product(make_product) -> Product:
    """A product that can no longer be reserved."""
    return await make_product(name="Stehlampe", category="decor", is_available=False)


@pytest.fixture
def make_reservation(test_session: AsyncSession):
    """Factory: insert a reservation row directly, bypassing the lifecycle checks."""
    counter = {"n": 0}

    async def _make(
        product: Product,
        status: str = "pending",
        created_at: Optional[datetime] = None,
        expires_at: Optional[datetime] = None,
    ) -> Reservation:
        counter["n"] += 1
        created_at = created_at or datetime.utcnow()
        reservation = Reservation(
            id=f"res_test_{counter['n']:04d}",
            product_id=product.id,
            customer_name="Anna Muster",
            customer_phone="0791234567",
            pickup_time=created_at + timedelta(days=2),
            status=status,
            created_at=created_at,
            expires_at=expires_at or created_at + timedelta(hours=48),
        )
        test_session.add(reservation)
        await test_session.commit()
        await test_session.refresh(reservation)
        return reservation

    return _make
