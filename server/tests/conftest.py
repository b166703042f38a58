"""Test configuration and fixtures."""

import os

# The application engine and settings are created at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("JWT_SECRET", "test-secret-for-storefront-access-tokens")

from datetime import date, timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from storefront.core.config import settings  # noqa: E402
from storefront.core.database import Base, build_engine, build_session_factory, get_db  # noqa: E402
from storefront.models import *  # noqa: E402,F403 - Import all models
from storefront.schemas.tour import CreateTourRequest  # noqa: E402
from storefront.schemas.tour_date import CreateTourDateRequest  # noqa: E402
from storefront.services.change_feed import ChangeFeed  # noqa: E402
from storefront.services.tour_date_service import TourDateService  # noqa: E402
from storefront.services.tour_service import TourService  # noqa: E402

# Test database URL (in-memory SQLite for speed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


def make_token(user_id: str = "user-123", roles: list[str] | None = None, **claims) -> str:
    """Sign an access token the way the auth provider would."""
    payload = {"sub": user_id, "roles": roles or [], **claims}
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = build_engine(TEST_DATABASE_URL)

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    # Drop tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async with build_session_factory(test_engine)() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def test_app(test_session):
    """Create the application without lifespan hooks, bound to the test session."""
    from storefront.main import create_app

    app = create_app(use_lifespan=False)

    # Override database dependency
    async def override_get_db():
        yield test_session

    app.dependency_overrides[get_db] = override_get_db

    yield app

    # Clean up
    app.dependency_overrides.clear()


@pytest_asyncio.fixture(scope="function")
async def test_client(test_app):
    """Create a test HTTP client."""
    transport = ASGITransport(app=test_app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def feed():
    """A change feed private to the test."""
    return ChangeFeed(queue_size=10)


@pytest.fixture
def user_headers():
    """Authorization header for a regular customer."""
    return {"Authorization": f"Bearer {make_token('user-123')}"}


@pytest.fixture
def admin_headers():
    """Authorization header for a back-office admin."""
    return {"Authorization": f"Bearer {make_token('admin-1', roles=['admin'])}"}


@pytest.fixture
def sample_tour_data():
    """Sample tour data for testing."""
    return {
        "name": "Mangrove Canoe Trail",
        "description": "Guided canoe trip through the estuary mangroves",
        "price": "450.00",
        "duration": "3 hours",
        "location": "Umhlanga Lagoon",
        "max_participants": 20
    }


@pytest_asyncio.fixture
async def sample_tour(test_session, sample_tour_data, feed):
    """A persisted active tour."""
    return await TourService(test_session, feed=feed).create_tour(CreateTourRequest(**sample_tour_data))


@pytest_asyncio.fixture
async def sample_tour_date(test_session, sample_tour, feed):
    """A persisted tour date a week from today with room for five people."""
    return await TourDateService(test_session, feed=feed).create_tour_date(
        CreateTourDateRequest(
            tour_id=str(sample_tour.id),
            available_date=date.today() + timedelta(days=7),
            max_bookings=5
        )
    )


@pytest.fixture
def sample_product_data():
    """Sample product data for testing."""
    return {
        "name": "Reusable Water Bottle",
        "description": "Stainless steel, 750ml",
        "category": "Gear",
        "price": Decimal("129.99"),
        "stock_quantity": 3
    }
