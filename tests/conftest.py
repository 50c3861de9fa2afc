"""
Shared fixtures for the table booking tests.

Every test gets its own in-memory SQLite database, so bookings never leak
between tests. The app is driven through httpx with the session dependency
pointed at that database.
"""

import os

# Set before the app modules are imported, database.py fails fast without it
os.environ["DATABASE_URL"] = "sqlite+aiosqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
from httpx import ASGITransport, AsyncClient

from booking import AvailabilityIndex, BookingGuard
from database import ReservationStore, build_engine, close_db, get_session, init_db, make_sessionmaker
from main import app


@pytest.fixture
async def engine():
    engine = build_engine("sqlite+aiosqlite://")
    await init_db(engine)
    yield engine
    await close_db(engine)


@pytest.fixture
async def session(engine):
    async with make_sessionmaker(engine)() as session:
        yield session


@pytest.fixture
def store(session):
    return ReservationStore(session)


@pytest.fixture
def guard(store):
    return BookingGuard(store)


@pytest.fixture
def index(store):
    return AvailabilityIndex(store)


@pytest.fixture
async def client(engine):
    maker = make_sessionmaker(engine)

    async def override_get_session():
        async with maker() as session:
            yield session

    app.dependency_overrides[get_session] = override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture
async def logged_in_client(client):
    response = await client.post("/register", json={"username": "alice", "password": "secret123"})
    assert response.status_code == 201
    return client
