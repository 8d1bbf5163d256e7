"""Shared test fixtures."""

from collections.abc import AsyncIterator, Callable

import httpx
import pytest
from litestar.testing import AsyncTestClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from spotme_server.core.auth import AdminPrincipal
from spotme_server.models.base import Base
from spotme_server.services.geocoding import ReverseGeocoder

ADMIN_USERNAME = "dana"
ADMIN_PASSWORD = "correct horse battery staple"
GEOCODER_URL = "https://geocoder.test/reverse"


@pytest.fixture
async def async_engine():
    """Create async SQLite engine for testing."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Enable foreign keys for SQLite
    @event.listens_for(engine.sync_engine, "connect")
    def set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture
async def async_session(async_engine) -> AsyncIterator[AsyncSession]:
    """Create async session for testing."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def admin_principal() -> AdminPrincipal:
    """An authenticated admin as seen by services."""
    return AdminPrincipal(username=ADMIN_USERNAME, actor_name="Dana")


def _mock_geocoder(handler: Callable[[httpx.Request], httpx.Response]) -> ReverseGeocoder:
    """Geocoder whose upstream is answered by ``handler``."""
    return ReverseGeocoder(
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
        url=GEOCODER_URL,
    )


@pytest.fixture
def make_geocoder() -> Callable[[Callable[[httpx.Request], httpx.Response]], ReverseGeocoder]:
    """Factory for geocoders backed by a mock upstream."""
    return _mock_geocoder


@pytest.fixture
def geocoder() -> ReverseGeocoder:
    """Geocoder that resolves every position to the same place."""

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"display_name": "Times Square, New York"})

    return _mock_geocoder(handler)


@pytest.fixture
async def client(async_engine, geocoder) -> AsyncIterator[AsyncTestClient]:
    """Test client bound to the in-memory database."""
    from spotme_server.app import create_app

    app = create_app(db_engine=async_engine, geocoder=geocoder)
    async with AsyncTestClient(app=app) as test_client:
        yield test_client


@pytest.fixture
async def admin_user(async_engine):
    """Create an admin account."""
    from spotme_server.core.auth import create_admin_user

    session_maker = async_sessionmaker(async_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_maker() as session:
        return await create_admin_user(
            ADMIN_USERNAME, ADMIN_PASSWORD, session, display_name="Dana"
        )


@pytest.fixture
async def admin_headers(client: AsyncTestClient, admin_user) -> dict[str, str]:
    """Authorization header for a logged in admin."""
    response = await client.post(
        "/api/admin/login",
        json={"username": ADMIN_USERNAME, "password": ADMIN_PASSWORD},
    )
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['token']}"}
