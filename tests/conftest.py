"""Shared test configuration and fixtures.

Each test gets a fresh database: a SQLite file under ``tmp_path`` (via
aiosqlite) unless ``TEST_DATABASE_URL`` points at a PostgreSQL test database.
Inside a test, ``db_session`` runs in an outer transaction that always rolls
back; service-level commits only release savepoints.
"""

import os
from collections.abc import AsyncGenerator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from hospede.config import settings
from hospede.database import Base, get_db
from hospede.main import app
from hospede.models import Property
from hospede.services.cache import InMemoryCache
from hospede.services.container import EngineServices, build_services

from factories import create_property

_TEST_DATABASE_URL = os.getenv("TEST_DATABASE_URL")


def _make_engine(url: str) -> AsyncEngine:
    engine = create_async_engine(url, echo=False, poolclass=NullPool)
    if url.startswith("sqlite"):
        # Let SQLAlchemy, not the driver, emit BEGIN so SAVEPOINT works.
        @event.listens_for(engine.sync_engine, "connect")
        def _do_connect(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _do_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


# ---------------------------------------------------------------------------
# Per-test database
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """Engine on an empty schema, dropped again after the test."""
    url = _TEST_DATABASE_URL or f"sqlite+aiosqlite:///{tmp_path / 'hospede_test.db'}"
    engine = _make_engine(url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Independent, really-committing sessions (for concurrency and job tests)."""
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Yield an async session wrapped in a transaction that always rolls back."""
    async with test_engine.connect() as connection:
        transaction = await connection.begin()
        session = AsyncSession(
            bind=connection,
            expire_on_commit=False,
            join_transaction_mode="create_savepoint",
        )

        try:
            yield session
        finally:
            await session.close()
            await transaction.rollback()


@pytest.fixture
def services() -> EngineServices:
    """Engine services with an in-memory cache and no advisor."""
    return build_services(settings, cache=InMemoryCache())


@pytest_asyncio.fixture
async def client(db_session: AsyncSession, services: EngineServices) -> AsyncGenerator[AsyncClient, None]:
    """Provide an httpx AsyncClient wired to use the test DB session."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    # ASGITransport does not run the lifespan, so install services directly.
    app.state.services = services

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://testserver") as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Data fixtures
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def test_property(db_session: AsyncSession) -> Property:
    """A plain listing with no reviews or amenities."""
    return await create_property(db_session)
