"""Shared pytest fixtures for backend tests."""

import os
from typing import AsyncGenerator, Callable
from uuid import UUID, uuid4

# Configure settings before the application modules are imported
os.environ.setdefault("DATABASE_URL_OVERRIDE", "sqlite+aiosqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from secrets_access.database import Base, get_db
from secrets_access.main import app
from secrets_access.schemas.membership import UserSummary
from secrets_access.services.auth_service import create_access_token
from secrets_access.services.membership_store import MembershipStore

# Use in-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture(scope="function")
async def engine():
    """Create a test database engine with SQLite."""
    engine = create_async_engine(
        SQLALCHEMY_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture(scope="function")
def session_maker(engine) -> async_sessionmaker:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture(scope="function")
async def db_session(session_maker) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_maker() as session:
        yield session


@pytest.fixture
def store(db_session: AsyncSession) -> MembershipStore:
    return MembershipStore(db_session)


@pytest.fixture(scope="function")
async def client(session_maker) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database dependency override."""

    async def override_get_db():
        async with session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _make_user(name: str) -> UserSummary:
    return UserSummary(id=uuid4(), email=f"{name}@example.com", display_name=name.title())


@pytest.fixture
def alice() -> UserSummary:
    return _make_user("alice")


@pytest.fixture
def bob() -> UserSummary:
    return _make_user("bob")


@pytest.fixture
def carol() -> UserSummary:
    return _make_user("carol")


@pytest.fixture
def dave() -> UserSummary:
    return _make_user("dave")


@pytest.fixture
def headers_for() -> Callable[[UserSummary], dict]:
    """Build authorization headers for a user."""

    def _headers(user: UserSummary) -> dict:
        token = create_access_token(data={"sub": str(user.id), "email": user.email})
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def user_id() -> UUID:
    return uuid4()
