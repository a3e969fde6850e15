"""
Test fixtures for the PoolOps identity test suite.

This module provides shared fixtures used across all test files:

  - db_engine / db_session: Fresh in-memory SQLite database for each test
  - session_factory: Session maker bound to the test engine, for seeding
    and for reading back what a request persisted
  - storage: SqlStorage over db_session, for service-level tests
  - client: Async HTTP test client (unauthenticated)
  - organization / other_organization / admin_organization: Tenants
  - org_admin / technician / system_admin / other_org_admin: Users

Key design decisions:
  - In-memory SQLite (sqlite+aiosqlite://) is used for speed and isolation.
    Each test gets a completely fresh database — no state leaks between tests.
  - We override FastAPI's get_db dependency to inject a session bound to
    the test engine, so the application code works exactly as it does in
    production.
  - Users are seeded directly through the ORM, the way an operator would
    provision them. Requests authenticate with a Bearer session token minted
    by headers_for(); the login flow itself is covered in test_auth.py.
  - SECRET_KEY and TOKEN_ENCRYPTION_KEY are required settings, so they are
    placed in the environment before anything under app/ is imported.
"""

import os

from cryptography.fernet import Fernet

os.environ.setdefault("SECRET_KEY", "test-secret-key-do-not-use-in-production")
os.environ.setdefault("TOKEN_ENCRYPTION_KEY", Fernet.generate_key().decode())
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import (  # noqa: E402
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.database import Base, get_db  # noqa: E402
from app.main import app  # noqa: E402
from app.models.organization import Organization  # noqa: E402
from app.models.user import AuthProvider, User, UserRole  # noqa: E402
from app.security import create_session_token, hash_password  # noqa: E402
from app.storage import SqlStorage  # noqa: E402


# In-memory SQLite for fast, isolated tests
TEST_DATABASE_URL = "sqlite+aiosqlite://"

DEFAULT_PASSWORD = "PoolPass123!"


@pytest.fixture
def headers_for():
    """Factory fixture: Authorization header carrying a valid session for a user."""

    def _headers(user: User) -> dict[str, str]:
        return {"Authorization": f"Bearer {create_session_token(str(user.id))}"}

    return _headers


@pytest_asyncio.fixture
async def db_engine():
    """Create a fresh async engine with all tables for each test."""
    engine = create_async_engine(TEST_DATABASE_URL)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(db_engine):
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Provide an async session bound to the test engine."""
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def storage(db_session):
    return SqlStorage(db_session)


@pytest_asyncio.fixture
async def client(session_factory):
    """
    Async HTTP test client with the test database injected.

    This overrides the get_db dependency so all requests hit the
    in-memory test database instead of the real one.
    """

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Seeding helpers
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def make_organization(session_factory):
    """Factory fixture: insert an Organization and return it."""

    async def _make(name: str, slug: str | None = None, is_system_admin: bool = False):
        async with session_factory() as session:
            organization = Organization(
                name=name,
                slug=slug or name.lower().replace(" ", "-"),
                is_system_admin=is_system_admin,
            )
            session.add(organization)
            await session.commit()
            return organization

    return _make


@pytest_asyncio.fixture
async def make_user(session_factory):
    """
    Factory fixture: insert a User and return it.

    legacy=True stores the password as plaintext, the way accounts imported
    from the old system arrive. password=None creates an OAuth-only user.
    """

    async def _make(
        username: str,
        organization: Organization,
        role: UserRole = UserRole.TECHNICIAN,
        password: str | None = DEFAULT_PASSWORD,
        legacy: bool = False,
        is_active: bool = True,
        email: str | None = None,
        external_id: str | None = None,
    ):
        if password is None:
            stored = None
        elif legacy:
            stored = password
        else:
            stored = hash_password(password)

        async with session_factory() as session:
            user = User(
                username=username,
                email=email or f"{username}@example.com",
                name=username.title(),
                hashed_password=stored,
                role=role,
                organization_id=organization.id,
                is_active=is_active,
                auth_provider=AuthProvider.OAUTH if external_id else AuthProvider.LOCAL,
                external_id=external_id,
            )
            session.add(user)
            await session.commit()
            return user

    return _make


@pytest_asyncio.fixture
async def load_user(session_factory):
    """Read a user back in a fresh session, to see what a request persisted."""

    async def _load(user_id):
        async with session_factory() as session:
            return await session.get(User, user_id)

    return _load


# ---------------------------------------------------------------------------
# Tenants and principals
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def organization(make_organization):
    return await make_organization("Blue Lagoon Pools")


@pytest_asyncio.fixture
async def other_organization(make_organization):
    return await make_organization("Crystal Clear Pools")


@pytest_asyncio.fixture
async def admin_organization(make_organization):
    return await make_organization("PoolOps Administration", slug="poolops-admin", is_system_admin=True)


@pytest_asyncio.fixture
async def org_admin(make_user, organization):
    return await make_user("dana", organization, role=UserRole.ORG_ADMIN)


@pytest_asyncio.fixture
async def technician(make_user, organization):
    return await make_user("tom", organization, role=UserRole.TECHNICIAN)


@pytest_asyncio.fixture
async def other_org_admin(make_user, other_organization):
    return await make_user("olga", other_organization, role=UserRole.ORG_ADMIN)


@pytest_asyncio.fixture
async def system_admin(make_user, admin_organization):
    return await make_user("root", admin_organization, role=UserRole.SYSTEM_ADMIN)
