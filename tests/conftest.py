"""Shared test fixtures: async SQLite in-memory DB, fake mailer, test client."""

import os

os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("FRONTEND_URL", "https://app.test")

from collections.abc import AsyncGenerator  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

# Import all models so metadata is populated
import backoffice.models  # noqa: F401, E402
from backoffice.core.database import get_session  # noqa: E402
from backoffice.main import app  # noqa: E402
from backoffice.models.company import Company  # noqa: E402
from backoffice.models.user import User  # noqa: E402
from backoffice.services.notifications import Notifier, get_notifier  # noqa: E402
from factories import RecordingSender, make_company, make_user  # noqa: E402


@pytest.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite://", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as sess:
        yield sess
        await sess.rollback()


@pytest.fixture
def sender() -> RecordingSender:
    return RecordingSender()


@pytest.fixture
def notifier(sender) -> Notifier:
    return Notifier(sender)


@pytest.fixture
async def client(session, notifier) -> AsyncGenerator[AsyncClient, None]:
    """HTTPX async test client with DB session and notifier overrides."""

    async def _override_session():
        yield session

    app.dependency_overrides[get_session] = _override_session
    app.dependency_overrides[get_notifier] = lambda: notifier

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def superuser(session) -> User:
    return await make_user(session, "root@backoffice.com", is_superuser=True)


@pytest.fixture
async def company_admin(session) -> User:
    return await make_user(session, "boss@acme.com", name="Boss")


@pytest.fixture
async def company(session, company_admin) -> Company:
    return await make_company(session, company_admin)
