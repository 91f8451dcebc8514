"""Shared pytest fixtures for the flight-search test suite."""
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from api.main import app
from core.conversation_store import ConversationStore
from db.database import get_db
from db.models import Base, Conversation

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(TEST_DB_URL, echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine) -> AsyncSession:
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)
    async with factory() as session:
        yield session


@pytest_asyncio.fixture
async def store(db):
    return ConversationStore(db)


@pytest_asyncio.fixture
async def conversation(store) -> Conversation:
    """Insert an active conversation with its default parameter row."""
    convo = await store.create_conversation("test-user")
    await store.create_search_parameters(convo.id)
    return convo


# ── API test client ────────────────────────────────────────────────────────────

@pytest_asyncio.fixture
async def api_client(engine):
    """AsyncClient wired to FastAPI with an in-memory DB override."""
    factory = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

    async def override_get_db():
        async with factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test"
    ) as client:
        yield client
    app.dependency_overrides.clear()
