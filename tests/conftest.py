"""Shared fixtures: in-memory database, fake LLM provider, ASGI client."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  register models with Base
from database import Base
from translator.providers import ProviderClient


class FakeProvider(ProviderClient):
    """Records prompts and answers with a fixed reply."""

    name = "fake"

    def __init__(self, reply: str = "translated"):
        self.reply = reply
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.reply


@pytest_asyncio.fixture
async def engine():
    # StaticPool keeps every session on the same in-memory database
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def provider():
    return FakeProvider()


@pytest.fixture
def upload_dir(tmp_path):
    return tmp_path / "uploads"


@pytest.fixture
def app(db, provider, upload_dir):
    """The FastAPI app with database, provider and upload directory overridden."""
    from main import app as _app, get_provider, get_upload_dir
    from database import get_db

    async def _override_get_db():
        yield db

    _app.dependency_overrides[get_db] = _override_get_db
    _app.dependency_overrides[get_provider] = lambda: provider
    _app.dependency_overrides[get_upload_dir] = lambda: upload_dir
    yield _app
    _app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app):
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
