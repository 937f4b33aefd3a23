"""Shared fixtures: in-memory SQLite per test, FastAPI client, fake storage and model."""

import os

# Never talk to real services from tests.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("OPENAI_API_KEY", "sk-test-fake-key")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("STORAGE_URL", "https://storage.test")
os.environ.setdefault("STORAGE_SERVICE_KEY", "service-key")
os.environ["AUTO_CREATE_TABLES"] = "false"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.security import create_access_token, get_password_hash
from app.core.services import CategorizationResult
from app.core.storage import get_storage
from app.db.base import Base
from app.db.models import User
from app.db.session import get_db
from app.main import app

PASSWORD = "correct-horse-battery"


class FakeStorage:
    """In-memory stand-in for ObjectStorage."""

    configured = True

    def __init__(self):
        self.objects = {}
        self.removed = []

    async def upload(self, bucket, key, data, content_type):
        self.objects[(bucket, key)] = (data, content_type)

    async def create_signed_url(self, bucket, key, expires_in=3600):
        return f"https://storage.test/{bucket}/{key}?token=signed"

    async def remove(self, bucket, key):
        self.removed.append((bucket, key))
        self.objects.pop((bucket, key), None)


class FakeCategorizer:
    """Replaces categorize_content; records every analysis it is given."""

    def __init__(self):
        self.calls = []
        self.result = CategorizationResult(
            suggested_folder="Groceries",
            confidence=0.92,
            reasoning="Shopping list item",
            alternatives=["Errands", "Home"],
        )
        self.error = None

    async def __call__(self, analysis):
        self.calls.append(analysis)
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://", echo=False, poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def fake_storage():
    return FakeStorage()


@pytest.fixture
def fake_categorizer(monkeypatch):
    fake = FakeCategorizer()
    monkeypatch.setattr("app.api.routes.pipeline.categorize_content", fake)
    return fake


@pytest.fixture
async def app_overrides(session_factory, fake_storage):
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_storage] = lambda: fake_storage
    yield
    app.dependency_overrides.clear()


async def make_user(db, email="ada@example.com", name="Ada", username=None):
    user = User(
        name=name,
        username=username,
        email=email,
        password_hash=get_password_hash(PASSWORD),
    )
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


def session_cookie(user_id: int) -> dict:
    return {"Cookie": f"{settings.SESSION_COOKIE_NAME}={create_access_token(user_id)}"}


@pytest.fixture
async def user(test_db):
    return await make_user(test_db)


@pytest.fixture
async def client(app_overrides):
    """Unauthenticated client."""
    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c


@pytest.fixture
async def auth_client(app_overrides, user):
    """Client carrying a session cookie for ``user``."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        headers=session_cookie(user.id),
    ) as c:
        yield c
