"""Shared fixtures: in-memory SQLite, a temporary object store, a mocked queue and an HTTP client."""
import os

os.environ.setdefault("INVEST_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("INVEST_SERVE_FILES", "false")
os.environ.setdefault("INVEST_SEED_ON_STARTUP", "false")
os.environ.setdefault("INVEST_LOG_FORMAT", "text")
os.environ.setdefault("AUTH_JWT_SECRET_KEY", "test-secret-key")

import uuid
from unittest.mock import AsyncMock

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import apps.invest.models  # noqa: F401
import core.auth.models  # noqa: F401
from apps.invest.db import get_invest_session
from apps.invest.queue import QueueJob, get_document_queue
from apps.invest.storage import LocalObjectStorage, get_storage
from main import app

PASSWORD = "Password123"


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(test_engine):
    return sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def storage(tmp_path):
    return LocalObjectStorage(str(tmp_path / "storage"), "http://test/files")


@pytest.fixture
def queue():
    """Queue double that records enqueued jobs instead of talking to Redis."""
    mock = AsyncMock()

    async def enqueue(document_id, priority="normal"):
        return QueueJob(id=str(uuid.uuid4()), document_id=str(document_id), priority=priority, timestamp=0.0)

    mock.enqueue.side_effect = enqueue
    return mock


@pytest.fixture
async def client(session_factory, storage, queue):
    async def override_get_session():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_invest_session] = override_get_session
    app.dependency_overrides[get_storage] = lambda: storage
    app.dependency_overrides[get_document_queue] = lambda: queue

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()


async def register_and_login(client: AsyncClient, email: str, name: str = "Test User") -> dict:
    response = await client.post(
        "/api/v1/auth/register",
        json={"name": name, "email": email, "password": PASSWORD},
    )
    assert response.status_code == 201, response.text
    response = await client.post("/api/v1/auth/login", json={"email": email, "password": PASSWORD})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


@pytest.fixture
async def auth_headers(client):
    return await register_and_login(client, "owner@example.com", "Owner")


@pytest.fixture
async def other_headers(client):
    return await register_and_login(client, "other@example.com", "Other")


@pytest.fixture
async def uploaded_document(client, auth_headers):
    """A CSV invoice uploaded by the owner."""
    content = b"Invoice Number,Date,Total Amount\nINV-001,01/15/2024,1250.50\n"
    response = await client.post(
        "/api/v1/invest/documents/upload",
        headers=auth_headers,
        files={"file": ("invoice.csv", content, "text/csv")},
        data={"name": "January invoice", "tags": "invoice, q1", "category": "finance"},
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.fixture
def register(client):
    """Register a user and return auth headers for them."""
    async def _register(email: str, name: str = "Test User") -> dict:
        return await register_and_login(client, email, name)
    return _register
