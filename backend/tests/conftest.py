"""
dineAR Backend — Test Configuration (conftest.py)
==================================================

What:  Shared pytest fixtures for the entire test suite.
Why:   Provides reusable test infrastructure (SQLite database, API client,
       temp upload directory, image bytes, signed-up users).
How:   Environment variables are set at the top of this module, before any
       dinear import, because dinear.config reads them at import time.

Fixture Hierarchy (all function-scoped):
    ├── database:        create_all before the test, drop_all + dispose after
    ├── db_session:      AsyncSession on the test database
    ├── app:             fresh create_app() (fresh rate-limit counters)
    ├── test_client:     HTTPX AsyncClient over ASGITransport
    ├── upload_dir:      the upload root, emptied after each test
    ├── mock_db_session: AsyncMock session for pure unit tests
    └── sample_image_bytes
"""

import os
import tempfile

# ══════════════════════════════════════════════════════════════════════════
# Environment Setup (before any dinear import)
# ══════════════════════════════════════════════════════════════════════════

_TEST_ROOT = tempfile.mkdtemp(prefix="dinear_test_")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT}/test.db"
os.environ["UPLOAD_DIR"] = os.path.join(_TEST_ROOT, "uploads")
os.environ["ENVIRONMENT"] = "testing"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["JWT_SECRET"] = "test-secret-with-enough-length-for-hs256"
os.environ["BCRYPT_ROUNDS"] = "4"  # minimum cost keeps the suite fast
os.environ["CLIENT_URL"] = "http://menu.test"

from typing import Dict  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402

from dinear.database import Base, async_session_factory, create_schema, engine  # noqa: E402
from dinear.main import create_app  # noqa: E402
from dinear.services.upload_service import upload_service  # noqa: E402


# Smallest byte strings with the right magic numbers. Only the declared
# content type is checked, but realistic bytes keep the fixtures honest.
JPEG_BYTES = b"\xff\xd8\xff\xe0\x00\x10JFIF\x00\x01\x01\x00\x00\x01\x00\x01\x00\x00\xff\xd9"
PNG_BYTES = b"\x89PNG\r\n\x1a\n\x00\x00\x00\rIHDR\x00\x00\x00\x01\x00\x00\x00\x01\x08\x02\x00\x00\x00"


# ══════════════════════════════════════════════════════════════════════════
# Database
# ══════════════════════════════════════════════════════════════════════════

@pytest_asyncio.fixture
async def database():
    """
    Fresh schema per test.

    Why dispose: aiosqlite connections belong to the event loop that opened
    them, and pytest-asyncio gives every test its own loop.
    """
    await create_schema()
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(database):
    async with async_session_factory() as session:
        yield session


@pytest.fixture
def mock_db_session():
    """AsyncMock session for tests that must not touch a database."""
    session = AsyncMock()
    session.execute = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.delete = AsyncMock()
    session.close = AsyncMock()
    session.add = MagicMock()
    return session


# ══════════════════════════════════════════════════════════════════════════
# Files
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def upload_dir():
    """The upload root used by the app; emptied after the test."""
    path = upload_service.upload_dir
    path.mkdir(parents=True, exist_ok=True)
    yield path
    for child in path.iterdir():
        if child.is_file():
            child.unlink()


@pytest.fixture
def sample_image_bytes():
    return JPEG_BYTES


def image_files(content: bytes = JPEG_BYTES, content_type: str = "image/jpeg", filename: str = "dish.jpg"):
    """httpx `files=` argument carrying one image on the `image` field."""
    return {"image": (filename, content, content_type)}


def stored_files(path) -> list:
    return sorted(child.name for child in path.iterdir() if child.is_file())


# ══════════════════════════════════════════════════════════════════════════
# HTTP
# ══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def app():
    return create_app()


@pytest_asyncio.fixture
async def test_client(app, database, upload_dir):
    """
    HTTPX AsyncClient configured to talk to a fresh FastAPI app.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/health")
            assert response.status_code == 200
    """
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


def bearer(token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


async def signup(client: AsyncClient, email: str = "a@x.com", password: str = "pass1234") -> Dict:
    """Sign up and return the response `data` ({user, token})."""
    response = await client.post("/api/auth/signup", json={"email": email, "password": password})
    assert response.status_code == 201, response.text
    return response.json()["data"]


async def create_dish(client: AsyncClient, token: str, name: str = "Ramen", plate_size: str = "small") -> Dict:
    """Create a dish and return the response `data.dish`."""
    response = await client.post(
        "/api/dishes",
        data={"name": name, "plate_size": plate_size},
        files=image_files(),
        headers=bearer(token),
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]["dish"]
