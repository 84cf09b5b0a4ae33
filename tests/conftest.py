"""
Test infrastructure for the Community Board API.

Strategy
--------
- Every storage-dependent test runs twice through the parametrized
  ``store`` fixture: once against a ``JsonStore`` in ``tmp_path`` and once
  against a ``SqlStore`` on SQLite in-memory via aiosqlite.
- StaticPool forces all async tasks to share the same in-memory database
  connection, which is required because SQLite in-memory databases are
  connection-scoped; a new connection would see an empty database.
- A fresh engine is built per test, so each test starts from empty tables
  without truncation.
- The app's ``get_store`` dependency is overridden so every test-time
  request uses the same store the test seeds and inspects.
- UPLOAD_DIR points at a temp directory before the app is imported, so
  upload tests never write into the working tree.
"""
import os
import tempfile
from contextlib import asynccontextmanager
from pathlib import Path

os.environ.setdefault("UPLOAD_DIR", str(Path(tempfile.gettempdir()) / "board-test-uploads"))

import pytest_asyncio  # noqa: E402
from httpx import AsyncClient, ASGITransport  # noqa: E402
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.database import Base  # noqa: E402
from app.dependencies import get_store  # noqa: E402
from app.main import app  # noqa: E402
from app.middleware import install_query_counter  # noqa: E402
from app.storage import JsonStore, SqlStore  # noqa: E402

# ---------------------------------------------------------------------------
# Test database — SQLite in-memory with aiosqlite
# ---------------------------------------------------------------------------

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@asynccontextmanager
async def open_sql_store():
    engine_test = create_async_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    install_query_counter(engine_test)
    async with engine_test.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async_session_test = async_sessionmaker(
        engine_test,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    try:
        async with async_session_test() as session:
            yield SqlStore(session)
    finally:
        await engine_test.dispose()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def json_store(tmp_path) -> JsonStore:
    return JsonStore(tmp_path / "data")


@pytest_asyncio.fixture
async def sql_store():
    async with open_sql_store() as store:
        yield store


@pytest_asyncio.fixture(params=["json", "sql"])
async def store(request, tmp_path):
    """The same test body against both storage backends."""
    if request.param == "json":
        yield JsonStore(tmp_path / "data")
    else:
        async with open_sql_store() as sql:
            yield sql


@pytest_asyncio.fixture
async def async_client(store) -> AsyncClient:
    """
    Yield an httpx.AsyncClient wired to the FastAPI app via ASGITransport,
    with ``get_store`` overridden to hand out the test's ``store``.
    """
    async def override_get_store():
        yield store

    app.dependency_overrides[get_store] = override_get_store
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
