import os

# Must be set before app.core.config is imported
os.environ.setdefault("TELEMETRY_ENABLED", "false")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

import pytest
import pytest_asyncio
import httpx

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession

# Import Base + all models so metadata is complete
from app.models.base import Base
from app.models.category import Category  # noqa: F401
from app.models.user import User  # noqa: F401
from app.models.listing import Listing  # noqa: F401
from app.models.audit_log import AuditLog  # noqa: F401

from app.main import app
from app.core.db import get_db
from app.services.storage import LocalObjectStore, get_asset_store, get_upload_store

from fixtures_seed import seed_category, seed_user, seed_listing  # noqa: F401


def _test_db_url(tmp_path) -> str:
    # Postgres when provided, otherwise a throwaway sqlite file per test
    return os.getenv("DATABASE_URL_TEST") or f"sqlite+aiosqlite:///{tmp_path / 'test.db'}"


@pytest_asyncio.fixture
async def async_engine(tmp_path):
    engine = create_async_engine(_test_db_url(tmp_path), future=True)
    try:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
            await conn.run_sync(Base.metadata.create_all)
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def upload_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "uploads")


@pytest.fixture
def asset_store(tmp_path) -> LocalObjectStore:
    return LocalObjectStore(tmp_path / "assets")


@pytest_asyncio.fixture
async def client(session_factory, upload_store, asset_store):
    """
    HTTP client wired to the test DB (one session per request, like production)
    and to per-test upload/asset directories.
    """
    async def _override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_upload_store] = lambda: upload_store
    app.dependency_overrides[get_asset_store] = lambda: asset_store

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
