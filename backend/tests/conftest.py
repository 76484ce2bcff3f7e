"""
Pytest fixtures for the AgroUs API test suite.

Provides:
- A throwaway SQLite database per test (aiosqlite, NullPool so the engine can be
  driven from any event loop: asyncio.run in service tests, TestClient's loop
  in API tests)
- Two users (owner / other) to check record ownership
- A FastAPI TestClient with the session and current user overridden
"""

import asyncio
import os
import tempfile
import uuid

# Must be set before core.config is imported anywhere
os.environ.setdefault(
    "DATABASE_URL", f"sqlite+aiosqlite:///{os.path.join(tempfile.gettempdir(), 'agrous_import.db')}"
)
os.environ.setdefault("LEDGER_MAX_ATTEMPTS", "5")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

import db.models  # noqa: F401
from core.auth import current_active_user
from db.database import Base, get_async_session
from db.inventory.item import Item
from db.users import User


def _make_user(email: str) -> User:
    return User(
        id=uuid.uuid4(),
        email=email,
        hashed_password="not-a-real-hash",
        is_active=True,
        is_superuser=False,
        is_verified=True,
    )


@pytest.fixture
def engine(tmp_path):
    eng = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def _create():
        async with eng.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create())
    yield eng
    asyncio.run(eng.dispose())


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
def users(session_maker):
    owner = _make_user("owner@farm.test")
    other = _make_user("other@farm.test")

    async def _insert():
        async with session_maker() as s:
            s.add_all([owner, other])
            await s.commit()

    asyncio.run(_insert())
    return owner, other


@pytest.fixture
def owner(users):
    return users[0]


@pytest.fixture
def other_user(users):
    return users[1]


@pytest.fixture
def make_item(session_maker, owner):
    """Create an item directly in the database (stock starts at 0)."""

    def _make(name="Semente de Soja", category="Sementes", unit="Sacos (sc)", user=None):
        item = Item(
            user_id=(user or owner).id,
            name=name,
            category=category,
            unit=unit,
            current_stock=0,
        )

        async def _insert():
            async with session_maker() as s:
                s.add(item)
                await s.commit()
                await s.refresh(item)

        asyncio.run(_insert())
        return item

    return _make


@pytest.fixture
def run(session_maker):
    """Run `fn(session)` on a fresh session inside its own event loop."""

    def _run(fn):
        async def _main():
            async with session_maker() as s:
                return await fn(s)

        return asyncio.run(_main())

    return _run


@pytest.fixture
def app_factory(session_maker):
    from main import app

    async def _session_override():
        async with session_maker() as s:
            yield s

    def _build(user):
        app.dependency_overrides[get_async_session] = _session_override
        app.dependency_overrides[current_active_user] = lambda: user
        return TestClient(app)

    yield _build
    app.dependency_overrides.clear()


@pytest.fixture
def client(app_factory, owner):
    return app_factory(owner)
