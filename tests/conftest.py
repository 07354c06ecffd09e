# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.

Each test gets its own SQLite file database. Authentication is replaced by a
fixture-controlled current user so routes can be exercised as any role.
"""

import os

os.environ.setdefault("RATE_LIMIT_ENABLED", "0")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import itertools
from pathlib import Path
from typing import AsyncGenerator, Optional

import httpx
import pytest

from app.core.database.engine import build_engine, build_sessionmaker, get_db, init_db
from app.core.errors import authentication_required
from app.features.users.dependencies import get_current_user
from app.features.users.models import User


_counter = itertools.count(1)


class AuthState:
    """Holds the user the overridden `get_current_user` returns (None = anonymous)."""

    def __init__(self):
        self.user: Optional[User] = None


@pytest.fixture
async def engine(tmp_path: Path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine):
    return build_sessionmaker(engine)


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_user(session_factory):
    """Create and commit a user; returns the detached User."""

    async def _make_user(
        tenant_id: Optional[str] = "tenant-a",
        role: Optional[str] = None,
        role_id: Optional[str] = None,
        name: Optional[str] = None,
    ) -> User:
        n = next(_counter)
        user = User(
            appwrite_id=f"appwrite-{n}",
            email=f"user{n}@example.com",
            name=name or f"User {n}",
            tenant_id=tenant_id,
            role=role,
            role_id=role_id,
        )
        async with session_factory() as session:
            session.add(user)
            await session.commit()
            await session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def auth() -> AuthState:
    return AuthState()


@pytest.fixture
def app(session_factory, auth):
    """The real application with database and authentication overridden."""
    from app.main import app as fastapi_app

    async def _get_db() -> AsyncGenerator:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def _get_current_user() -> User:
        if auth.user is None:
            raise authentication_required()
        return auth.user

    fastapi_app.dependency_overrides[get_db] = _get_db
    fastapi_app.dependency_overrides[get_current_user] = _get_current_user
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
async def client(app) -> AsyncGenerator[httpx.AsyncClient, None]:
    """Async HTTP client talking to the app in-process."""
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client


@pytest.fixture
async def admin_user(make_user, auth) -> User:
    """A legacy ADMIN in tenant-a, logged in."""
    user = await make_user(tenant_id="tenant-a", role="ADMIN")
    auth.user = user
    return user
