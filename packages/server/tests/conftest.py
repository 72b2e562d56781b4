"""
Shared fixtures for server tests.

Tests run against a throwaway SQLite database (aiosqlite) created from the
SQLModel metadata. The HTTP client overrides the session and identity
dependencies so no session token or Redis is needed.
"""

from __future__ import annotations

from typing import Optional

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import get_optional_identity
from app.core.database import get_session
from app.main import app as fastapi_app
from trackline_shared.schemas.users import Identity


@pytest.fixture
async def session_factory(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'trackline.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    factory = sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    yield factory
    await engine.dispose()


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


class IdentityHolder:
    """Mutable slot the overridden identity dependency reads from."""

    def __init__(self) -> None:
        self.identity: Optional[Identity] = None


@pytest.fixture
def current_identity():
    return IdentityHolder()


@pytest.fixture
async def client(session_factory, current_identity):
    async def _session_override():
        async with session_factory() as session:
            yield session

    async def _identity_override():
        return current_identity.identity

    fastapi_app.dependency_overrides[get_session] = _session_override
    fastapi_app.dependency_overrides[get_optional_identity] = _identity_override
    async with AsyncClient(
        transport=ASGITransport(app=fastapi_app), base_url="http://test"
    ) as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()
