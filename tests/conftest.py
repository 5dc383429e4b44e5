# tests/conftest.py
from __future__ import annotations

from collections.abc import AsyncGenerator
from datetime import date
from pathlib import Path

import pytest
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from settlement_recon.infrastructure.database.models import settlement as _models  # noqa: F401
from settlement_recon.infrastructure.database.models.base import metadata
from settlement_recon.infrastructure.database.session import build_sessionmaker


@pytest.fixture(scope="session")
def anyio_backend() -> str:
    """Force pytest-anyio to use asyncio (not trio)."""
    return "asyncio"


@pytest.fixture
def day() -> date:
    return date(2025, 3, 14)


# --------------------------------------------------------------------------- #
# SQLite                                                                      #
# --------------------------------------------------------------------------- #


@pytest.fixture
async def sqlite_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """File-backed SQLite engine with the full schema created."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'recon.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(sqlite_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_sessionmaker(sqlite_engine)
