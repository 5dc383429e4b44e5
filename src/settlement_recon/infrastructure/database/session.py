# src/settlement_recon/infrastructure/database/session.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Async SQLAlchemy engine/session factory.

This module owns the process-global async SQLAlchemy engine and
`async_sessionmaker` used by units of work and SQL-backed gateways.

Lifecycle:
    * Call `init_engine_and_sessionmaker(settings)` at process start.
    * Use `get_sessionmaker()` to build units of work.
    * Call `dispose_engine()` during shutdown.

Notes:
    * No business logic here; repositories/services consume the session.
    * `pool_pre_ping=True` helps surface dead connections before use.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from settlement_recon.config.settings import Settings

_engine: AsyncEngine | None = None
_sessionmaker: async_sessionmaker[AsyncSession] | None = None


def build_sessionmaker(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Return a non-expiring session factory bound to ``engine``."""
    return async_sessionmaker(bind=engine, expire_on_commit=False, class_=AsyncSession)


def init_engine_and_sessionmaker(settings: Settings) -> async_sessionmaker[AsyncSession]:
    """Initialize the global async engine and sessionmaker.

    Args:
        settings: Application settings providing `database_url`.

    Returns:
        The global session factory.

    Raises:
        ValueError: If `database_url` is empty.
    """
    global _engine, _sessionmaker

    if not settings.database_url:
        raise ValueError("database_url must be configured")
    if _engine is not None and _sessionmaker is not None:
        # Already initialized (idempotent).
        return _sessionmaker

    _engine = create_async_engine(
        url=settings.database_url,
        pool_pre_ping=True,
        echo=settings.db_echo,
    )
    _sessionmaker = build_sessionmaker(_engine)
    return _sessionmaker


async def dispose_engine() -> None:
    """Dispose the global engine at shutdown."""
    global _engine, _sessionmaker
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _sessionmaker = None


def get_sessionmaker() -> async_sessionmaker[AsyncSession]:
    """Return the initialized async sessionmaker.

    Raises:
        RuntimeError: If the sessionmaker is not yet initialized.
    """
    if _sessionmaker is None:
        raise RuntimeError("DB sessionmaker not initialized (call init_engine_and_sessionmaker)")
    return _sessionmaker
