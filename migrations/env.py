# migrations/env.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Alembic environment for the settlement-recon schema.

Reads the target database from ``DATABASE_URL`` (falling back to
``sqlalchemy.url`` in alembic.ini) after loading ``.env`` and
``.env.<ENVIRONMENT>`` without overriding exported variables. Online runs use
an async engine so the same URL works for the app and for migrations.

Guards:
    * ``ENVIRONMENT`` must be set to test, development or production.
    * production additionally requires ``ALEMBIC_ALLOW_PRODUCTION=1``.

Examples:
    ENVIRONMENT=development alembic upgrade head
    ENVIRONMENT=development alembic -x show_url=1 upgrade head --sql
"""

from __future__ import annotations

import asyncio
import logging
import logging.config
import os
from pathlib import Path
from urllib.parse import urlsplit, urlunsplit

from alembic import context
from dotenv import load_dotenv
from sqlalchemy import pool
from sqlalchemy.engine import Connection
from sqlalchemy.ext.asyncio import create_async_engine

from settlement_recon.infrastructure.database.models import settlement as _models  # noqa: F401
from settlement_recon.infrastructure.database.models.base import metadata

config = context.config
if config.config_file_name is not None:
    logging.config.fileConfig(config.config_file_name)
logger = logging.getLogger("alembic.env")

ENVIRONMENTS = ("test", "development", "production")
ROOT = Path(__file__).resolve().parents[1]

target_metadata = metadata


def _environment() -> str:
    return (os.getenv("ENVIRONMENT") or "").strip().lower()


def _load_dotenv_files() -> None:
    # Exported variables win, then .env.<ENVIRONMENT>, then .env.
    env = _environment()
    candidates = ([ROOT / f".env.{env}"] if env else []) + [ROOT / ".env"]
    for path in candidates:
        if path.exists():
            load_dotenv(path, override=False)


def _check_environment() -> None:
    env = _environment()
    if env not in ENVIRONMENTS:
        raise RuntimeError(
            f"ENVIRONMENT must be one of {ENVIRONMENTS} to run migrations (got {env!r})"
        )
    if env == "production" and os.getenv("ALEMBIC_ALLOW_PRODUCTION") != "1":
        raise RuntimeError("set ALEMBIC_ALLOW_PRODUCTION=1 to migrate a production database")


def _masked(url: str) -> str:
    parts = urlsplit(url)
    if parts.password is None:
        return url
    netloc = parts.netloc.replace(f":{parts.password}@", ":****@")
    return urlunsplit(parts._replace(netloc=netloc))


def _database_url() -> str:
    url = os.getenv("DATABASE_URL") or config.get_main_option("sqlalchemy.url")
    if not url:
        raise RuntimeError("no database URL: set DATABASE_URL or sqlalchemy.url")
    show = context.get_x_argument(as_dictionary=True).get("show_url") == "1"
    if show or os.getenv("ALEMBIC_SHOW_URL") == "1":
        logger.info("migrating %s", _masked(url))
    return url


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""
    context.configure(
        url=_database_url(),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
    )
    with context.begin_transaction():
        context.run_migrations()


def _run_with_connection(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        render_as_batch=connection.dialect.name == "sqlite",
    )
    with context.begin_transaction():
        context.run_migrations()


async def _run_online() -> None:
    engine = create_async_engine(
        _database_url(), poolclass=pool.NullPool, echo=os.getenv("ECHO_SQL") == "1"
    )
    try:
        async with engine.connect() as connection:
            await connection.run_sync(_run_with_connection)
    finally:
        await engine.dispose()


def run_migrations_online() -> None:
    """Apply migrations through an async engine."""
    asyncio.run(_run_online())


_load_dotenv_files()
_check_environment()

if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
