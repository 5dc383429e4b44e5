# src/settlement_recon/adapters/repositories/base_repository.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""
BaseRepository: shared repository foundation.

Purpose:
    Shared mechanics for all repositories:
      * Safe fetch helpers (one, optional, all).
      * Dialect-aware ``INSERT ... ON CONFLICT`` builder for upserts.
      * Decimal normalization for aggregate results.
      * UTC timestamp helper for audit fields.

Layer: adapters / repositories

Notes:
    * No business logic, no domain decisions.
    * Repositories never commit; units of work own transactions.
"""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import Any, Generic, TypeVar

from sqlalchemy import Select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from settlement_recon.infrastructure.database.models.settlement import DECIMAL_SCALE

TModel = TypeVar("TModel")

_QUANTUM = Decimal(1).scaleb(-DECIMAL_SCALE)


class BaseRepository(Generic[TModel]):  # noqa: UP046
    """Abstract base class for all repositories."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize the repository.

        Args:
            session: Async SQLAlchemy session bound to the target database.
        """
        self._session: AsyncSession = session

    # ------------------------------------------------------------------
    # Timestamp / value utilities
    # ------------------------------------------------------------------

    @staticmethod
    def utc_now() -> datetime:
        """Return current UTC time with timezone info."""
        return datetime.now(UTC)

    @staticmethod
    def to_decimal(value: Any) -> Decimal:
        """Normalize a driver-returned number to a Decimal at storage scale.

        Drivers without a native decimal type (SQLite) hand back floats from
        ``SUM``; quantizing to the column scale removes binary noise.
        """
        if value is None:
            return Decimal("0")
        dec = value if isinstance(value, Decimal) else Decimal(str(value))
        return dec.quantize(_QUANTUM)

    # ------------------------------------------------------------------
    # Dialect helpers
    # ------------------------------------------------------------------

    @property
    def dialect_name(self) -> str:
        """Return the name of the bound dialect (``postgresql``, ``sqlite``...)."""
        return self._session.get_bind().dialect.name

    def upsert_stmt(
        self,
        model: type[Any],
        values: dict[str, Any],
        *,
        index_elements: list[str],
        update_columns: list[str],
    ) -> Any:
        """Build an ``INSERT ... ON CONFLICT DO UPDATE`` for the bound dialect.

        Raises:
            NotImplementedError: For dialects without ``ON CONFLICT`` support.
        """
        if self.dialect_name == "postgresql":
            stmt = pg_insert(model).values(values)
        elif self.dialect_name == "sqlite":
            stmt = sqlite_insert(model).values(values)
        else:
            raise NotImplementedError(f"upsert not supported for dialect {self.dialect_name!r}")

        return stmt.on_conflict_do_update(
            index_elements=index_elements,
            set_={col: getattr(stmt.excluded, col) for col in update_columns},
        )

    # ------------------------------------------------------------------
    # Fetch helpers
    # ------------------------------------------------------------------

    async def fetch_one(self, stmt: Select[Any]) -> TModel:
        """Execute a statement and return a single row or raise."""
        res = await self._session.execute(stmt)
        return res.scalars().one()

    async def fetch_optional(self, stmt: Select[Any]) -> TModel | None:
        """Execute a statement and return zero or one row."""
        res = await self._session.execute(stmt)
        return res.scalars().first()

    async def fetch_all(self, stmt: Select[Any]) -> list[TModel]:
        """Execute a statement and return all rows as a list."""
        res = await self._session.execute(stmt)
        return list(res.scalars().all())
