# src/settlement_recon/adapters/gateways/context_value_provider.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Adapter Gateway: network difficulty per date from ``context_values``.

A missing row means "unavailable"; no default value is ever substituted.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from settlement_recon.adapters.repositories.base_repository import BaseRepository
from settlement_recon.infrastructure.database.models.settlement import ContextValueRow


class SqlContextValueProvider:
    """``ContextValueProvider`` backed by the ``context_values`` table."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get_context_value(self, settlement_date: date) -> Decimal | None:
        async with self._session_factory() as session:
            value = (
                await session.execute(
                    select(ContextValueRow.value).where(
                        ContextValueRow.value_date == settlement_date
                    )
                )
            ).scalar_one_or_none()
        if value is None:
            return None
        return value if isinstance(value, Decimal) else Decimal(str(value))

    async def set_context_value(
        self,
        settlement_date: date,
        value: Decimal,
        *,
        source: str | None = None,
    ) -> None:
        """Insert or overwrite the context value of a date."""
        if value <= 0:
            raise ValueError("context value must be > 0")
        async with self._session_factory() as session:
            repo: BaseRepository[ContextValueRow] = BaseRepository(session)
            stmt = repo.upsert_stmt(
                ContextValueRow,
                {
                    "value_date": settlement_date,
                    "value": value,
                    "source": source,
                    "updated_at": repo.utc_now(),
                },
                index_elements=["value_date"],
                update_columns=["value", "source", "updated_at"],
            )
            await session.execute(stmt)
            await session.commit()
