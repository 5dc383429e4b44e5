# src/settlement_recon/adapters/repositories/aggregate_repository.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""
SQLAlchemy repository for Daily/Monthly/Yearly aggregates.

Purpose:
    Upsert rollup rows keyed by (level, period_key[, model_parameter]) and sum
    the rows of exactly one level under a key prefix. Period keys are ISO
    fragments (``YYYY-MM-DD``, ``YYYY-MM``, ``YYYY``), so the children of a
    month are the Daily rows whose key starts with ``"YYYY-MM-"`` and the
    children of a year are the Monthly rows whose key starts with ``"YYYY-"``.

Layer: adapters / repositories
"""

from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, select

from settlement_recon.domain.entities.aggregate import DerivedAggregate, FactAggregate
from settlement_recon.domain.enums.reconciliation import AggregateLevel
from settlement_recon.infrastructure.database.models.settlement import (
    DerivedAggregateRow,
    FactAggregateRow,
)

from .base_repository import BaseRepository


def _child_pattern(key_prefix: str) -> str:
    """Return the LIKE pattern matching child keys of ``key_prefix``."""
    return f"{key_prefix}-%"


class SqlAlchemyAggregateRepository(BaseRepository[FactAggregateRow]):
    """Aggregate persistence over an AsyncSession."""

    async def lock_rollup(self, key: str) -> None:
        # Transaction-scoped advisory lock; SQLite already serializes writers.
        if self.dialect_name == "postgresql":
            lock_id = func.hashtext(f"rollup:{key}")
            await self._session.execute(select(func.pg_advisory_xact_lock(lock_id)))

    async def upsert_fact_aggregate(self, row: FactAggregate) -> None:
        stmt = self.upsert_stmt(
            FactAggregateRow,
            {
                "level": row.level.value,
                "period_key": row.period_key,
                "total_quantity": row.total_quantity,
                "total_payment": row.total_payment,
                "last_updated": row.last_updated or self.utc_now(),
            },
            index_elements=["level", "period_key"],
            update_columns=["total_quantity", "total_payment", "last_updated"],
        )
        await self._session.execute(stmt)

    async def upsert_derived_aggregate(self, row: DerivedAggregate) -> None:
        stmt = self.upsert_stmt(
            DerivedAggregateRow,
            {
                "level": row.level.value,
                "period_key": row.period_key,
                "model_parameter": row.model_parameter,
                "total_derived_value": row.total_derived_value,
                "last_updated": row.last_updated or self.utc_now(),
            },
            index_elements=["level", "period_key", "model_parameter"],
            update_columns=["total_derived_value", "last_updated"],
        )
        await self._session.execute(stmt)

    async def sum_fact_children(
        self,
        level: AggregateLevel,
        key_prefix: str,
    ) -> tuple[Decimal, Decimal]:
        stmt = select(
            func.sum(FactAggregateRow.total_quantity),
            func.sum(FactAggregateRow.total_payment),
        ).where(
            FactAggregateRow.level == level.value,
            FactAggregateRow.period_key.like(_child_pattern(key_prefix)),
        )
        quantity, payment = (await self._session.execute(stmt)).one()
        return self.to_decimal(quantity), self.to_decimal(payment)

    async def sum_derived_children(
        self,
        level: AggregateLevel,
        key_prefix: str,
        model_parameter: str,
    ) -> Decimal:
        stmt = select(func.sum(DerivedAggregateRow.total_derived_value)).where(
            DerivedAggregateRow.level == level.value,
            DerivedAggregateRow.model_parameter == model_parameter,
            DerivedAggregateRow.period_key.like(_child_pattern(key_prefix)),
        )
        return self.to_decimal((await self._session.execute(stmt)).scalar_one_or_none())

    async def get_fact_aggregate(
        self,
        level: AggregateLevel,
        period_key: str,
    ) -> FactAggregate | None:
        row = await self.fetch_optional(
            select(FactAggregateRow).where(
                FactAggregateRow.level == level.value,
                FactAggregateRow.period_key == period_key,
            )
        )
        if row is None:
            return None
        return FactAggregate(
            level=AggregateLevel(row.level),
            period_key=row.period_key,
            total_quantity=self.to_decimal(row.total_quantity),
            total_payment=self.to_decimal(row.total_payment),
            last_updated=row.last_updated,
        )

    async def get_derived_aggregate(
        self,
        level: AggregateLevel,
        period_key: str,
        model_parameter: str,
    ) -> DerivedAggregate | None:
        res = await self._session.execute(
            select(DerivedAggregateRow).where(
                DerivedAggregateRow.level == level.value,
                DerivedAggregateRow.period_key == period_key,
                DerivedAggregateRow.model_parameter == model_parameter,
            )
        )
        row = res.scalars().first()
        if row is None:
            return None
        return DerivedAggregate(
            level=AggregateLevel(row.level),
            period_key=row.period_key,
            model_parameter=row.model_parameter,
            total_derived_value=self.to_decimal(row.total_derived_value),
            last_updated=row.last_updated,
        )
