# src/settlement_recon/adapters/repositories/derived_calculation_repository.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""SQLAlchemy repository for derived calculations (``historical_calculations``)."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal

from sqlalchemy import delete, func, insert, select

from settlement_recon.domain.entities.settlement import DerivedCalculation
from settlement_recon.infrastructure.database.models.settlement import DerivedCalculationRow

from .base_repository import BaseRepository


class SqlAlchemyDerivedCalculationRepository(BaseRepository[DerivedCalculationRow]):
    """Derived-calculation persistence over an AsyncSession."""

    async def delete_for(self, settlement_date: date, model_parameter: str) -> int:
        stmt = delete(DerivedCalculationRow).where(
            DerivedCalculationRow.settlement_date == settlement_date,
            DerivedCalculationRow.model_parameter == model_parameter,
        )
        result = await self._session.execute(stmt)
        return int(result.rowcount or 0)

    async def insert_many(self, rows: Sequence[DerivedCalculation]) -> int:
        if not rows:
            return 0
        now = self.utc_now()
        payload = [
            {
                "settlement_date": r.settlement_date,
                "settlement_period": r.settlement_period,
                "entity_id": r.entity_id,
                "model_parameter": r.model_parameter,
                "derived_value": r.derived_value,
                "context_value_used": r.context_value_used,
                "calculated_at": now,
            }
            for r in rows
        ]
        await self._session.execute(insert(DerivedCalculationRow), payload)
        return len(payload)

    async def total_for(self, settlement_date: date, model_parameter: str) -> Decimal:
        stmt = select(func.sum(DerivedCalculationRow.derived_value)).where(
            DerivedCalculationRow.settlement_date == settlement_date,
            DerivedCalculationRow.model_parameter == model_parameter,
        )
        return self.to_decimal((await self._session.execute(stmt)).scalar_one_or_none())

    async def count_by_model(self, settlement_date: date) -> dict[str, int]:
        stmt = (
            select(DerivedCalculationRow.model_parameter, func.count(DerivedCalculationRow.id))
            .where(DerivedCalculationRow.settlement_date == settlement_date)
            .group_by(DerivedCalculationRow.model_parameter)
        )
        result = await self._session.execute(stmt)
        return {model: int(count) for model, count in result.all()}
