# src/settlement_recon/adapters/repositories/fact_repository.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""
SQLAlchemy repository for settlement facts.

Purpose:
    Persist and query ``curtailment_records``. The only write path is
    ``delete_period`` followed by ``insert_many`` inside the caller's unit of
    work; there is deliberately no upsert-by-key.

Layer: adapters / repositories
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date

from sqlalchemy import delete, func, insert, select

from settlement_recon.domain.entities.settlement import DuplicateGroup, Fact, PeriodTotals
from settlement_recon.infrastructure.database.models.settlement import FactRow

from .base_repository import BaseRepository


class SqlAlchemyFactRepository(BaseRepository[FactRow]):
    """Fact persistence over an AsyncSession."""

    async def delete_period(self, settlement_date: date, settlement_period: int) -> int:
        stmt = delete(FactRow).where(
            FactRow.settlement_date == settlement_date,
            FactRow.settlement_period == settlement_period,
        )
        result = await self._session.execute(stmt)
        return int(result.rowcount or 0)

    async def insert_many(self, facts: Sequence[Fact]) -> int:
        if not facts:
            return 0
        now = self.utc_now()
        payload = [
            {
                "settlement_date": f.settlement_date,
                "settlement_period": f.settlement_period,
                "entity_id": f.entity_id,
                "lead_party_name": f.lead_party_name,
                "quantity": f.quantity,
                "unit_price": f.unit_price,
                "payment": f.payment,
                "so_flag": f.so_flag,
                "cadl_flag": f.cadl_flag,
                "created_at": now,
            }
            for f in facts
        ]
        await self._session.execute(insert(FactRow), payload)
        return len(payload)

    async def totals(
        self,
        settlement_date: date,
        settlement_period: int | None = None,
    ) -> PeriodTotals:
        stmt = select(
            func.count(FactRow.id),
            func.sum(FactRow.quantity),
            func.sum(FactRow.payment),
        ).where(FactRow.settlement_date == settlement_date)
        if settlement_period is not None:
            stmt = stmt.where(FactRow.settlement_period == settlement_period)

        count, quantity, payment = (await self._session.execute(stmt)).one()
        return PeriodTotals(
            count=int(count or 0),
            total_quantity=self.to_decimal(quantity),
            total_payment=self.to_decimal(payment),
        )

    async def periods_present(self, settlement_date: date) -> set[int]:
        stmt = (
            select(FactRow.settlement_period)
            .where(FactRow.settlement_date == settlement_date)
            .distinct()
        )
        result = await self._session.execute(stmt)
        return {int(p) for p in result.scalars().all()}

    async def list_for_date(self, settlement_date: date) -> list[Fact]:
        stmt = (
            select(FactRow)
            .where(FactRow.settlement_date == settlement_date)
            .order_by(FactRow.settlement_period.asc(), FactRow.entity_id.asc(), FactRow.id.asc())
        )
        rows = await self.fetch_all(stmt)
        return [
            Fact(
                settlement_date=row.settlement_date,
                settlement_period=row.settlement_period,
                entity_id=row.entity_id,
                quantity=self.to_decimal(row.quantity),
                unit_price=self.to_decimal(row.unit_price),
                payment=self.to_decimal(row.payment),
                so_flag=row.so_flag,
                cadl_flag=row.cadl_flag,
                lead_party_name=row.lead_party_name,
            )
            for row in rows
        ]

    async def find_duplicates(self, settlement_date: date) -> list[DuplicateGroup]:
        n = func.count(FactRow.id)
        stmt = (
            select(FactRow.settlement_period, FactRow.entity_id, n)
            .where(FactRow.settlement_date == settlement_date)
            .group_by(FactRow.settlement_period, FactRow.entity_id)
            .having(n > 1)
            .order_by(FactRow.settlement_period.asc(), FactRow.entity_id.asc())
        )
        result = await self._session.execute(stmt)
        return [
            DuplicateGroup(
                settlement_date=settlement_date,
                settlement_period=int(period),
                entity_id=entity_id,
                count=int(count),
            )
            for period, entity_id, count in result.all()
        ]
