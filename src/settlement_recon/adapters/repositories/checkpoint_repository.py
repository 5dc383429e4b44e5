# src/settlement_recon/adapters/repositories/checkpoint_repository.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""
SQLAlchemy repository for reconciliation checkpoints.

Purpose:
    Upsert and decode ``reconciliation_checkpoints`` rows. The table shares no
    foreign keys with the data tables; a row that cannot be decoded raises
    ``ValueError`` so callers can discard it and restart the date.

Layer: adapters / repositories
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date
from typing import Any

from sqlalchemy import delete, select

from settlement_recon.domain.entities.reconciliation import Checkpoint
from settlement_recon.domain.enums.reconciliation import ReconciliationState
from settlement_recon.infrastructure.database.models.settlement import CheckpointRow

from .base_repository import BaseRepository


def _decode_periods(raw: Any, field_name: str) -> frozenset[int]:
    """Decode a JSON list of period numbers, rejecting anything else."""
    if raw is None:
        return frozenset()
    if not isinstance(raw, list) or not all(
        isinstance(p, int) and not isinstance(p, bool) for p in raw
    ):
        raise ValueError(f"checkpoint field {field_name!r} is not a list of ints: {raw!r}")
    return frozenset(raw)


def _encode_periods(periods: Iterable[int]) -> list[int]:
    return sorted(periods)


class SqlAlchemyCheckpointRepository(BaseRepository[CheckpointRow]):
    """Checkpoint persistence over an AsyncSession."""

    async def get(self, settlement_date: date) -> Checkpoint | None:
        row = await self.fetch_optional(
            select(CheckpointRow).where(CheckpointRow.settlement_date == settlement_date)
        )
        if row is None:
            return None
        return Checkpoint(
            settlement_date=row.settlement_date,
            status=ReconciliationState(row.status),
            periods_repaired=_decode_periods(row.periods_repaired, "periods_repaired"),
            target_periods=_decode_periods(row.target_periods, "target_periods"),
            failed_periods=_decode_periods(row.failed_periods, "failed_periods"),
            run_id=row.run_id,
            updated_at=row.updated_at,
        )

    async def save(self, checkpoint: Checkpoint) -> None:
        stmt = self.upsert_stmt(
            CheckpointRow,
            {
                "settlement_date": checkpoint.settlement_date,
                "status": checkpoint.status.value,
                "periods_repaired": _encode_periods(checkpoint.periods_repaired),
                "target_periods": _encode_periods(checkpoint.target_periods),
                "failed_periods": _encode_periods(checkpoint.failed_periods),
                "run_id": checkpoint.run_id,
                "updated_at": checkpoint.updated_at or self.utc_now(),
            },
            index_elements=["settlement_date"],
            update_columns=[
                "status",
                "periods_repaired",
                "target_periods",
                "failed_periods",
                "run_id",
                "updated_at",
            ],
        )
        await self._session.execute(stmt)

    async def delete(self, settlement_date: date) -> None:
        await self._session.execute(
            delete(CheckpointRow).where(CheckpointRow.settlement_date == settlement_date)
        )
