# src/settlement_recon/domain/interfaces/repositories/aggregate_repository.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Domain-facing interface for aggregate repositories.

Child sums are always taken from one level only: ``sum_fact_children``
with ``level=DAILY`` sums Daily rows whose key starts with a month prefix,
with ``level=MONTHLY`` it sums Monthly rows of a year.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from settlement_recon.domain.entities.aggregate import DerivedAggregate, FactAggregate
from settlement_recon.domain.enums.reconciliation import AggregateLevel


class AggregateRepository(Protocol):
    """Domain-level contract for Daily/Monthly/Yearly aggregate rows."""

    async def lock_rollup(self, key: str) -> None:
        """Block other rollup transactions on ``key`` until this transaction ends."""
        raise NotImplementedError

    async def upsert_fact_aggregate(self, row: FactAggregate) -> None:
        """Insert or overwrite the fact aggregate keyed by (level, period_key)."""
        raise NotImplementedError

    async def upsert_derived_aggregate(self, row: DerivedAggregate) -> None:
        """Insert or overwrite the derived aggregate keyed by (level, period_key, model)."""
        raise NotImplementedError

    async def sum_fact_children(
        self,
        level: AggregateLevel,
        key_prefix: str,
    ) -> tuple[Decimal, Decimal]:
        """Return (total_quantity, total_payment) over rows of ``level`` under ``key_prefix``."""
        raise NotImplementedError

    async def sum_derived_children(
        self,
        level: AggregateLevel,
        key_prefix: str,
        model_parameter: str,
    ) -> Decimal:
        """Return the total derived value over rows of ``level`` under ``key_prefix``."""
        raise NotImplementedError

    async def get_fact_aggregate(
        self,
        level: AggregateLevel,
        period_key: str,
    ) -> FactAggregate | None:
        """Return one fact aggregate row, if present."""
        raise NotImplementedError

    async def get_derived_aggregate(
        self,
        level: AggregateLevel,
        period_key: str,
        model_parameter: str,
    ) -> DerivedAggregate | None:
        """Return one derived aggregate row, if present."""
        raise NotImplementedError
