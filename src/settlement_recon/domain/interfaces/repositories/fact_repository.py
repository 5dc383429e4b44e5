# src/settlement_recon/domain/interfaces/repositories/fact_repository.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Domain-facing interface for fact repositories.

Notes:
    * Repositories never commit; the unit of work owns the transaction.
    * There is no upsert-by-key: facts are replaced per period by
      ``delete_period`` followed by ``insert_many`` in one transaction.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Protocol

from settlement_recon.domain.entities.settlement import DuplicateGroup, Fact, PeriodTotals


class FactRepository(Protocol):
    """Domain-level contract for fact persistence."""

    async def delete_period(self, settlement_date: date, settlement_period: int) -> int:
        """Delete every fact of one period and return the number of rows removed."""
        raise NotImplementedError

    async def insert_many(self, facts: Sequence[Fact]) -> int:
        """Insert facts and return the number of rows inserted."""
        raise NotImplementedError

    async def totals(
        self,
        settlement_date: date,
        settlement_period: int | None = None,
    ) -> PeriodTotals:
        """Return count and sums for a date, or for one period of it."""
        raise NotImplementedError

    async def periods_present(self, settlement_date: date) -> set[int]:
        """Return the periods of ``settlement_date`` having at least one fact."""
        raise NotImplementedError

    async def list_for_date(self, settlement_date: date) -> list[Fact]:
        """Return every fact of a date ordered by period and entity."""
        raise NotImplementedError

    async def find_duplicates(self, settlement_date: date) -> list[DuplicateGroup]:
        """Return (period, entity) pairs stored more than once."""
        raise NotImplementedError
