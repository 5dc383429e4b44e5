# src/settlement_recon/domain/interfaces/repositories/derived_calculation_repository.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Domain-facing interface for derived-calculation repositories."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from typing import Protocol

from settlement_recon.domain.entities.settlement import DerivedCalculation


class DerivedCalculationRepository(Protocol):
    """Domain-level contract for derived-calculation persistence."""

    async def delete_for(self, settlement_date: date, model_parameter: str) -> int:
        """Delete every derived row of (date, model) and return the count removed."""
        raise NotImplementedError

    async def insert_many(self, rows: Sequence[DerivedCalculation]) -> int:
        """Insert derived rows and return the number inserted."""
        raise NotImplementedError

    async def total_for(self, settlement_date: date, model_parameter: str) -> Decimal:
        """Return the sum of derived values for (date, model); zero when absent."""
        raise NotImplementedError

    async def count_by_model(self, settlement_date: date) -> dict[str, int]:
        """Return the number of derived rows per model parameter for a date."""
        raise NotImplementedError
