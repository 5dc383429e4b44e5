# src/settlement_recon/application/use_cases/reconciliation/check_calculation_coverage.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Use case: Check derived-calculation coverage.

Purpose:
    For every date of a range, compare the number of facts that can produce a
    derived value (non-zero quantity) with the number of derived rows stored
    per model parameter. Dates where a model falls short are incomplete and
    need a recompute.

Layer:
    application/use_cases/reconciliation
"""

from __future__ import annotations

from collections.abc import Iterable
from datetime import date

from settlement_recon.application.uow import UnitOfWorkFactory
from settlement_recon.domain.entities.reconciliation import CoverageReport
from settlement_recon.domain.interfaces.repositories.derived_calculation_repository import (
    DerivedCalculationRepository,
)
from settlement_recon.domain.interfaces.repositories.fact_repository import FactRepository
from settlement_recon.domain.services.settlement_calendar import iter_dates


class CheckCalculationCoverage:
    """Report fact versus derived row counts per date and model."""

    def __init__(self, uow_factory: UnitOfWorkFactory, *, model_parameters: Iterable[str]) -> None:
        self._uow_factory = uow_factory
        self._model_parameters = tuple(dict.fromkeys(model_parameters))

    async def execute(self, start: date, end: date) -> list[CoverageReport]:
        """Return one coverage report per date of ``[start, end]``.

        Raises:
            ValueError: If ``end`` precedes ``start``.
        """
        reports: list[CoverageReport] = []
        async with self._uow_factory() as uow:
            facts_repo: FactRepository = uow.get_repository(FactRepository)
            derived_repo: DerivedCalculationRepository = uow.get_repository(
                DerivedCalculationRepository
            )
            for day in iter_dates(start, end):
                facts = await facts_repo.list_for_date(day)
                counts = await derived_repo.count_by_model(day)
                reports.append(
                    CoverageReport(
                        settlement_date=day,
                        fact_count=sum(1 for f in facts if f.quantity != 0),
                        derived_counts={m: counts.get(m, 0) for m in self._model_parameters},
                    )
                )
        return reports
