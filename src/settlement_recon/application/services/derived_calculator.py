# src/settlement_recon/application/services/derived_calculator.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Derived calculator (Application Service).

Purpose:
    Recompute the derived rows of a date for one model parameter from the
    stored facts and the context value of that date. Delete and insert run
    in one unit of work, so the derived table never mixes two generations.

Layer:
    application/services

Notes:
    * The context value is looked up once per (date, model) call and frozen
      onto every row as ``context_value_used``.
    * There is no fallback context value. A missing one raises
      ``ContextUnavailable`` and leaves existing rows untouched.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date
from decimal import Decimal

from settlement_recon.application.uow import UnitOfWork, UnitOfWorkFactory, run_in_uow
from settlement_recon.domain.entities.settlement import DerivedCalculation, Fact
from settlement_recon.domain.exceptions.settlement import ContextUnavailable
from settlement_recon.domain.interfaces.gateways.context_values import ContextValueProvider
from settlement_recon.domain.interfaces.repositories.derived_calculation_repository import (
    DerivedCalculationRepository,
)
from settlement_recon.domain.interfaces.repositories.fact_repository import FactRepository
from settlement_recon.domain.services.mined_value import Transform, mined_value

logger = logging.getLogger(__name__)


class DerivedCalculator:
    """Recompute derived values per (date, model parameter).

    Args:
        uow_factory: Fresh unit of work per recompute.
        context_provider: Source of the per-date context value.
        model_parameters: Configured model parameters; others are rejected.
        transform: ``(abs_quantity, model, context) -> value``.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        context_provider: ContextValueProvider,
        *,
        model_parameters: Iterable[str],
        transform: Transform = mined_value,
    ) -> None:
        self._uow_factory = uow_factory
        self._context_provider = context_provider
        self._model_parameters: tuple[str, ...] = tuple(dict.fromkeys(model_parameters))
        if not self._model_parameters:
            raise ValueError("at least one model parameter is required")
        self._transform = transform

    @property
    def model_parameters(self) -> tuple[str, ...]:
        """Configured model parameters in declaration order."""
        return self._model_parameters

    def _derive(
        self, fact: Fact, model_parameter: str, context_value: Decimal
    ) -> DerivedCalculation | None:
        quantity = abs(fact.quantity)
        if not quantity.is_finite() or quantity == 0:
            return None
        try:
            value = self._transform(quantity, model_parameter, context_value)
        except (ValueError, ArithmeticError) as exc:
            logger.warning(
                "derived.transform_skipped",
                extra={
                    "extra": {
                        "settlement_period": fact.settlement_period,
                        "entity_id": fact.entity_id,
                        "model_parameter": model_parameter,
                        "error": str(exc),
                    }
                },
            )
            return None
        return DerivedCalculation(
            settlement_date=fact.settlement_date,
            settlement_period=fact.settlement_period,
            entity_id=fact.entity_id,
            model_parameter=model_parameter,
            derived_value=value,
            context_value_used=context_value,
        )

    async def recompute(self, settlement_date: date, model_parameter: str) -> int:
        """Rebuild derived rows for one date and model parameter.

        Args:
            settlement_date: Date whose facts are transformed.
            model_parameter: One of the configured model parameters.

        Returns:
            Number of derived rows written.

        Raises:
            ValueError: If the model parameter is not configured.
            ContextUnavailable: If no context value exists for the date.
        """
        if model_parameter not in self._model_parameters:
            raise ValueError(f"model parameter not configured: {model_parameter!r}")

        context_value = await self._context_provider.get_context_value(settlement_date)
        if context_value is None:
            raise ContextUnavailable(
                f"no context value for {settlement_date.isoformat()}",
                details={
                    "settlement_date": settlement_date.isoformat(),
                    "model_parameter": model_parameter,
                },
            )

        async def _tx(uow: UnitOfWork) -> tuple[int, int, int]:
            facts_repo: FactRepository = uow.get_repository(FactRepository)
            derived_repo: DerivedCalculationRepository = uow.get_repository(
                DerivedCalculationRepository
            )
            facts = await facts_repo.list_for_date(settlement_date)
            rows = [
                row
                for row in (self._derive(f, model_parameter, context_value) for f in facts)
                if row is not None
            ]
            deleted = await derived_repo.delete_for(settlement_date, model_parameter)
            inserted = await derived_repo.insert_many(rows)
            return len(facts), deleted, inserted

        fact_count, deleted, inserted = await run_in_uow(self._uow_factory(), _tx)
        logger.info(
            "derived.recomputed",
            extra={
                "extra": {
                    "model_parameter": model_parameter,
                    "facts": fact_count,
                    "deleted": deleted,
                    "inserted": inserted,
                    "skipped": fact_count - inserted,
                }
            },
        )
        return inserted

    async def recompute_all(self, settlement_date: date) -> dict[str, int]:
        """Recompute every configured model parameter for one date.

        Raises:
            ContextUnavailable: On the first model lacking a context value.
        """
        return {m: await self.recompute(settlement_date, m) for m in self._model_parameters}
