# src/settlement_recon/application/services/aggregate_maintainer.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Aggregate maintainer (Application Service).

Purpose:
    Keep the Daily, Monthly and Yearly rollups consistent with their children.
    Daily rows are summed from facts and derived rows; Monthly rows from the
    Daily rows of the month; Yearly rows from the Monthly rows of the year.

Layer:
    application/services

Notes:
    * Rows are upserted, never incremented, so a refresh is idempotent.
    * A day without facts still gets zero-valued Daily rows, which is how a
      repair that empties a day propagates upward.
    * Every refresh holds the rollup lock of its year for the whole
      transaction, since a Yearly sum reads every month of the year.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import UTC, date, datetime

from settlement_recon.application.uow import UnitOfWork, UnitOfWorkFactory, run_in_uow
from settlement_recon.domain.entities.aggregate import DerivedAggregate, FactAggregate
from settlement_recon.domain.enums.reconciliation import AggregateLevel
from settlement_recon.domain.interfaces.repositories.aggregate_repository import (
    AggregateRepository,
)
from settlement_recon.domain.interfaces.repositories.derived_calculation_repository import (
    DerivedCalculationRepository,
)
from settlement_recon.domain.interfaces.repositories.fact_repository import FactRepository
from settlement_recon.domain.services.settlement_calendar import (
    daily_key,
    month_key,
    parse_month_key,
    parse_year_key,
    year_key,
)

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(UTC)


class AggregateMaintainer:
    """Refresh rollups bottom-up.

    Args:
        uow_factory: Fresh unit of work per refresh.
        model_parameters: Models for which derived aggregates are kept.
        clock: Returns the ``last_updated`` timestamp.
    """

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        *,
        model_parameters: Iterable[str],
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._uow_factory = uow_factory
        self._model_parameters = tuple(dict.fromkeys(model_parameters))
        self._clock = clock
        self._year_locks: dict[str, asyncio.Lock] = {}

    # ------------------------------------------------------------------
    # Per-level steps against an open unit of work
    # ------------------------------------------------------------------

    async def _daily(self, uow: UnitOfWork, day: date) -> None:
        facts: FactRepository = uow.get_repository(FactRepository)
        derived: DerivedCalculationRepository = uow.get_repository(DerivedCalculationRepository)
        aggregates: AggregateRepository = uow.get_repository(AggregateRepository)
        now = self._clock()
        key = daily_key(day)

        totals = await facts.totals(day)
        await aggregates.upsert_fact_aggregate(
            FactAggregate(
                level=AggregateLevel.DAILY,
                period_key=key,
                total_quantity=totals.total_quantity,
                total_payment=totals.total_payment,
                last_updated=now,
            )
        )
        for model in self._model_parameters:
            await aggregates.upsert_derived_aggregate(
                DerivedAggregate(
                    level=AggregateLevel.DAILY,
                    period_key=key,
                    model_parameter=model,
                    total_derived_value=await derived.total_for(day, model),
                    last_updated=now,
                )
            )

    async def _rollup(
        self,
        uow: UnitOfWork,
        *,
        level: AggregateLevel,
        child_level: AggregateLevel,
        key: str,
    ) -> None:
        aggregates: AggregateRepository = uow.get_repository(AggregateRepository)
        now = self._clock()

        quantity, payment = await aggregates.sum_fact_children(child_level, key)
        await aggregates.upsert_fact_aggregate(
            FactAggregate(
                level=level,
                period_key=key,
                total_quantity=quantity,
                total_payment=payment,
                last_updated=now,
            )
        )
        for model in self._model_parameters:
            await aggregates.upsert_derived_aggregate(
                DerivedAggregate(
                    level=level,
                    period_key=key,
                    model_parameter=model,
                    total_derived_value=await aggregates.sum_derived_children(
                        child_level, key, model
                    ),
                    last_updated=now,
                )
            )

    async def _monthly(self, uow: UnitOfWork, year_month: str) -> None:
        parse_month_key(year_month)
        await self._rollup(
            uow, level=AggregateLevel.MONTHLY, child_level=AggregateLevel.DAILY, key=year_month
        )

    async def _yearly(self, uow: UnitOfWork, year: str) -> None:
        parse_year_key(year)
        await self._rollup(
            uow, level=AggregateLevel.YEARLY, child_level=AggregateLevel.MONTHLY, key=year
        )

    async def _locked(self, year: str, fn: Callable[[UnitOfWork], Awaitable[None]]) -> None:
        """Run ``fn`` in one transaction holding the rollup lock of ``year``."""

        async def _tx(uow: UnitOfWork) -> None:
            aggregates: AggregateRepository = uow.get_repository(AggregateRepository)
            await aggregates.lock_rollup(year)
            await fn(uow)

        lock = self._year_locks.setdefault(year, asyncio.Lock())
        async with lock:
            await run_in_uow(self._uow_factory(), _tx)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def refresh_daily(self, day: date) -> None:
        """Recompute the Daily rows of ``day`` from facts and derived rows."""

        async def _tx(uow: UnitOfWork) -> None:
            await self._daily(uow, day)

        await self._locked(year_key(day), _tx)

    async def refresh_monthly(self, year_month: str) -> None:
        """Recompute the Monthly rows of ``YYYY-MM`` from its Daily rows.

        Raises:
            ValueError: If ``year_month`` is malformed.
        """
        year, _ = parse_month_key(year_month)

        async def _tx(uow: UnitOfWork) -> None:
            await self._monthly(uow, year_month)

        await self._locked(f"{year:04d}", _tx)

    async def refresh_yearly(self, year: int | str) -> None:
        """Recompute the Yearly rows of ``year`` from its Monthly rows.

        Raises:
            ValueError: If ``year`` is malformed.
        """
        key = f"{int(year):04d}" if isinstance(year, int) else year
        parse_year_key(key)

        async def _tx(uow: UnitOfWork) -> None:
            await self._yearly(uow, key)

        await self._locked(key, _tx)

    async def refresh(self, day: date) -> None:
        """Refresh Daily, then Monthly, then Yearly for ``day`` in one transaction.

        Refreshes of the same year are serialized, in process and through
        ``AggregateRepository.lock_rollup`` across processes, so a Monthly or
        Yearly sum never misses a sibling day committed concurrently.
        """

        async def _tx(uow: UnitOfWork) -> None:
            await self._daily(uow, day)
            await self._monthly(uow, month_key(day))
            await self._yearly(uow, year_key(day))

        await self._locked(year_key(day), _tx)
        logger.info("aggregates.refreshed", extra={"extra": {"day": day.isoformat()}})
