# src/settlement_recon/application/services/fact_store.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Fact store (Application Service).

Purpose:
    Idempotent persistence for per-(date, period, entity) facts.
    ``replace`` is the only mutation entrypoint: it deletes the period and
    bulk-inserts the new facts inside one unit of work, so a failure leaves
    the period exactly as it was.

Layer:
    application/services
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import date

from settlement_recon.application.uow import UnitOfWork, UnitOfWorkFactory, run_in_uow
from settlement_recon.domain.entities.settlement import DuplicateGroup, Fact, PeriodTotals
from settlement_recon.domain.exceptions.base import DomainError
from settlement_recon.domain.exceptions.settlement import ReplaceFailed
from settlement_recon.domain.interfaces.repositories.fact_repository import FactRepository
from settlement_recon.domain.services.settlement_calendar import validate_settlement_period

logger = logging.getLogger(__name__)


class FactStore:
    """Transactional facade over the fact repository.

    Args:
        uow_factory: Returns a fresh unit of work per transaction, so
            concurrent callers never share a session.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def replace(
        self,
        settlement_date: date,
        settlement_period: int,
        facts: Sequence[Fact],
    ) -> int:
        """Replace every fact of one period atomically.

        Args:
            settlement_date: Target date.
            settlement_period: Target period in [1, 48].
            facts: New facts; all must belong to (date, period). May be empty.

        Returns:
            Number of facts inserted.

        Raises:
            ValueError: If a fact belongs to another date or period, or an
                entity appears more than once.
            ReplaceFailed: If the transaction failed; nothing was applied.
        """
        validate_settlement_period(settlement_period)
        entities: set[str] = set()
        for fact in facts:
            if (fact.settlement_date, fact.settlement_period) != (
                settlement_date,
                settlement_period,
            ):
                raise ValueError(
                    f"fact for {fact.settlement_date}/{fact.settlement_period} passed to "
                    f"replace({settlement_date}, {settlement_period})"
                )
            if fact.entity_id in entities:
                raise ValueError(
                    f"entity {fact.entity_id} appears twice in "
                    f"replace({settlement_date}, {settlement_period})"
                )
            entities.add(fact.entity_id)

        async def _tx(uow: UnitOfWork) -> tuple[int, int]:
            repo: FactRepository = uow.get_repository(FactRepository)
            deleted = await repo.delete_period(settlement_date, settlement_period)
            inserted = await repo.insert_many(list(facts))
            return deleted, inserted

        try:
            deleted, inserted = await run_in_uow(self._uow_factory(), _tx)
        except DomainError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise ReplaceFailed(
                "fact replace rolled back",
                details={
                    "settlement_date": settlement_date.isoformat(),
                    "settlement_period": settlement_period,
                    "error": repr(exc),
                },
            ) from exc

        logger.debug(
            "fact_store.replace",
            extra={
                "extra": {
                    "settlement_period": settlement_period,
                    "deleted": deleted,
                    "inserted": inserted,
                }
            },
        )
        return inserted

    async def count_and_sums(
        self,
        settlement_date: date,
        settlement_period: int | None = None,
    ) -> PeriodTotals:
        """Return count and sums straight from the facts of a date or period."""
        if settlement_period is not None:
            validate_settlement_period(settlement_period)
        async with self._uow_factory() as uow:
            repo: FactRepository = uow.get_repository(FactRepository)
            return await repo.totals(settlement_date, settlement_period)

    async def periods_present(self, settlement_date: date) -> set[int]:
        """Return the periods having at least one fact."""
        async with self._uow_factory() as uow:
            repo: FactRepository = uow.get_repository(FactRepository)
            return await repo.periods_present(settlement_date)

    async def facts_for_date(self, settlement_date: date) -> list[Fact]:
        """Return every fact of a date ordered by period and entity."""
        async with self._uow_factory() as uow:
            repo: FactRepository = uow.get_repository(FactRepository)
            return await repo.list_for_date(settlement_date)

    async def find_duplicates(self, settlement_date: date) -> list[DuplicateGroup]:
        """Return (period, entity) pairs stored more than once for a date."""
        async with self._uow_factory() as uow:
            repo: FactRepository = uow.get_repository(FactRepository)
            return await repo.find_duplicates(settlement_date)
