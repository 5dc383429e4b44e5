# tests/fixtures/settlement_fakes.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""In-memory fakes for the reconciliation pipeline.

The fake unit of work snapshots the shared in-memory database on enter and
restores it on rollback, so atomicity can be asserted without a real engine.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from types import TracebackType
from typing import Any

from settlement_recon.domain.entities.aggregate import DerivedAggregate, FactAggregate
from settlement_recon.domain.entities.reconciliation import Checkpoint
from settlement_recon.domain.entities.settlement import (
    DerivedCalculation,
    DuplicateGroup,
    Fact,
    PeriodTotals,
    RawRecord,
)
from settlement_recon.domain.enums.reconciliation import AggregateLevel
from settlement_recon.domain.exceptions.settlement import FetchFailed
from settlement_recon.domain.interfaces.repositories.aggregate_repository import (
    AggregateRepository,
)
from settlement_recon.domain.interfaces.repositories.checkpoint_repository import (
    CheckpointRepository,
)
from settlement_recon.domain.interfaces.repositories.derived_calculation_repository import (
    DerivedCalculationRepository,
)
from settlement_recon.domain.interfaces.repositories.fact_repository import FactRepository

# --------------------------------------------------------------------------- #
# In-memory database                                                          #
# --------------------------------------------------------------------------- #


@dataclass
class InMemoryDatabase:
    facts: list[Fact] = field(default_factory=list)
    derived: list[DerivedCalculation] = field(default_factory=list)
    fact_aggregates: dict[tuple[AggregateLevel, str], FactAggregate] = field(default_factory=dict)
    derived_aggregates: dict[tuple[AggregateLevel, str, str], DerivedAggregate] = field(
        default_factory=dict
    )
    checkpoints: dict[date, Checkpoint] = field(default_factory=dict)
    # Raise on the next N fact inserts (after the delete ran).
    fail_fact_inserts: int = 0
    checkpoint_history: list[Checkpoint] = field(default_factory=list)
    # "lock <key>" and "upsert <level> <key>" in call order.
    aggregate_events: list[str] = field(default_factory=list)

    def snapshot(self) -> tuple[Any, ...]:
        return (
            list(self.facts),
            list(self.derived),
            dict(self.fact_aggregates),
            dict(self.derived_aggregates),
            dict(self.checkpoints),
        )

    def restore(self, snap: tuple[Any, ...]) -> None:
        (
            self.facts,
            self.derived,
            self.fact_aggregates,
            self.derived_aggregates,
            self.checkpoints,
        ) = (list(snap[0]), list(snap[1]), dict(snap[2]), dict(snap[3]), dict(snap[4]))

    def facts_for(self, day: date, period: int | None = None) -> list[Fact]:
        return [
            f
            for f in self.facts
            if f.settlement_date == day and (period is None or f.settlement_period == period)
        ]


class _FakeFactRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    async def delete_period(self, settlement_date: date, settlement_period: int) -> int:
        before = len(self._db.facts)
        self._db.facts = [
            f
            for f in self._db.facts
            if not (
                f.settlement_date == settlement_date and f.settlement_period == settlement_period
            )
        ]
        return before - len(self._db.facts)

    async def insert_many(self, facts: Sequence[Fact]) -> int:
        if self._db.fail_fact_inserts > 0:
            self._db.fail_fact_inserts -= 1
            raise RuntimeError("simulated storage failure")
        self._db.facts.extend(facts)
        return len(facts)

    async def totals(self, settlement_date: date, settlement_period: int | None = None) -> PeriodTotals:
        return PeriodTotals.from_facts(self._db.facts_for(settlement_date, settlement_period))

    async def periods_present(self, settlement_date: date) -> set[int]:
        return {f.settlement_period for f in self._db.facts_for(settlement_date)}

    async def list_for_date(self, settlement_date: date) -> list[Fact]:
        return sorted(
            self._db.facts_for(settlement_date),
            key=lambda f: (f.settlement_period, f.entity_id),
        )

    async def find_duplicates(self, settlement_date: date) -> list[DuplicateGroup]:
        counts = Counter(
            (f.settlement_period, f.entity_id) for f in self._db.facts_for(settlement_date)
        )
        return [
            DuplicateGroup(settlement_date, period, entity, n)
            for (period, entity), n in sorted(counts.items())
            if n > 1
        ]


class _FakeDerivedRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    async def delete_for(self, settlement_date: date, model_parameter: str) -> int:
        before = len(self._db.derived)
        self._db.derived = [
            d
            for d in self._db.derived
            if not (d.settlement_date == settlement_date and d.model_parameter == model_parameter)
        ]
        return before - len(self._db.derived)

    async def insert_many(self, rows: Sequence[DerivedCalculation]) -> int:
        self._db.derived.extend(rows)
        return len(rows)

    async def total_for(self, settlement_date: date, model_parameter: str) -> Decimal:
        return sum(
            (
                d.derived_value
                for d in self._db.derived
                if d.settlement_date == settlement_date and d.model_parameter == model_parameter
            ),
            Decimal("0"),
        )

    async def count_by_model(self, settlement_date: date) -> dict[str, int]:
        return dict(
            Counter(d.model_parameter for d in self._db.derived if d.settlement_date == settlement_date)
        )


class _FakeAggregateRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    async def lock_rollup(self, key: str) -> None:
        self._db.aggregate_events.append(f"lock {key}")

    async def upsert_fact_aggregate(self, row: FactAggregate) -> None:
        self._db.aggregate_events.append(f"upsert {row.level.value} {row.period_key}")
        self._db.fact_aggregates[(row.level, row.period_key)] = row

    async def upsert_derived_aggregate(self, row: DerivedAggregate) -> None:
        self._db.derived_aggregates[(row.level, row.period_key, row.model_parameter)] = row

    async def sum_fact_children(
        self, level: AggregateLevel, key_prefix: str
    ) -> tuple[Decimal, Decimal]:
        rows = [
            r
            for (lvl, key), r in self._db.fact_aggregates.items()
            if lvl is level and key.startswith(f"{key_prefix}-")
        ]
        return (
            sum((r.total_quantity for r in rows), Decimal("0")),
            sum((r.total_payment for r in rows), Decimal("0")),
        )

    async def sum_derived_children(
        self, level: AggregateLevel, key_prefix: str, model_parameter: str
    ) -> Decimal:
        return sum(
            (
                r.total_derived_value
                for (lvl, key, model), r in self._db.derived_aggregates.items()
                if lvl is level and model == model_parameter and key.startswith(f"{key_prefix}-")
            ),
            Decimal("0"),
        )

    async def get_fact_aggregate(self, level: AggregateLevel, period_key: str) -> FactAggregate | None:
        return self._db.fact_aggregates.get((level, period_key))

    async def get_derived_aggregate(
        self, level: AggregateLevel, period_key: str, model_parameter: str
    ) -> DerivedAggregate | None:
        return self._db.derived_aggregates.get((level, period_key, model_parameter))


class _FakeCheckpointRepository:
    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db

    async def get(self, settlement_date: date) -> Checkpoint | None:
        return self._db.checkpoints.get(settlement_date)

    async def save(self, checkpoint: Checkpoint) -> None:
        self._db.checkpoints[checkpoint.settlement_date] = checkpoint
        self._db.checkpoint_history.append(checkpoint)

    async def delete(self, settlement_date: date) -> None:
        self._db.checkpoints.pop(settlement_date, None)


class InMemoryUnitOfWork:
    """UnitOfWork over :class:`InMemoryDatabase` with snapshot rollback."""

    def __init__(self, db: InMemoryDatabase) -> None:
        self._db = db
        self._snapshot: tuple[Any, ...] | None = None
        self._done = False
        self.commits = 0
        self.rollbacks = 0

    async def __aenter__(self) -> InMemoryUnitOfWork:
        self._snapshot = self._db.snapshot()
        self._done = False
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool | None:
        if not self._done:
            await self.rollback()
        self._snapshot = None
        return None

    async def commit(self) -> None:
        self._done = True
        self.commits += 1

    async def rollback(self) -> None:
        if self._done or self._snapshot is None:
            return
        self._db.restore(self._snapshot)
        self._done = True
        self.rollbacks += 1

    def get_repository(self, repo_type: type[Any]) -> Any:
        factories: Mapping[type[Any], Any] = {
            FactRepository: _FakeFactRepository,
            DerivedCalculationRepository: _FakeDerivedRepository,
            AggregateRepository: _FakeAggregateRepository,
            CheckpointRepository: _FakeCheckpointRepository,
        }
        return factories[repo_type](self._db)


def uow_factory_for(db: InMemoryDatabase) -> Any:
    """Return a zero-arg factory producing fresh in-memory units of work."""
    return lambda: InMemoryUnitOfWork(db)


# --------------------------------------------------------------------------- #
# Gateways                                                                    #
# --------------------------------------------------------------------------- #


def raw(
    entity_id: str,
    quantity: str | int | Decimal,
    unit_price: str | int | Decimal = "50",
    *,
    so_flag: bool = True,
    cadl_flag: bool = False,
) -> RawRecord:
    return RawRecord(
        entity_id=entity_id,
        quantity=Decimal(str(quantity)),
        unit_price=Decimal(str(unit_price)),
        so_flag=so_flag,
        cadl_flag=cadl_flag,
    )


class FakeSettlementSource:
    """Serves canned raw records per (date, period) and records every call."""

    def __init__(
        self,
        records: Mapping[tuple[date, int], Iterable[RawRecord]] | None = None,
        *,
        always_fail: Iterable[int] = (),
    ) -> None:
        self.records: dict[tuple[date, int], list[RawRecord]] = {
            k: list(v) for k, v in (records or {}).items()
        }
        self.always_fail = set(always_fail)
        self.fail_next: dict[int, int] = {}
        self.calls: list[tuple[date, int]] = []

    async def fetch_records(self, settlement_date: date, settlement_period: int) -> list[RawRecord]:
        self.calls.append((settlement_date, settlement_period))
        if settlement_period in self.always_fail:
            raise FetchFailed("simulated outage", details={"period": settlement_period})
        remaining = self.fail_next.get(settlement_period, 0)
        if remaining:
            self.fail_next[settlement_period] = remaining - 1
            raise FetchFailed("transient", details={"period": settlement_period})
        return list(self.records.get((settlement_date, settlement_period), []))

    def periods_called(self, settlement_date: date) -> list[int]:
        return [p for d, p in self.calls if d == settlement_date]


class FakeReferenceProvider:
    def __init__(self, entities: Mapping[str, str | None]) -> None:
        self.entities = dict(entities)
        self.loads = 0

    async def load_entities(self) -> dict[str, str | None]:
        self.loads += 1
        return dict(self.entities)


class FakeContextProvider:
    def __init__(self, values: Mapping[date, Decimal] | None = None) -> None:
        self.values = dict(values or {})

    async def get_context_value(self, settlement_date: date) -> Decimal | None:
        return self.values.get(settlement_date)


async def no_sleep(_seconds: float) -> None:
    return None
