# src/settlement_recon/domain/entities/reconciliation.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Reconciliation entities (Domain Layer).

Purpose:
    Value objects describing reconciliation progress and outcomes:

    * ``Checkpoint``: durable per-date progress used to resume after a crash.
    * ``PeriodComparison``: remote versus local totals for one period.
    * ``DateReport`` / ``BatchReport``: terminal outcomes surfaced to callers.
    * ``CoverageReport``: fact versus derived row counts for one date.

Layer:
    domain/entities
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime

from settlement_recon.domain.enums.reconciliation import PeriodStatus, ReconciliationState
from settlement_recon.domain.services.settlement_calendar import validate_settlement_period

from .base import BaseEntity
from .settlement import PeriodTotals


@dataclass(frozen=True, slots=True)
class Checkpoint(BaseEntity):
    """Durable reconciliation progress for one date.

    Args:
        settlement_date: Date being reconciled.
        status: Last state reached by the state machine.
        periods_repaired: Periods confirmed repaired in the current run.
        target_periods: Periods selected for repair when scanning finished.
        failed_periods: Periods whose repair exhausted its retry budget.
        run_id: Identifier of the run that wrote the checkpoint.
        updated_at: Last write time.

    Raises:
        ValueError: If any period lies outside [1, 48].
    """

    settlement_date: date
    status: ReconciliationState
    periods_repaired: frozenset[int] = frozenset()
    target_periods: frozenset[int] = frozenset()
    failed_periods: frozenset[int] = frozenset()
    run_id: str | None = None
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        for period in (*self.periods_repaired, *self.target_periods, *self.failed_periods):
            validate_settlement_period(period)

    @property
    def pending_periods(self) -> frozenset[int]:
        """Return target periods not yet confirmed repaired."""
        return self.target_periods - self.periods_repaired

    @property
    def is_resumable(self) -> bool:
        """Return True when a run stopped mid-flight and can continue."""
        return not self.status.is_terminal and self.status is not ReconciliationState.SCANNING


@dataclass(frozen=True, slots=True)
class PeriodComparison(BaseEntity):
    """Remote versus local totals for one settlement period.

    ``status`` is ``None`` when the remote side could not be fetched; the
    reason is then carried in ``error``.
    """

    settlement_period: int
    remote: PeriodTotals | None
    local: PeriodTotals
    status: PeriodStatus | None
    error: str | None = None

    @property
    def needs_repair(self) -> bool:
        """Return True for repairable or unclassifiable periods."""
        return self.status is None or self.status.needs_repair


@dataclass(frozen=True, slots=True)
class DateReport(BaseEntity):
    """Terminal outcome of reconciling one date.

    Args:
        settlement_date: Date reconciled.
        status: ``DONE`` or ``FAILED``.
        classification: Scan result per period (empty when resumed).
        periods_repaired: Periods repaired in this run, including resumed ones.
        failed_periods: Periods whose repair exhausted its retry budget.
        still_diverged: Periods that failed post-repair verification.
        context_unavailable: Model parameters whose recompute lacked a context value.
        resumed: True when the run continued from a checkpoint.
        skipped: True when a batch skipped an already-done date.
        error: Date-level error message, if the state machine itself failed.
    """

    settlement_date: date
    status: ReconciliationState
    classification: Mapping[int, PeriodStatus] = field(default_factory=dict)
    periods_repaired: tuple[int, ...] = ()
    failed_periods: tuple[int, ...] = ()
    still_diverged: tuple[int, ...] = ()
    context_unavailable: tuple[str, ...] = ()
    resumed: bool = False
    skipped: bool = False
    error: str | None = None

    def __post_init__(self) -> None:
        if not self.status.is_terminal:
            raise ValueError("a date report must carry a terminal status")

    @property
    def repaired(self) -> bool:
        """Return True when at least one period was repaired."""
        return bool(self.periods_repaired)

    @property
    def failed(self) -> bool:
        """Return True when the date ended FAILED."""
        return self.status is ReconciliationState.FAILED


@dataclass(frozen=True, slots=True)
class BatchReport(BaseEntity):
    """Outcome of reconciling a date range.

    Args:
        per_date: One report per date that reached a terminal state, by date.
        cancelled: True when a stop request ended the run early.
        unprocessed: Dates left untouched because of the stop request.
    """

    per_date: tuple[DateReport, ...]
    cancelled: bool = False
    unprocessed: tuple[date, ...] = ()

    @property
    def dates_processed(self) -> int:
        """Dates that ran through the state machine (skipped ones excluded)."""
        return sum(1 for r in self.per_date if not r.skipped)

    @property
    def dates_repaired(self) -> int:
        """Dates where at least one period was repaired."""
        return sum(1 for r in self.per_date if r.repaired)

    @property
    def dates_failed(self) -> int:
        """Dates that ended FAILED."""
        return sum(1 for r in self.per_date if r.failed)

    @property
    def dates_skipped(self) -> int:
        """Dates skipped because a DONE checkpoint already existed."""
        return sum(1 for r in self.per_date if r.skipped)


@dataclass(frozen=True, slots=True)
class CoverageReport(BaseEntity):
    """Fact versus derived-calculation row counts for one date."""

    settlement_date: date
    fact_count: int
    derived_counts: Mapping[str, int] = field(default_factory=dict)

    @property
    def incomplete_models(self) -> tuple[str, ...]:
        """Model parameters with fewer derived rows than facts."""
        return tuple(
            sorted(m for m, n in self.derived_counts.items() if n < self.fact_count)
        )

    @property
    def complete(self) -> bool:
        """Return True when every model covers every fact."""
        return not self.incomplete_models
