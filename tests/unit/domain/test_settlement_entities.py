# tests/unit/domain/test_settlement_entities.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Invariants of the settlement calendar and the reconciliation entities."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from settlement_recon.domain.entities.reconciliation import (
    BatchReport,
    Checkpoint,
    CoverageReport,
    DateReport,
    PeriodComparison,
)
from settlement_recon.domain.entities.settlement import Fact, PeriodTotals
from settlement_recon.domain.enums.reconciliation import PeriodStatus, ReconciliationState
from settlement_recon.domain.exceptions.settlement import StillDiverged
from settlement_recon.domain.services.settlement_calendar import (
    SETTLEMENT_PERIODS,
    daily_key,
    iter_dates,
    month_key,
    parse_month_key,
    parse_year_key,
    validate_settlement_period,
    year_key,
)

DAY = date(2024, 2, 29)


def _fact(period: int = 1, quantity: str = "-2", payment: str = "-80") -> Fact:
    return Fact(
        settlement_date=DAY,
        settlement_period=period,
        entity_id="T_WIND-1",
        quantity=Decimal(quantity),
        unit_price=Decimal("40"),
        payment=Decimal(payment),
    )


def test_day_has_48_periods() -> None:
    assert SETTLEMENT_PERIODS[0] == 1
    assert SETTLEMENT_PERIODS[-1] == 48
    assert len(SETTLEMENT_PERIODS) == 48


@pytest.mark.parametrize("period", [0, 49, -1, True, 1.0])
def test_invalid_period_is_rejected(period: object) -> None:
    with pytest.raises(ValueError):
        validate_settlement_period(period)  # type: ignore[arg-type]


def test_period_keys() -> None:
    assert daily_key(DAY) == "2024-02-29"
    assert month_key(DAY) == "2024-02"
    assert year_key(DAY) == "2024"
    assert parse_month_key("2024-02") == (2024, 2)
    assert parse_year_key("2024") == 2024


@pytest.mark.parametrize("key", ["2024-13", "24-02", "2024", "2024-xx"])
def test_bad_month_key(key: str) -> None:
    with pytest.raises(ValueError):
        parse_month_key(key)


def test_iter_dates_is_inclusive_and_rejects_reversed_range() -> None:
    assert list(iter_dates(date(2024, 2, 28), date(2024, 3, 1))) == [
        date(2024, 2, 28),
        date(2024, 2, 29),
        date(2024, 3, 1),
    ]
    with pytest.raises(ValueError):
        list(iter_dates(date(2024, 3, 1), date(2024, 2, 28)))


def test_fact_rejects_positive_payment_and_bad_period() -> None:
    with pytest.raises(ValueError):
        _fact(payment="1")
    with pytest.raises(ValueError):
        _fact(period=49)


def test_period_totals_from_facts() -> None:
    totals = PeriodTotals.from_facts([_fact(), _fact(quantity="-3", payment="-120")])
    assert totals == PeriodTotals(2, Decimal("-5"), Decimal("-200"))
    assert PeriodTotals.from_facts([]) == PeriodTotals.empty()


def test_checkpoint_pending_and_resumable() -> None:
    cp = Checkpoint(
        settlement_date=DAY,
        status=ReconciliationState.REPAIRING,
        periods_repaired=frozenset({1, 2}),
        target_periods=frozenset({1, 2, 3}),
    )
    assert cp.pending_periods == frozenset({3})
    assert cp.is_resumable

    for status in (ReconciliationState.SCANNING, ReconciliationState.DONE, ReconciliationState.FAILED):
        assert not Checkpoint(settlement_date=DAY, status=status).is_resumable


def test_checkpoint_rejects_out_of_range_period() -> None:
    with pytest.raises(ValueError):
        Checkpoint(settlement_date=DAY, status=ReconciliationState.REPAIRING, target_periods=frozenset({0}))


def test_unfetchable_comparison_needs_repair() -> None:
    comparison = PeriodComparison(3, None, PeriodTotals.empty(), None, error="timeout")
    assert comparison.needs_repair


def test_date_report_requires_terminal_status() -> None:
    with pytest.raises(ValueError):
        DateReport(settlement_date=DAY, status=ReconciliationState.VERIFYING)


def test_batch_report_counters() -> None:
    report = BatchReport(
        per_date=(
            DateReport(DAY, ReconciliationState.DONE, periods_repaired=(4,)),
            DateReport(date(2024, 3, 1), ReconciliationState.FAILED, failed_periods=(17,)),
            DateReport(date(2024, 3, 2), ReconciliationState.DONE, skipped=True),
        )
    )
    assert report.dates_processed == 2
    assert report.dates_repaired == 1
    assert report.dates_failed == 1
    assert report.dates_skipped == 1


def test_coverage_report_incomplete_models() -> None:
    report = CoverageReport(DAY, fact_count=4, derived_counts={"S9": 4, "M20S": 3, "S19J_PRO": 0})
    assert report.incomplete_models == ("M20S", "S19J_PRO")
    assert not report.complete


def test_still_diverged_sorts_and_dedupes_periods() -> None:
    exc = StillDiverged([9, 3, 9])
    assert exc.periods == (3, 9)
    assert exc.details["periods"] == [3, 9]
    assert exc.code == "STILL_DIVERGED"
    assert PeriodStatus.DIVERGED.value == "diverged"
