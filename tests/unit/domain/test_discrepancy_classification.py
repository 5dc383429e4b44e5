# tests/unit/domain/test_discrepancy_classification.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Literal classification table for a single settlement period."""

from __future__ import annotations

from decimal import Decimal

import pytest

from settlement_recon.domain.entities.settlement import PeriodTotals
from settlement_recon.domain.enums.reconciliation import PeriodStatus
from settlement_recon.domain.services.discrepancy import classify_period


def _t(count: int, total: str) -> PeriodTotals:
    # The same figure drives both sums so one number pins each side.
    return PeriodTotals(count=count, total_quantity=Decimal(total), total_payment=Decimal(total))


@pytest.mark.parametrize(
    ("remote", "local", "expected"),
    [
        (_t(3, "10.0"), _t(3, "10.0"), PeriodStatus.MATCHING),
        (_t(3, "10.0"), _t(0, "0"), PeriodStatus.MISSING_LOCALLY),
        (_t(0, "0"), _t(2, "4.0"), PeriodStatus.MISSING_REMOTELY),
        (_t(3, "10.0"), _t(3, "9.5"), PeriodStatus.DIVERGED),
    ],
)
def test_classification_table(
    remote: PeriodTotals, local: PeriodTotals, expected: PeriodStatus
) -> None:
    assert classify_period(remote, local, Decimal("0.01")) is expected


def test_both_sides_empty_is_matching() -> None:
    assert classify_period(PeriodTotals.empty(), PeriodTotals.empty()) is PeriodStatus.MATCHING


def test_count_mismatch_diverges_even_when_sums_agree() -> None:
    assert classify_period(_t(3, "10.0"), _t(2, "10.0")) is PeriodStatus.DIVERGED


def test_difference_within_tolerance_matches() -> None:
    assert classify_period(_t(3, "10.000"), _t(3, "10.009"), Decimal("0.01")) is PeriodStatus.MATCHING


def test_payment_divergence_alone_is_detected() -> None:
    remote = PeriodTotals(3, Decimal("10"), Decimal("-400"))
    local = PeriodTotals(3, Decimal("10"), Decimal("400"))
    assert classify_period(remote, local) is PeriodStatus.DIVERGED


def test_non_positive_tolerance_is_rejected() -> None:
    with pytest.raises(ValueError):
        classify_period(_t(1, "1"), _t(1, "1"), Decimal("0"))


def test_needs_repair_flags() -> None:
    assert PeriodStatus.DIVERGED.needs_repair
    assert PeriodStatus.MISSING_LOCALLY.needs_repair
    assert not PeriodStatus.MISSING_REMOTELY.needs_repair
    assert not PeriodStatus.MATCHING.needs_repair
