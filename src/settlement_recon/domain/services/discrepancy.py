# src/settlement_recon/domain/services/discrepancy.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Period classification (Domain Service).

Purpose:
    Classify one settlement period by comparing remote and local totals.

Layer:
    domain/services
"""

from __future__ import annotations

from decimal import Decimal
from typing import Final

from settlement_recon.domain.entities.settlement import PeriodTotals
from settlement_recon.domain.enums.reconciliation import PeriodStatus

DEFAULT_TOLERANCE: Final[Decimal] = Decimal("0.01")


def classify_period(
    remote: PeriodTotals,
    local: PeriodTotals,
    tolerance: Decimal = DEFAULT_TOLERANCE,
) -> PeriodStatus:
    """Classify a period from its remote and local totals.

    Args:
        remote: Totals of the filtered remote records.
        local: Totals of the stored facts.
        tolerance: Absolute tolerance for the quantity and payment sums.

    Returns:
        The period status. Counts must match exactly; sums may differ by at
        most ``tolerance``.

    Raises:
        ValueError: If ``tolerance`` is not positive.
    """
    if tolerance <= 0:
        raise ValueError("tolerance must be > 0")

    if remote.count == 0 and local.count == 0:
        return PeriodStatus.MATCHING
    if local.count == 0:
        return PeriodStatus.MISSING_LOCALLY
    if remote.count == 0:
        return PeriodStatus.MISSING_REMOTELY

    if remote.count != local.count:
        return PeriodStatus.DIVERGED
    if abs(remote.total_quantity - local.total_quantity) > tolerance:
        return PeriodStatus.DIVERGED
    if abs(remote.total_payment - local.total_payment) > tolerance:
        return PeriodStatus.DIVERGED
    return PeriodStatus.MATCHING
