# src/settlement_recon/domain/enums/reconciliation.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Reconciliation enums.

Purpose:
    Define the per-period classification produced by the discrepancy
    detector, the per-date reconciliation state machine and the aggregate
    levels of the rollup hierarchy.

Layer:
    domain/enums
"""

from __future__ import annotations

from enum import Enum


class PeriodStatus(str, Enum):
    """Classification of one settlement period, remote versus local."""

    MATCHING = "matching"
    MISSING_LOCALLY = "missing_locally"
    MISSING_REMOTELY = "missing_remotely"
    DIVERGED = "diverged"

    @property
    def needs_repair(self) -> bool:
        """Return True when a re-fetch-and-replace should fix the period.

        ``MISSING_REMOTELY`` is surfaced but never repaired automatically,
        since that would delete local facts on the strength of an empty
        remote response.
        """
        return self in (PeriodStatus.MISSING_LOCALLY, PeriodStatus.DIVERGED)


class ReconciliationState(str, Enum):
    """States of the per-date reconciliation state machine."""

    SCANNING = "scanning"
    REPAIRING = "repairing"
    RECOMPUTING = "recomputing"
    VERIFYING = "verifying"
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        """Return True for DONE and FAILED."""
        return self in (ReconciliationState.DONE, ReconciliationState.FAILED)


class AggregateLevel(str, Enum):
    """Levels of the rollup hierarchy above the fact layer."""

    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"
