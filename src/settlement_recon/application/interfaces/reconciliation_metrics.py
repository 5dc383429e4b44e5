# src/settlement_recon/application/interfaces/reconciliation_metrics.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Reconciliation metrics port (Application Layer).

Purpose:
    Let use cases report outcomes without depending on a metrics backend.
    The Prometheus-backed implementation lives in
    ``infrastructure/observability/metrics.py``.

Layer:
    application/interfaces
"""

from __future__ import annotations

from typing import Protocol


class ReconciliationMetrics(Protocol):
    """Outcome sink for the reconciliation state machine."""

    def period_repair(self, outcome: str) -> None:
        """Record one period repair: ``"repaired"``, ``"skipped"`` or ``"failed"``."""
        ...

    def date_finished(self, status: str) -> None:
        """Record one date reaching a terminal state."""
        ...


class NullReconciliationMetrics:
    """Metrics sink that records nothing."""

    def period_repair(self, outcome: str) -> None:
        return None

    def date_finished(self, status: str) -> None:
        return None
