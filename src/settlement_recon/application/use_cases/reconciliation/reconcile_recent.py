# src/settlement_recon/application/use_cases/reconciliation/reconcile_recent.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Use case: Reconcile the most recent days.

Scheduled entrypoint: reconcile the last ``lookback_days`` dates ending
yesterday (UTC), the window in which late corrections from the settlement
source usually land.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from datetime import UTC, date, datetime, timedelta

from settlement_recon.application.use_cases.reconciliation.reconcile_range import ReconcileRange
from settlement_recon.domain.entities.reconciliation import BatchReport


def _utc_today() -> date:
    return datetime.now(UTC).date()


class ReconcileRecent:
    """Reconcile a trailing window of dates via :class:`ReconcileRange`."""

    def __init__(
        self,
        reconcile_range: ReconcileRange,
        *,
        lookback_days: int = 7,
        today: Callable[[], date] = _utc_today,
    ) -> None:
        if lookback_days < 1:
            raise ValueError("lookback_days must be >= 1")
        self._reconcile_range = reconcile_range
        self._lookback_days = lookback_days
        self._today = today

    def window(self, days: int | None = None) -> tuple[date, date]:
        """Return the inclusive ``(start, end)`` window ending yesterday."""
        days = self._lookback_days if days is None else days
        if days < 1:
            raise ValueError("days must be >= 1")
        end = self._today() - timedelta(days=1)
        return end - timedelta(days=days - 1), end

    async def execute(
        self,
        *,
        days: int | None = None,
        stop_event: asyncio.Event | None = None,
        force: bool = False,
    ) -> BatchReport:
        """Reconcile the trailing window."""
        start, end = self.window(days)
        return await self._reconcile_range.execute(
            start, end, stop_event=stop_event, force=force
        )
