# src/settlement_recon/application/use_cases/reconciliation/reconcile_range.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Use case: Reconcile a date range (batch driver).

Purpose:
    Run :class:`ReconcileDate` over an inclusive date range with a fixed pool
    of cooperative asyncio workers pulling from a queue. Dates whose last
    checkpoint is ``DONE`` are skipped unless forced. Any exception raised for
    one date becomes a ``FAILED`` report and a ``FAILED`` checkpoint for that
    date; the range carries on.

    A stop event is honoured between dates: in-flight dates run to their
    terminal state, the remaining ones are reported as unprocessed.

Layer:
    application/use_cases/reconciliation
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from datetime import date
from uuid import uuid4

from settlement_recon.application.run_context import set_run_context
from settlement_recon.application.use_cases.reconciliation.reconcile_date import ReconcileDate
from settlement_recon.domain.entities.reconciliation import BatchReport, Checkpoint, DateReport
from settlement_recon.domain.enums.reconciliation import ReconciliationState
from settlement_recon.domain.services.settlement_calendar import iter_dates

logger = logging.getLogger(__name__)


class ReconcileRange:
    """Reconcile every date of ``[start, end]``.

    Args:
        reconcile_date: Per-date use case; also provides the checkpoint store.
        worker_count: Number of dates reconciled concurrently.
    """

    def __init__(self, reconcile_date: ReconcileDate, *, worker_count: int = 2) -> None:
        if worker_count < 1:
            raise ValueError("worker_count must be >= 1")
        self._reconcile_date = reconcile_date
        self._worker_count = worker_count

    async def execute(
        self,
        start: date,
        end: date,
        *,
        stop_event: asyncio.Event | None = None,
        force: bool = False,
    ) -> BatchReport:
        """Reconcile the inclusive range and return the batch report.

        Args:
            start: First date.
            end: Last date (inclusive).
            stop_event: When set, workers stop picking up new dates.
            force: Re-run dates already reconciled to ``DONE``.

        Raises:
            ValueError: If ``end`` precedes ``start``.
        """
        dates = list(iter_dates(start, end))
        run_id = uuid4().hex
        set_run_context(run_id=run_id)

        queue: asyncio.Queue[date] = asyncio.Queue()
        for day in dates:
            queue.put_nowait(day)

        reports: list[DateReport] = []
        unprocessed: list[date] = []

        async def _worker(worker_id: int) -> None:
            while True:
                try:
                    day = queue.get_nowait()
                except asyncio.QueueEmpty:
                    return
                if stop_event is not None and stop_event.is_set():
                    unprocessed.append(day)
                    continue
                set_run_context(settlement_date=day)
                logger.debug(
                    "reconcile.range.pick", extra={"extra": {"worker": worker_id, "day": day}}
                )
                reports.append(await self._process(day, run_id=run_id, force=force))

        logger.info(
            "reconcile.range.start",
            extra={
                "extra": {
                    "start": start,
                    "end": end,
                    "dates": len(dates),
                    "workers": self._worker_count,
                    "force": force,
                }
            },
        )
        workers = min(self._worker_count, len(dates))
        await asyncio.gather(*(_worker(i) for i in range(workers)))

        report = BatchReport(
            per_date=tuple(sorted(reports, key=lambda r: r.settlement_date)),
            cancelled=bool(unprocessed),
            unprocessed=tuple(sorted(unprocessed)),
        )
        logger.info(
            "reconcile.range.done",
            extra={
                "extra": {
                    "dates_processed": report.dates_processed,
                    "dates_repaired": report.dates_repaired,
                    "dates_failed": report.dates_failed,
                    "dates_skipped": report.dates_skipped,
                    "cancelled": report.cancelled,
                }
            },
        )
        return report

    async def _process(self, day: date, *, run_id: str, force: bool) -> DateReport:
        """Reconcile one date, converting any exception into a FAILED report."""
        try:
            if not force:
                checkpoint = await self._reconcile_date.checkpoints.load(day)
                if checkpoint is not None and checkpoint.status is ReconciliationState.DONE:
                    logger.info("reconcile.date.skipped", extra={"extra": {"day": day}})
                    return DateReport(
                        settlement_date=day,
                        status=ReconciliationState.DONE,
                        periods_repaired=(),
                        skipped=True,
                    )
            return await self._reconcile_date.execute(day, run_id=run_id)
        except Exception as exc:
            logger.exception("reconcile.date.crashed", extra={"extra": {"day": day}})
            await self._mark_failed(day, run_id=run_id)
            return DateReport(
                settlement_date=day,
                status=ReconciliationState.FAILED,
                error=f"{type(exc).__name__}: {exc}",
            )

    async def _mark_failed(self, day: date, *, run_id: str) -> None:
        """Move the date's checkpoint to ``FAILED``; best effort, errors are logged."""
        checkpoints = self._reconcile_date.checkpoints
        try:
            previous = await checkpoints.load(day)
            if previous is None:
                failed = Checkpoint(
                    settlement_date=day, status=ReconciliationState.FAILED, run_id=run_id
                )
            else:
                failed = replace(
                    previous, status=ReconciliationState.FAILED, run_id=run_id, updated_at=None
                )
            await checkpoints.save(failed)
        except Exception:
            logger.exception("reconcile.checkpoint.save_failed", extra={"extra": {"day": day}})
