# src/settlement_recon/application/use_cases/reconciliation/reconcile_date.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Use case: Reconcile one settlement date.

Purpose:
    Drive one date through the reconciliation state machine:

        SCANNING -> REPAIRING -> RECOMPUTING -> VERIFYING -> DONE | FAILED

    Scanning classifies all 48 periods. Repairing replaces the facts of every
    diverged, missing or unfetchable period with the filtered remote records,
    each period under the shared retry policy. A target is classified again
    from the records fetched for its repair; one that turns out to be missing
    remotely keeps its local facts and is reported instead. Recomputing
    rebuilds the derived rows and the aggregates once every period task has
    finished. Verifying re-classifies every repaired period, including those
    confirmed by an interrupted earlier run.

    Progress is checkpointed when repair starts, after every period and at the
    terminal state. A non-terminal checkpoint makes the next invocation resume
    the pending periods without scanning again.

Layer:
    application/use_cases/reconciliation
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import date
from uuid import uuid4

from settlement_recon.application.interfaces.reconciliation_metrics import (
    NullReconciliationMetrics,
    ReconciliationMetrics,
)
from settlement_recon.application.run_context import set_run_context
from settlement_recon.application.services.aggregate_maintainer import AggregateMaintainer
from settlement_recon.application.services.checkpoint_store import CheckpointStore
from settlement_recon.application.services.derived_calculator import DerivedCalculator
from settlement_recon.application.services.discrepancy_detector import DiscrepancyDetector
from settlement_recon.application.services.fact_store import FactStore
from settlement_recon.application.services.period_fact_fetcher import PeriodFactFetcher
from settlement_recon.application.services.retry import RetryPolicy, retry_async
from settlement_recon.domain.entities.reconciliation import Checkpoint, DateReport
from settlement_recon.domain.entities.settlement import PeriodTotals
from settlement_recon.domain.enums.reconciliation import PeriodStatus, ReconciliationState
from settlement_recon.domain.exceptions.base import DomainError
from settlement_recon.domain.exceptions.settlement import (
    ContextUnavailable,
    FetchFailed,
    ReplaceFailed,
    StillDiverged,
)
from settlement_recon.domain.services.discrepancy import classify_period

logger = logging.getLogger(__name__)


def _is_retryable(exc: Exception) -> bool:
    return isinstance(exc, FetchFailed | ReplaceFailed)


@dataclass(slots=True)
class _RunProgress:
    """Mutable progress of one invocation; writes are serialized by ``lock``."""

    settlement_date: date
    run_id: str
    target_periods: frozenset[int]
    repaired_before: frozenset[int] = frozenset()
    repaired_now: set[int] = field(default_factory=set)
    failed: set[int] = field(default_factory=set)
    # Targets found missing remotely at repair time; their facts are kept.
    settled: dict[int, PeriodStatus] = field(default_factory=dict)
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def repaired(self) -> frozenset[int]:
        return self.repaired_before | frozenset(self.repaired_now)

    def checkpoint(self, status: ReconciliationState) -> Checkpoint:
        return Checkpoint(
            settlement_date=self.settlement_date,
            status=status,
            periods_repaired=self.repaired,
            target_periods=self.target_periods,
            failed_periods=frozenset(self.failed),
            run_id=self.run_id,
        )


class ReconcileDate:
    """Reconcile one date against the remote settlement source.

    Args:
        detector: Classifies periods (scan and verify).
        fetcher: Fetches and filters the remote facts of a period.
        fact_store: Atomic per-period replace.
        calculator: Rebuilds derived rows per model parameter.
        aggregates: Refreshes Daily, Monthly and Yearly rollups.
        checkpoints: Durable progress store.
        retry_policy: Shared retry budget for period repairs.
        period_concurrency: Maximum periods repaired at once for one date.
        metrics: Outcome sink; records nothing when omitted.
        sleep: Awaitable sleep used between retries.
    """

    def __init__(
        self,
        *,
        detector: DiscrepancyDetector,
        fetcher: PeriodFactFetcher,
        fact_store: FactStore,
        calculator: DerivedCalculator,
        aggregates: AggregateMaintainer,
        checkpoints: CheckpointStore,
        retry_policy: RetryPolicy,
        period_concurrency: int = 4,
        metrics: ReconciliationMetrics | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if period_concurrency < 1:
            raise ValueError("period_concurrency must be >= 1")
        self._detector = detector
        self._fetcher = fetcher
        self._fact_store = fact_store
        self._calculator = calculator
        self._aggregates = aggregates
        self._checkpoints = checkpoints
        self._retry_policy = retry_policy
        self._period_concurrency = period_concurrency
        self._metrics: ReconciliationMetrics = metrics or NullReconciliationMetrics()
        self._sleep = sleep

    @property
    def checkpoints(self) -> CheckpointStore:
        """Checkpoint store shared with the batch driver."""
        return self._checkpoints

    async def execute(self, settlement_date: date, *, run_id: str | None = None) -> DateReport:
        """Run the state machine for ``settlement_date``.

        Args:
            settlement_date: Date to reconcile.
            run_id: Correlation id; generated when omitted.

        Returns:
            Terminal report (``DONE`` or ``FAILED``).

        Raises:
            Exception: Storage failures outside the period repair step
                propagate. ``ReconcileRange`` then marks the checkpoint ``FAILED``.
        """
        run_id = run_id or uuid4().hex
        set_run_context(run_id=run_id, settlement_date=settlement_date)

        checkpoint = await self._checkpoints.load(settlement_date)
        resumed = checkpoint is not None and checkpoint.is_resumable
        classification: dict[int, PeriodStatus] = {}

        if checkpoint is not None and resumed:
            progress = _RunProgress(
                settlement_date=settlement_date,
                run_id=run_id,
                target_periods=checkpoint.target_periods,
                repaired_before=checkpoint.periods_repaired,
            )
            logger.info(
                "reconcile.date.resumed",
                extra={
                    "extra": {
                        "from_state": checkpoint.status.value,
                        "pending": sorted(checkpoint.pending_periods),
                        "previous_run_id": checkpoint.run_id,
                    }
                },
            )
        else:
            comparisons = await self._detector.compare(settlement_date)
            classification = {p: c.status for p, c in comparisons.items() if c.status is not None}
            targets = frozenset(p for p, c in comparisons.items() if c.needs_repair)
            missing_remotely = sorted(
                p for p, s in classification.items() if s is PeriodStatus.MISSING_REMOTELY
            )
            logger.info(
                "reconcile.date.scanned",
                extra={
                    "extra": {
                        "targets": sorted(targets),
                        "missing_remotely": missing_remotely,
                    }
                },
            )
            progress = _RunProgress(
                settlement_date=settlement_date, run_id=run_id, target_periods=targets
            )
            if not targets:
                return await self._finish(
                    progress,
                    classification=classification,
                    context_unavailable=(),
                    still_diverged=(),
                    resumed=False,
                )

        await self._checkpoints.save(progress.checkpoint(ReconciliationState.REPAIRING))
        await self._repair_all(progress)

        context_unavailable: list[str] = []
        still_diverged: tuple[int, ...] = ()
        if progress.repaired:
            await self._checkpoints.save(progress.checkpoint(ReconciliationState.RECOMPUTING))
            context_unavailable = await self._recompute(settlement_date)
            await self._checkpoints.save(progress.checkpoint(ReconciliationState.VERIFYING))
            still_diverged = await self._verify(settlement_date, set(progress.repaired))

        return await self._finish(
            progress,
            classification=classification,
            context_unavailable=tuple(context_unavailable),
            still_diverged=still_diverged,
            resumed=resumed,
        )

    # ------------------------------------------------------------------
    # Repairing
    # ------------------------------------------------------------------

    async def _repair_once(
        self, settlement_date: date, settlement_period: int
    ) -> tuple[PeriodStatus, int]:
        facts = await self._fetcher.fetch_facts(settlement_date, settlement_period)
        local = await self._fact_store.count_and_sums(settlement_date, settlement_period)
        status = classify_period(PeriodTotals.from_facts(facts), local, self._detector.tolerance)
        if status is PeriodStatus.MISSING_REMOTELY:
            # Remote-vanished data is reported, never deleted.
            return status, 0
        return status, await self._fact_store.replace(settlement_date, settlement_period, facts)

    async def _repair_period(
        self,
        progress: _RunProgress,
        settlement_period: int,
        semaphore: asyncio.Semaphore,
    ) -> None:
        settlement_date = progress.settlement_date

        def _on_retry(attempt: int, exc: Exception, delay: float) -> None:
            logger.warning(
                "reconcile.period.retry",
                extra={
                    "extra": {
                        "settlement_period": settlement_period,
                        "attempt": attempt,
                        "delay_s": round(delay, 3),
                        "error": str(exc),
                    }
                },
            )

        async with semaphore:
            try:
                status, inserted = await retry_async(
                    lambda: self._repair_once(settlement_date, settlement_period),
                    policy=self._retry_policy,
                    retry_on=_is_retryable,
                    sleep=self._sleep,
                    on_retry=_on_retry,
                )
            except DomainError as exc:
                outcome = "failed"
                logger.warning(
                    "reconcile.period.failed",
                    extra={
                        "extra": {
                            "settlement_period": settlement_period,
                            "code": exc.code,
                            "error": str(exc),
                            "details": exc.details,
                        }
                    },
                )
            except Exception:
                outcome = "failed"
                logger.exception(
                    "reconcile.period.crashed",
                    extra={"extra": {"settlement_period": settlement_period}},
                )
            else:
                if status is PeriodStatus.MISSING_REMOTELY:
                    outcome = "skipped"
                    logger.warning(
                        "reconcile.period.missing_remotely",
                        extra={"extra": {"settlement_period": settlement_period}},
                    )
                else:
                    outcome = "repaired"
                    logger.info(
                        "reconcile.period.repaired",
                        extra={
                            "extra": {"settlement_period": settlement_period, "facts": inserted}
                        },
                    )

        self._metrics.period_repair(outcome)

        async with progress.lock:
            if outcome == "repaired":
                progress.repaired_now.add(settlement_period)
            elif outcome == "skipped":
                progress.settled[settlement_period] = PeriodStatus.MISSING_REMOTELY
                progress.target_periods = progress.target_periods - {settlement_period}
            else:
                progress.failed.add(settlement_period)
            try:
                await self._checkpoints.save(progress.checkpoint(ReconciliationState.REPAIRING))
            except Exception:
                # The period outcome stands; the next save or the terminal one records it.
                logger.exception(
                    "reconcile.checkpoint.save_failed",
                    extra={"extra": {"settlement_period": settlement_period}},
                )

    async def _repair_all(self, progress: _RunProgress) -> None:
        pending = sorted(progress.target_periods - progress.repaired_before)
        semaphore = asyncio.Semaphore(self._period_concurrency)
        # Barrier: recompute only starts once every period task has finished.
        results = await asyncio.gather(
            *(self._repair_period(progress, p, semaphore) for p in pending),
            return_exceptions=True,
        )
        for period, result in zip(pending, results, strict=True):
            if isinstance(result, BaseException):
                progress.failed.add(period)
                logger.error(
                    "reconcile.period.crashed",
                    exc_info=result,
                    extra={"extra": {"settlement_period": period}},
                )

    # ------------------------------------------------------------------
    # Recomputing and verifying
    # ------------------------------------------------------------------

    async def _recompute(self, settlement_date: date) -> list[str]:
        unavailable: list[str] = []
        for model in self._calculator.model_parameters:
            try:
                await self._calculator.recompute(settlement_date, model)
            except ContextUnavailable as exc:
                unavailable.append(model)
                logger.error(
                    "reconcile.context_unavailable",
                    extra={"extra": {"model_parameter": model, "details": exc.details}},
                )
        await self._aggregates.refresh(settlement_date)
        return unavailable

    async def _verify(self, settlement_date: date, periods: set[int]) -> tuple[int, ...]:
        comparisons = await self._detector.compare(settlement_date, periods)
        diverged = [p for p, c in comparisons.items() if c.status is not PeriodStatus.MATCHING]
        if not diverged:
            return ()
        exc = StillDiverged(diverged, details={"settlement_date": settlement_date.isoformat()})
        logger.error("reconcile.still_diverged", extra={"extra": exc.details})
        return exc.periods

    # ------------------------------------------------------------------
    # Terminal state
    # ------------------------------------------------------------------

    async def _finish(
        self,
        progress: _RunProgress,
        *,
        classification: dict[int, PeriodStatus],
        context_unavailable: tuple[str, ...],
        still_diverged: tuple[int, ...],
        resumed: bool,
    ) -> DateReport:
        failed = bool(progress.failed or still_diverged or context_unavailable)
        status = ReconciliationState.FAILED if failed else ReconciliationState.DONE

        await self._checkpoints.save(progress.checkpoint(status))

        self._metrics.date_finished(status.value)

        report = DateReport(
            settlement_date=progress.settlement_date,
            status=status,
            classification={**classification, **progress.settled},
            periods_repaired=tuple(sorted(progress.repaired)),
            failed_periods=tuple(sorted(progress.failed)),
            still_diverged=still_diverged,
            context_unavailable=context_unavailable,
            resumed=resumed,
        )
        log = logger.warning if failed else logger.info
        log(
            f"reconcile.date.{status.value.lower()}",
            extra={
                "extra": {
                    "periods_repaired": list(report.periods_repaired),
                    "failed_periods": list(report.failed_periods),
                    "still_diverged": list(still_diverged),
                    "context_unavailable": list(context_unavailable),
                    "resumed": resumed,
                }
            },
        )
        return report
