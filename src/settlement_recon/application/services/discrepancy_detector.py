# src/settlement_recon/application/services/discrepancy_detector.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Discrepancy detector (Application Service).

Purpose:
    Classify every settlement period of a date by comparing the filtered
    remote records with the stored facts. Period fetches run concurrently
    under a semaphore; every fetch passes through the shared rate limiter
    inside the transport client.

Layer:
    application/services
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable, Iterable
from datetime import date
from decimal import Decimal

from settlement_recon.application.services.fact_store import FactStore
from settlement_recon.application.services.period_fact_fetcher import PeriodFactFetcher
from settlement_recon.application.services.retry import RetryPolicy, retry_async
from settlement_recon.domain.entities.reconciliation import PeriodComparison
from settlement_recon.domain.entities.settlement import PeriodTotals
from settlement_recon.domain.enums.reconciliation import PeriodStatus
from settlement_recon.domain.exceptions.settlement import FetchFailed
from settlement_recon.domain.services.discrepancy import DEFAULT_TOLERANCE, classify_period
from settlement_recon.domain.services.settlement_calendar import (
    SETTLEMENT_PERIODS,
    validate_settlement_period,
)

logger = logging.getLogger(__name__)


def _is_fetch_failure(exc: Exception) -> bool:
    return isinstance(exc, FetchFailed)


class DiscrepancyDetector:
    """Compare remote and local totals per settlement period.

    Args:
        fetcher: Fetches and filters the remote facts of a period.
        fact_store: Source of the local totals.
        tolerance: Absolute tolerance on quantity and payment sums.
        concurrency: Maximum periods fetched at once.
        retry_policy: Retry budget for ``FetchFailed``; one attempt when omitted.
        sleep: Awaitable sleep used between retries.
    """

    def __init__(
        self,
        fetcher: PeriodFactFetcher,
        fact_store: FactStore,
        *,
        tolerance: Decimal = DEFAULT_TOLERANCE,
        concurrency: int = 4,
        retry_policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if tolerance <= 0:
            raise ValueError("tolerance must be > 0")
        if concurrency < 1:
            raise ValueError("concurrency must be >= 1")
        self._fetcher = fetcher
        self._fact_store = fact_store
        self._tolerance = tolerance
        self._concurrency = concurrency
        self._retry_policy = retry_policy or RetryPolicy(max_attempts=1, base=0.0, cap=0.0)
        self._sleep = sleep

    @property
    def tolerance(self) -> Decimal:
        """Absolute tolerance used for classification."""
        return self._tolerance

    async def remote_totals(self, settlement_date: date, settlement_period: int) -> PeriodTotals:
        """Return the totals of the filtered remote facts, with retry.

        Raises:
            FetchFailed: When the retry budget is exhausted.
        """
        facts = await retry_async(
            lambda: self._fetcher.fetch_facts(settlement_date, settlement_period),
            policy=self._retry_policy,
            retry_on=_is_fetch_failure,
            sleep=self._sleep,
        )
        return PeriodTotals.from_facts(facts)

    async def compare_period(
        self, settlement_date: date, settlement_period: int
    ) -> PeriodComparison:
        """Classify one period.

        Raises:
            FetchFailed: When the remote side cannot be fetched.
        """
        validate_settlement_period(settlement_period)
        remote = await self.remote_totals(settlement_date, settlement_period)
        local = await self._fact_store.count_and_sums(settlement_date, settlement_period)
        return PeriodComparison(
            settlement_period=settlement_period,
            remote=remote,
            local=local,
            status=classify_period(remote, local, self._tolerance),
        )

    async def compare(
        self,
        settlement_date: date,
        periods: Iterable[int] | None = None,
    ) -> dict[int, PeriodComparison]:
        """Compare the given periods (all 48 by default), tolerating fetch failures.

        A period whose remote side cannot be fetched is returned with
        ``status=None`` and the failure in ``error``.
        """
        targets = sorted(set(periods)) if periods is not None else list(SETTLEMENT_PERIODS)
        semaphore = asyncio.Semaphore(self._concurrency)

        async def _one(period: int) -> PeriodComparison:
            async with semaphore:
                try:
                    return await self.compare_period(settlement_date, period)
                except FetchFailed as exc:
                    logger.warning(
                        "detector.fetch_failed",
                        extra={
                            "extra": {
                                "settlement_period": period,
                                "error": str(exc),
                                "details": exc.details,
                            }
                        },
                    )
                    local = await self._fact_store.count_and_sums(settlement_date, period)
                    return PeriodComparison(
                        settlement_period=period,
                        remote=None,
                        local=local,
                        status=None,
                        error=str(exc) or exc.code,
                    )

        results = await asyncio.gather(*(_one(p) for p in targets))
        return {r.settlement_period: r for r in results}

    async def classify(self, settlement_date: date) -> dict[int, PeriodStatus]:
        """Classify all 48 periods of a date.

        Raises:
            FetchFailed: If any period cannot be fetched after retries.
        """
        comparisons = await self.compare(settlement_date)
        failed = sorted(p for p, c in comparisons.items() if c.status is None)
        if failed:
            raise FetchFailed(
                "periods could not be fetched",
                details={"settlement_date": settlement_date.isoformat(), "periods": failed},
            )
        return {p: c.status for p, c in comparisons.items() if c.status is not None}
