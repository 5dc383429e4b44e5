# src/settlement_recon/dependencies/reconciliation.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Dependency wiring for reconciliation entrypoints.

Purpose:
    Build the object graph used by the CLI from ``Settings``: one database
    engine, one rate limiter and one transport client per process, shared by
    every service and use case. The single public surface is
    :func:`reconciliation_container`, an async context manager that tears the
    shared resources down on exit, even on error.

Layer:
    dependencies
"""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from functools import partial

from settlement_recon.adapters.gateways.bmu_reference_provider import BmuMappingProvider
from settlement_recon.adapters.gateways.context_value_provider import SqlContextValueProvider
from settlement_recon.adapters.gateways.elexon_settlement_gateway import ElexonSettlementGateway
from settlement_recon.adapters.uow import SqlAlchemyUnitOfWork
from settlement_recon.application.services.aggregate_maintainer import AggregateMaintainer
from settlement_recon.application.services.checkpoint_store import CheckpointStore
from settlement_recon.application.services.derived_calculator import DerivedCalculator
from settlement_recon.application.services.discrepancy_detector import DiscrepancyDetector
from settlement_recon.application.services.fact_store import FactStore
from settlement_recon.application.services.period_fact_fetcher import PeriodFactFetcher
from settlement_recon.application.services.retry import RetryPolicy
from settlement_recon.application.use_cases.reconciliation.check_calculation_coverage import (
    CheckCalculationCoverage,
)
from settlement_recon.application.use_cases.reconciliation.reconcile_date import ReconcileDate
from settlement_recon.application.use_cases.reconciliation.reconcile_range import ReconcileRange
from settlement_recon.application.use_cases.reconciliation.reconcile_recent import ReconcileRecent
from settlement_recon.config.settings import Settings, get_settings
from settlement_recon.infrastructure.database import session as db_session
from settlement_recon.infrastructure.external_apis.elexon.client import ElexonClient
from settlement_recon.infrastructure.external_apis.elexon.settings import ElexonSettings
from settlement_recon.infrastructure.logging.logger import get_json_logger
from settlement_recon.infrastructure.observability.metrics import PrometheusReconciliationMetrics
from settlement_recon.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter

logger = get_json_logger(__name__)


@dataclass
class ReconciliationContainer:
    """Resolved services and use cases for one process."""

    settings: Settings
    client: ElexonClient
    context_values: SqlContextValueProvider
    fact_store: FactStore
    detector: DiscrepancyDetector
    reconcile_date: ReconcileDate
    reconcile_range: ReconcileRange
    reconcile_recent: ReconcileRecent
    coverage: CheckCalculationCoverage


def build_retry_policy(settings: Settings) -> RetryPolicy:
    """Return the retry policy shared by the detector and the repair step."""
    return RetryPolicy(
        max_attempts=settings.recon_retry_attempts,
        base=settings.recon_retry_base_s,
        cap=settings.recon_retry_cap_s,
    )


@asynccontextmanager
async def reconciliation_container(
    settings: Settings | None = None,
    elexon_settings: ElexonSettings | None = None,
) -> AsyncGenerator[ReconciliationContainer, None]:
    """Build the reconciliation object graph and dispose of it on exit.

    Args:
        settings: Application settings; loaded from the environment when omitted.
        elexon_settings: Provider settings; loaded from the environment when omitted.

    Yields:
        ReconciliationContainer: Wired services and use cases.
    """
    settings = settings or get_settings()
    elexon_settings = elexon_settings or ElexonSettings()

    session_factory = db_session.init_engine_and_sessionmaker(settings)
    uow_factory = partial(SqlAlchemyUnitOfWork, session_factory=session_factory)

    limiter = SlidingWindowRateLimiter(
        elexon_settings.max_requests,
        elexon_settings.window_s,
        safety_margin_s=elexon_settings.safety_margin_s,
    )
    client = ElexonClient(elexon_settings, rate_limiter=limiter)
    retry_policy = build_retry_policy(settings)
    models = settings.model_parameters

    fetcher = PeriodFactFetcher(
        ElexonSettlementGateway(client), BmuMappingProvider(settings.bmu_mapping_path)
    )
    fact_store = FactStore(uow_factory)
    context_values = SqlContextValueProvider(session_factory)
    detector = DiscrepancyDetector(
        fetcher,
        fact_store,
        tolerance=settings.recon_tolerance,
        concurrency=settings.recon_period_concurrency,
        retry_policy=retry_policy,
    )
    reconcile_date = ReconcileDate(
        detector=detector,
        fetcher=fetcher,
        fact_store=fact_store,
        calculator=DerivedCalculator(uow_factory, context_values, model_parameters=models),
        aggregates=AggregateMaintainer(uow_factory, model_parameters=models),
        checkpoints=CheckpointStore(uow_factory),
        retry_policy=retry_policy,
        period_concurrency=settings.recon_period_concurrency,
        metrics=PrometheusReconciliationMetrics(),
    )
    reconcile_range = ReconcileRange(reconcile_date, worker_count=settings.recon_worker_count)

    container = ReconciliationContainer(
        settings=settings,
        client=client,
        context_values=context_values,
        fact_store=fact_store,
        detector=detector,
        reconcile_date=reconcile_date,
        reconcile_range=reconcile_range,
        reconcile_recent=ReconcileRecent(
            reconcile_range, lookback_days=settings.recon_lookback_days
        ),
        coverage=CheckCalculationCoverage(uow_factory, model_parameters=models),
    )
    logger.info(
        "container.ready",
        extra={
            "extra": {
                "models": list(models),
                "workers": settings.recon_worker_count,
                "period_concurrency": settings.recon_period_concurrency,
            }
        },
    )

    try:
        yield container
    finally:
        try:
            await client.aclose()
        except Exception:
            logger.exception("container.http_client_close_failed")
        try:
            await db_session.dispose_engine()
        except Exception:
            logger.exception("container.db_dispose_failed")
