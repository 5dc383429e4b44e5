# src/settlement_recon/adapters/presenters/reconciliation_presenter.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Presenters for reconciliation CLI output.

Purpose:
    Transform domain reports into stable CLI schemas.

Layer:
    adapters/presenters
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import date
from decimal import Decimal

from settlement_recon.adapters.schemas.cli.reconciliation_schemas import (
    BatchReportCLI,
    ClassificationCLI,
    CoverageCLI,
    DateReportCLI,
    DuplicateGroupCLI,
    DuplicatesCLI,
    PeriodComparisonCLI,
)
from settlement_recon.domain.entities.reconciliation import (
    BatchReport,
    CoverageReport,
    DateReport,
    PeriodComparison,
)
from settlement_recon.domain.entities.settlement import DuplicateGroup


def _fmt(value: Decimal) -> str:
    return format(value, "f")


def present_date_report(report: DateReport) -> DateReportCLI:
    """Present one date report."""
    return DateReportCLI(
        settlement_date=report.settlement_date,
        status=report.status,
        classification=dict(sorted(report.classification.items())),
        periods_repaired=list(report.periods_repaired),
        failed_periods=list(report.failed_periods),
        still_diverged=list(report.still_diverged),
        context_unavailable=list(report.context_unavailable),
        resumed=report.resumed,
        skipped=report.skipped,
        error=report.error,
    )


def present_batch_report(report: BatchReport) -> BatchReportCLI:
    """Present a batch report with its per-date entries in date order."""
    return BatchReportCLI(
        dates_processed=report.dates_processed,
        dates_repaired=report.dates_repaired,
        dates_failed=report.dates_failed,
        dates_skipped=report.dates_skipped,
        cancelled=report.cancelled,
        unprocessed=list(report.unprocessed),
        per_date=[present_date_report(r) for r in report.per_date],
    )


def _present_comparison(c: PeriodComparison) -> PeriodComparisonCLI:
    return PeriodComparisonCLI(
        settlement_period=c.settlement_period,
        status=c.status,
        remote_count=c.remote.count if c.remote is not None else None,
        remote_quantity=_fmt(c.remote.total_quantity) if c.remote is not None else None,
        remote_payment=_fmt(c.remote.total_payment) if c.remote is not None else None,
        local_count=c.local.count,
        local_quantity=_fmt(c.local.total_quantity),
        local_payment=_fmt(c.local.total_payment),
        error=c.error,
    )


def present_classification(
    settlement_date: date,
    comparisons: Mapping[int, PeriodComparison],
) -> ClassificationCLI:
    """Present the per-period comparison of one date."""
    return ClassificationCLI(
        settlement_date=settlement_date,
        periods=[_present_comparison(comparisons[p]) for p in sorted(comparisons)],
    )


def present_coverage(reports: Iterable[CoverageReport]) -> list[CoverageCLI]:
    """Present coverage reports in date order."""
    return [
        CoverageCLI(
            settlement_date=r.settlement_date,
            fact_count=r.fact_count,
            derived_counts=dict(sorted(r.derived_counts.items())),
            incomplete_models=list(r.incomplete_models),
            complete=r.complete,
        )
        for r in sorted(reports, key=lambda r: r.settlement_date)
    ]


def present_duplicates(settlement_date: date, groups: Iterable[DuplicateGroup]) -> DuplicatesCLI:
    """Present duplicate fact groups of one date."""
    return DuplicatesCLI(
        settlement_date=settlement_date,
        groups=[
            DuplicateGroupCLI(
                settlement_period=g.settlement_period, entity_id=g.entity_id, count=g.count
            )
            for g in groups
        ],
    )
