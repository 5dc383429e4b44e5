# src/settlement_recon/adapters/schemas/cli/reconciliation_schemas.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""CLI schemas for reconciliation reports.

Layer:
    adapters/schemas/cli
"""

from __future__ import annotations

from datetime import date

from pydantic import Field

from settlement_recon.adapters.schemas.cli.base import BaseCLISchema
from settlement_recon.domain.enums.reconciliation import PeriodStatus, ReconciliationState


class DateReportCLI(BaseCLISchema):
    """Outcome of reconciling one date."""

    settlement_date: date
    status: ReconciliationState
    classification: dict[int, PeriodStatus] = Field(
        default_factory=dict,
        description="Scan result per settlement period; empty when the run resumed.",
    )
    periods_repaired: list[int] = Field(default_factory=list)
    failed_periods: list[int] = Field(default_factory=list)
    still_diverged: list[int] = Field(default_factory=list)
    context_unavailable: list[str] = Field(default_factory=list)
    resumed: bool = False
    skipped: bool = False
    error: str | None = None


class BatchReportCLI(BaseCLISchema):
    """Outcome of reconciling a date range."""

    dates_processed: int = Field(..., ge=0)
    dates_repaired: int = Field(..., ge=0)
    dates_failed: int = Field(..., ge=0)
    dates_skipped: int = Field(..., ge=0)
    cancelled: bool = False
    unprocessed: list[date] = Field(default_factory=list)
    per_date: list[DateReportCLI] = Field(default_factory=list)


class PeriodComparisonCLI(BaseCLISchema):
    """Remote versus local totals of one period."""

    settlement_period: int = Field(..., ge=1, le=48)
    status: PeriodStatus | None
    remote_count: int | None = None
    remote_quantity: str | None = None
    remote_payment: str | None = None
    local_count: int
    local_quantity: str
    local_payment: str
    error: str | None = None


class ClassificationCLI(BaseCLISchema):
    """Classification of all periods of one date."""

    settlement_date: date
    periods: list[PeriodComparisonCLI]


class CoverageCLI(BaseCLISchema):
    """Derived-calculation coverage of one date."""

    settlement_date: date
    fact_count: int = Field(..., ge=0)
    derived_counts: dict[str, int]
    incomplete_models: list[str] = Field(default_factory=list)
    complete: bool


class DuplicateGroupCLI(BaseCLISchema):
    """A (period, entity) pair stored more than once."""

    settlement_period: int
    entity_id: str
    count: int


class DuplicatesCLI(BaseCLISchema):
    """Duplicate fact groups of one date."""

    settlement_date: date
    groups: list[DuplicateGroupCLI]
