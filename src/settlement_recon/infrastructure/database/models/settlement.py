# src/settlement_recon/infrastructure/database/models/settlement.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Settlement persistence models.

Tables:
    * ``curtailment_records``: accepted facts, one per (date, period, entity)
      by delete-before-insert discipline (no unique constraint).
    * ``historical_calculations``: derived values per fact and model.
    * ``fact_aggregates`` / ``derived_aggregates``: Daily/Monthly/Yearly rollups.
    * ``reconciliation_checkpoints``: per-date progress, independent of data.
    * ``context_values``: per-date network difficulty.

Layer:
    infrastructure/database/models
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import JSON, Boolean, Date, DateTime, Index, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, CreatedAtMixin, utc_now

#: Scale shared by all stored decimals.
DECIMAL_SCALE = 8
_Amount = Numeric(28, DECIMAL_SCALE)


class FactRow(CreatedAtMixin, Base):
    """ORM model for accepted settlement facts."""

    __tablename__ = "curtailment_records"
    __table_args__ = (
        Index("ix_curtailment_records_date_period", "settlement_date", "settlement_period"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    settlement_date: Mapped[date] = mapped_column(Date, nullable=False)
    settlement_period: Mapped[int] = mapped_column(Integer, nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    lead_party_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    quantity: Mapped[Decimal] = mapped_column(_Amount, nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(_Amount, nullable=False)
    payment: Mapped[Decimal] = mapped_column(_Amount, nullable=False)
    so_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cadl_flag: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class DerivedCalculationRow(Base):
    """ORM model for derived (mined-value) calculations."""

    __tablename__ = "historical_calculations"
    __table_args__ = (
        Index("ix_historical_calculations_date_model", "settlement_date", "model_parameter"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    settlement_date: Mapped[date] = mapped_column(Date, nullable=False)
    settlement_period: Mapped[int] = mapped_column(Integer, nullable=False)
    entity_id: Mapped[str] = mapped_column(String(64), nullable=False)
    model_parameter: Mapped[str] = mapped_column(String(32), nullable=False)
    derived_value: Mapped[Decimal] = mapped_column(_Amount, nullable=False)
    context_value_used: Mapped[Decimal] = mapped_column(Numeric(38, 4), nullable=False)
    calculated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class FactAggregateRow(Base):
    """ORM model for fact rollups keyed by (level, period_key)."""

    __tablename__ = "fact_aggregates"

    level: Mapped[str] = mapped_column(String(16), primary_key=True)
    period_key: Mapped[str] = mapped_column(String(10), primary_key=True)
    total_quantity: Mapped[Decimal] = mapped_column(_Amount, nullable=False)
    total_payment: Mapped[Decimal] = mapped_column(_Amount, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class DerivedAggregateRow(Base):
    """ORM model for derived rollups keyed by (level, period_key, model_parameter)."""

    __tablename__ = "derived_aggregates"

    level: Mapped[str] = mapped_column(String(16), primary_key=True)
    period_key: Mapped[str] = mapped_column(String(10), primary_key=True)
    model_parameter: Mapped[str] = mapped_column(String(32), primary_key=True)
    total_derived_value: Mapped[Decimal] = mapped_column(_Amount, nullable=False)
    last_updated: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class CheckpointRow(Base):
    """ORM model for per-date reconciliation checkpoints."""

    __tablename__ = "reconciliation_checkpoints"

    settlement_date: Mapped[date] = mapped_column(Date, primary_key=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False)
    periods_repaired: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    target_periods: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    failed_periods: Mapped[list[Any]] = mapped_column(JSON, nullable=False, default=list)
    run_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )


class ContextValueRow(Base):
    """ORM model for per-date context values (network difficulty)."""

    __tablename__ = "context_values"

    value_date: Mapped[date] = mapped_column(Date, primary_key=True)
    value: Mapped[Decimal] = mapped_column(Numeric(38, 4), nullable=False)
    source: Mapped[str | None] = mapped_column(String(64), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
