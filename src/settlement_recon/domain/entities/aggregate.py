# src/settlement_recon/domain/entities/aggregate.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Aggregate rows of the Daily/Monthly/Yearly rollup."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal

from settlement_recon.domain.enums.reconciliation import AggregateLevel

from .base import BaseEntity


@dataclass(frozen=True, slots=True)
class FactAggregate(BaseEntity):
    """Rollup of fact quantity and payment for one period key.

    Args:
        level: Aggregate level.
        period_key: ``YYYY-MM-DD``, ``YYYY-MM`` or ``YYYY`` depending on level.
        total_quantity: Sum of the child level's quantity.
        total_payment: Sum of the child level's payment.
        last_updated: When the row was last refreshed.
    """

    level: AggregateLevel
    period_key: str
    total_quantity: Decimal
    total_payment: Decimal
    last_updated: datetime | None = None


@dataclass(frozen=True, slots=True)
class DerivedAggregate(BaseEntity):
    """Rollup of derived values for one period key and model parameter."""

    level: AggregateLevel
    period_key: str
    model_parameter: str
    total_derived_value: Decimal
    last_updated: datetime | None = None
