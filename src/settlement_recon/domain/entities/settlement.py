# src/settlement_recon/domain/entities/settlement.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Settlement entities (Domain Layer).

Purpose:
    Immutable value objects for the fact pipeline: raw stack records as
    returned by the remote source, accepted facts, derived calculations and
    the count/sum totals compared during reconciliation.

Layer:
    domain/entities
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from settlement_recon.domain.services.settlement_calendar import validate_settlement_period

from .base import BaseEntity

_ZERO = Decimal("0")


@dataclass(frozen=True, slots=True)
class RawRecord(BaseEntity):
    """One row of a remote bid/offer stack, before filtering.

    Args:
        entity_id: BM unit identifier (``id`` in the stack payload).
        quantity: Signed volume in MWh; negative means curtailed.
        unit_price: Original stack price.
        so_flag: System-operator flag.
        cadl_flag: Continuous-acceptance-duration-limit flag.
        lead_party_name: Optional lead party reported by the source.
        side: ``"bid"`` or ``"offer"``.
    """

    entity_id: str
    quantity: Decimal
    unit_price: Decimal
    so_flag: bool = False
    cadl_flag: bool = False
    lead_party_name: str | None = None
    side: str = "bid"

    @property
    def qualifying_flags(self) -> tuple[bool, ...]:
        """Return the flags of which at least one must be set for acceptance."""
        return (self.so_flag, self.cadl_flag)


@dataclass(frozen=True, slots=True)
class Fact(BaseEntity):
    """Accepted, locally stored record for one (date, period, entity).

    Args:
        settlement_date: Calendar date of the settlement day.
        settlement_period: Period number in [1, 48].
        entity_id: BM unit identifier from the valid-entity set.
        quantity: Negative curtailed volume in MWh.
        unit_price: Original stack price.
        payment: Stored cost; never positive.
        so_flag: System-operator flag.
        cadl_flag: CADL flag.
        lead_party_name: Optional lead party name.

    Raises:
        ValueError: If invariants are violated.
    """

    settlement_date: date
    settlement_period: int
    entity_id: str
    quantity: Decimal
    unit_price: Decimal
    payment: Decimal
    so_flag: bool = False
    cadl_flag: bool = False
    lead_party_name: str | None = None

    def __post_init__(self) -> None:
        validate_settlement_period(self.settlement_period)
        if not self.entity_id:
            raise ValueError("entity_id must be non-empty")
        if self.payment > 0:
            raise ValueError("payment must be stored as a non-positive cost")


@dataclass(frozen=True, slots=True)
class DerivedCalculation(BaseEntity):
    """Secondary value computed for one fact under one model parameter.

    Args:
        settlement_date: Date of the underlying fact.
        settlement_period: Period of the underlying fact.
        entity_id: Entity of the underlying fact.
        model_parameter: Transform variant (miner model) that produced the value.
        derived_value: Transform output.
        context_value_used: Context value (difficulty) frozen for audit.
    """

    settlement_date: date
    settlement_period: int
    entity_id: str
    model_parameter: str
    derived_value: Decimal
    context_value_used: Decimal

    def __post_init__(self) -> None:
        validate_settlement_period(self.settlement_period)
        if not self.model_parameter:
            raise ValueError("model_parameter must be non-empty")


@dataclass(frozen=True, slots=True)
class PeriodTotals(BaseEntity):
    """Row count and sums over a set of facts."""

    count: int
    total_quantity: Decimal = _ZERO
    total_payment: Decimal = _ZERO

    def __post_init__(self) -> None:
        if self.count < 0:
            raise ValueError("count must be >= 0")

    @classmethod
    def empty(cls) -> PeriodTotals:
        """Return zero totals."""
        return cls(count=0)

    @classmethod
    def from_facts(cls, facts: Iterable[Fact]) -> PeriodTotals:
        """Sum an iterable of facts."""
        count = 0
        quantity = _ZERO
        payment = _ZERO
        for fact in facts:
            count += 1
            quantity += fact.quantity
            payment += fact.payment
        return cls(count=count, total_quantity=quantity, total_payment=payment)


@dataclass(frozen=True, slots=True)
class DuplicateGroup(BaseEntity):
    """A (period, entity) pair stored more than once for one date."""

    settlement_date: date
    settlement_period: int
    entity_id: str
    count: int
