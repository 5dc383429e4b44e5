# src/settlement_recon/domain/services/record_filter.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Record filter (Domain Service).

Purpose:
    Turn raw remote stack records into accepted facts. A record is accepted
    when its quantity is negative (curtailment), at least one qualifying flag
    is set and its entity belongs to the valid-entity set. Accepted records
    get a payment stored as a non-positive cost.

Layer:
    domain/services

Notes:
    * Pure and deterministic; the valid-entity set is handed in by the caller.
    * The same predicate is applied on ingest and by the discrepancy
      detector so remote and local totals are comparable.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import replace
from datetime import date
from decimal import Decimal

from settlement_recon.domain.entities.settlement import Fact, RawRecord


def payment_for(quantity: Decimal, unit_price: Decimal) -> Decimal:
    """Return the stored payment for a curtailed volume.

    The payment is ``|quantity| * unit_price`` stored as a cost, so the sign
    is always non-positive regardless of the sign of the stack price.
    """
    return -abs(abs(quantity) * unit_price)


class RecordFilter:
    """Acceptance predicate and transform from ``RawRecord`` to ``Fact``.

    Args:
        valid_entities: Mapping from entity id to its lead party name (or
            ``None``). Only the keys take part in the predicate.
    """

    def __init__(self, valid_entities: Mapping[str, str | None]) -> None:
        self._entities: dict[str, str | None] = dict(valid_entities)

    @property
    def valid_entities(self) -> frozenset[str]:
        """Return the valid entity ids."""
        return frozenset(self._entities)

    def is_acceptable(self, raw: RawRecord) -> bool:
        """Return True when ``raw`` satisfies the acceptance predicate."""
        return (
            raw.quantity < 0
            and any(raw.qualifying_flags)
            and raw.entity_id in self._entities
        )

    def accept(self, raw: RawRecord, settlement_date: date, settlement_period: int) -> Fact | None:
        """Return the fact for ``raw`` or ``None`` when it is rejected."""
        if not self.is_acceptable(raw):
            return None
        return Fact(
            settlement_date=settlement_date,
            settlement_period=settlement_period,
            entity_id=raw.entity_id,
            quantity=raw.quantity,
            unit_price=raw.unit_price,
            payment=payment_for(raw.quantity, raw.unit_price),
            so_flag=raw.so_flag,
            cadl_flag=raw.cadl_flag,
            lead_party_name=raw.lead_party_name or self._entities.get(raw.entity_id),
        )

    def filter(
        self,
        records: Iterable[RawRecord],
        settlement_date: date,
        settlement_period: int,
    ) -> list[Fact]:
        """Apply :meth:`accept` to a batch, dropping rejected records.

        A period holds at most one fact per entity. Repeated records for the
        same entity (the remote stack can list a unit several times) are
        merged into the first one: quantities and payments are summed, flags
        are OR-ed and the first known lead party is kept. Output order follows
        each entity's first appearance.
        """
        merged: dict[str, Fact] = {}
        for raw in records:
            fact = self.accept(raw, settlement_date, settlement_period)
            if fact is None:
                continue
            seen = merged.get(fact.entity_id)
            merged[fact.entity_id] = fact if seen is None else _merge(seen, fact)
        return list(merged.values())


def _merge(first: Fact, other: Fact) -> Fact:
    return replace(
        first,
        quantity=first.quantity + other.quantity,
        payment=first.payment + other.payment,
        so_flag=first.so_flag or other.so_flag,
        cadl_flag=first.cadl_flag or other.cadl_flag,
        lead_party_name=first.lead_party_name or other.lead_party_name,
    )
