# src/settlement_recon/adapters/gateways/elexon_settlement_gateway.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Adapter Gateway: Elexon settlement stacks → raw records.

This gateway sits on top of the rate-limited transport client and implements
the ``SettlementSource`` port: for one (date, period) it fetches the bid and
offer stacks and maps every row to a :class:`RawRecord`.

Design principles:
    * Both stacks are requested concurrently; the shared limiter still
      bounds the global request rate.
    * Numeric values are parsed through ``str`` to keep decimal precision.
    * Malformed rows surface as ``FetchFailed``; nothing is dropped silently.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any

from settlement_recon.domain.entities.settlement import RawRecord
from settlement_recon.domain.exceptions.settlement import FetchFailed
from settlement_recon.infrastructure.external_apis.elexon.client import ElexonClient, StackSide


class ElexonSettlementGateway:
    """``SettlementSource`` backed by the BMRS bid/offer stack endpoints."""

    def __init__(self, client: ElexonClient) -> None:
        """Initialize the gateway.

        Args:
            client: Rate-limited transport client (shared process-wide).
        """
        self._client = client

    async def fetch_records(self, settlement_date: date, settlement_period: int) -> list[RawRecord]:
        """Return bid and offer records of one period (bids first)."""
        bids, offers = await asyncio.gather(
            self._fetch_side("bid", settlement_date, settlement_period),
            self._fetch_side("offer", settlement_date, settlement_period),
        )
        return [*bids, *offers]

    async def _fetch_side(
        self,
        side: StackSide,
        settlement_date: date,
        settlement_period: int,
    ) -> list[RawRecord]:
        rows = await self._client.fetch_stack(side, settlement_date, settlement_period)
        return [self._coerce_row(row, side) for row in rows]

    @staticmethod
    def _coerce_row(row: Mapping[str, Any], side: StackSide) -> RawRecord:
        """Convert a provider row to a :class:`RawRecord`.

        Raises:
            FetchFailed: On missing/malformed values.
        """
        try:
            entity_id = str(row["id"])
            quantity = Decimal(str(row["volume"]))
            unit_price = Decimal(str(row["originalPrice"]))
        except (KeyError, InvalidOperation) as exc:
            raise FetchFailed(
                "bad_values", details={"side": side, "error": repr(exc)}
            ) from exc
        if not quantity.is_finite() or not unit_price.is_finite():
            raise FetchFailed("bad_values", details={"side": side, "error": "non-finite number"})

        lead_party = row.get("leadPartyName")
        return RawRecord(
            entity_id=entity_id,
            quantity=quantity,
            unit_price=unit_price,
            so_flag=bool(row.get("soFlag", False)),
            cadl_flag=bool(row.get("cadlFlag", False)),
            lead_party_name=str(lead_party) if lead_party else None,
            side=side,
        )
