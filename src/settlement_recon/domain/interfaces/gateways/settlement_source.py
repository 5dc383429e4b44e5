# src/settlement_recon/domain/interfaces/gateways/settlement_source.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Domain-facing interface for the remote settlement source."""

from __future__ import annotations

from datetime import date
from typing import Protocol

from settlement_recon.domain.entities.settlement import RawRecord


class SettlementSource(Protocol):
    """Remote source of truth for settlement-period records."""

    async def fetch_records(self, settlement_date: date, settlement_period: int) -> list[RawRecord]:
        """Return the raw records of one period.

        Raises:
            FetchFailed: On transport, timeout, status or payload errors.
        """
        raise NotImplementedError
