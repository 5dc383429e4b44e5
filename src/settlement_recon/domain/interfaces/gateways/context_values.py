# src/settlement_recon/domain/interfaces/gateways/context_values.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Domain-facing interface for per-date context values (network difficulty)."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Protocol


class ContextValueProvider(Protocol):
    """Keyed lookup of the context value used by derived calculations."""

    async def get_context_value(self, settlement_date: date) -> Decimal | None:
        """Return the value for ``settlement_date`` or ``None`` when unavailable."""
        raise NotImplementedError
