# src/settlement_recon/domain/interfaces/gateways/reference_entities.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Domain-facing interface for the valid-entity reference set."""

from __future__ import annotations

from typing import Protocol


class ReferenceEntityProvider(Protocol):
    """Provides the valid entities once per process lifetime."""

    async def load_entities(self) -> dict[str, str | None]:
        """Return a mapping from entity id to its lead party name (or ``None``)."""
        raise NotImplementedError
