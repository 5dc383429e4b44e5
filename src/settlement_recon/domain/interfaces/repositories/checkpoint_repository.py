# src/settlement_recon/domain/interfaces/repositories/checkpoint_repository.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Domain-facing interface for reconciliation checkpoints.

Checkpoints live apart from the fact tables. Implementations raise
``ValueError`` when a stored row cannot be decoded; callers treat that as a
missing checkpoint.
"""

from __future__ import annotations

from datetime import date
from typing import Protocol

from settlement_recon.domain.entities.reconciliation import Checkpoint


class CheckpointRepository(Protocol):
    """Domain-level contract for checkpoint persistence."""

    async def get(self, settlement_date: date) -> Checkpoint | None:
        """Return the checkpoint of a date, if any."""
        raise NotImplementedError

    async def save(self, checkpoint: Checkpoint) -> None:
        """Insert or overwrite the checkpoint of ``checkpoint.settlement_date``."""
        raise NotImplementedError

    async def delete(self, settlement_date: date) -> None:
        """Remove the checkpoint of a date."""
        raise NotImplementedError
