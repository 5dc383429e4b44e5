# src/settlement_recon/application/services/checkpoint_store.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Checkpoint store (Application Service).

Thin transactional wrapper around the checkpoint repository. A checkpoint that
cannot be decoded is treated as absent, which makes the next run start fresh.
"""

from __future__ import annotations

import logging
from datetime import date

from settlement_recon.application.uow import UnitOfWork, UnitOfWorkFactory, run_in_uow
from settlement_recon.domain.entities.reconciliation import Checkpoint
from settlement_recon.domain.interfaces.repositories.checkpoint_repository import (
    CheckpointRepository,
)

logger = logging.getLogger(__name__)


class CheckpointStore:
    """Load and save per-date reconciliation checkpoints."""

    def __init__(self, uow_factory: UnitOfWorkFactory) -> None:
        self._uow_factory = uow_factory

    async def load(self, settlement_date: date) -> Checkpoint | None:
        """Return the checkpoint of a date, or ``None`` if absent or unreadable."""
        async with self._uow_factory() as uow:
            repo: CheckpointRepository = uow.get_repository(CheckpointRepository)
            try:
                return await repo.get(settlement_date)
            except ValueError as exc:
                logger.warning(
                    "checkpoint.unreadable",
                    extra={
                        "extra": {
                            "settlement_date": settlement_date.isoformat(),
                            "error": str(exc),
                        }
                    },
                )
                return None

    async def save(self, checkpoint: Checkpoint) -> None:
        """Persist ``checkpoint``, overwriting any previous one for its date."""

        async def _tx(uow: UnitOfWork) -> None:
            repo: CheckpointRepository = uow.get_repository(CheckpointRepository)
            await repo.save(checkpoint)

        await run_in_uow(self._uow_factory(), _tx)
