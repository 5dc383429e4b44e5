# src/settlement_recon/application/run_context.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Run correlation context (Application Layer).

Task-local identifiers of the reconciliation run and of the date being
reconciled. Use cases set them; the JSON log formatter and the transport
client read them. Each asyncio task owns a copy of the context, so
concurrent workers do not overwrite each other.
"""

from __future__ import annotations

from contextvars import ContextVar
from datetime import date

_RUN_ID_CTX: ContextVar[str | None] = ContextVar("settlement_recon_run_id", default=None)
_SETTLEMENT_DATE_CTX: ContextVar[str | None] = ContextVar(
    "settlement_recon_settlement_date", default=None
)


def set_run_context(*, run_id: str | None = None, settlement_date: date | None = None) -> None:
    """Set correlation identifiers on the current context.

    Additive: passing only one argument leaves the other unchanged.
    """
    if run_id is not None:
        _RUN_ID_CTX.set(run_id)
    if settlement_date is not None:
        _SETTLEMENT_DATE_CTX.set(settlement_date.isoformat())


def get_run_id() -> str | None:
    """Return the current run id, if any."""
    return _RUN_ID_CTX.get(None)


def get_settlement_date() -> str | None:
    """Return the current settlement date (ISO), if any."""
    return _SETTLEMENT_DATE_CTX.get(None)
