# src/settlement_recon/domain/exceptions/settlement.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""
Settlement Reconciliation Domain Exceptions

Purpose:
    Error taxonomy of the fetch, store, derive and verify pipeline. Retryable
    errors are consumed by the retry policy; terminal ones are recorded in the
    per-date report.

Layer: domain/exceptions
"""
from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .base import DomainError


class FetchFailed(DomainError):
    """Remote settlement source failed (transport, timeout, status or payload). Retryable."""

    code = "FETCH_FAILED"


class Throttled(DomainError):
    """Remote source answered with a throttling response; handled inside the client."""

    code = "THROTTLED"


class ContextUnavailable(DomainError):
    """No context value (network difficulty) is known for the requested date."""

    code = "CONTEXT_UNAVAILABLE"


class ReplaceFailed(DomainError):
    """A delete-then-insert transaction failed and was rolled back. Retryable."""

    code = "REPLACE_FAILED"


class StillDiverged(DomainError):
    """Post-repair verification found periods that still disagree with the source."""

    code = "STILL_DIVERGED"

    def __init__(
        self,
        periods: Iterable[int],
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize with the offending settlement periods.

        Args:
            periods: Settlement periods that failed verification.
            details: Optional structured diagnostic payload.
        """
        self.periods: tuple[int, ...] = tuple(sorted(set(periods)))
        super().__init__(
            f"periods still diverged: {list(self.periods)}",
            details={"periods": list(self.periods), **(details or {})},
        )
