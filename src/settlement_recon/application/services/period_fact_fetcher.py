# src/settlement_recon/application/services/period_fact_fetcher.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Period fact fetcher (Application Service).

Purpose:
    Bind the remote settlement source, the valid-entity reference set and the
    record filter into one operation: fetch the remote records of a period
    and return the facts that pass the acceptance predicate. The discrepancy
    detector and the repair step both go through this service, so the remote
    side of every comparison is filtered exactly as ingested data is.

Layer:
    application/services
"""

from __future__ import annotations

import asyncio
from datetime import date

from settlement_recon.domain.entities.settlement import Fact
from settlement_recon.domain.interfaces.gateways.reference_entities import (
    ReferenceEntityProvider,
)
from settlement_recon.domain.interfaces.gateways.settlement_source import SettlementSource
from settlement_recon.domain.services.record_filter import RecordFilter
from settlement_recon.domain.services.settlement_calendar import validate_settlement_period


class PeriodFactFetcher:
    """Fetch and filter the remote facts of one settlement period.

    Args:
        source: Remote settlement source (wraps the shared rate-limited client).
        reference_provider: Provider of the valid-entity set. It is asked once;
            the resulting filter is cached for the lifetime of this instance.
    """

    def __init__(
        self,
        source: SettlementSource,
        reference_provider: ReferenceEntityProvider,
    ) -> None:
        self._source = source
        self._reference_provider = reference_provider
        self._filter: RecordFilter | None = None
        self._lock = asyncio.Lock()

    async def record_filter(self) -> RecordFilter:
        """Return the cached filter, loading the entity set on first use."""
        if self._filter is None:
            async with self._lock:
                if self._filter is None:
                    entities = await self._reference_provider.load_entities()
                    self._filter = RecordFilter(entities)
        return self._filter

    async def fetch_facts(self, settlement_date: date, settlement_period: int) -> list[Fact]:
        """Return the accepted remote facts of one period.

        Raises:
            FetchFailed: If the remote source fails.
        """
        validate_settlement_period(settlement_period)
        record_filter = await self.record_filter()
        records = await self._source.fetch_records(settlement_date, settlement_period)
        return record_filter.filter(records, settlement_date, settlement_period)
