# src/settlement_recon/adapters/gateways/bmu_reference_provider.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Adapter Gateway: BMU mapping file → valid-entity set.

The mapping is a JSON array of objects carrying at least ``elexonBmUnit`` and
optionally ``leadPartyName``. It is read once per provider instance and
cached for the process lifetime; refreshing requires a restart.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from settlement_recon.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)


class BmuMappingProvider:
    """``ReferenceEntityProvider`` reading the BMU mapping JSON file."""

    def __init__(self, path: str | Path) -> None:
        self._path = Path(path)
        self._cache: dict[str, str | None] | None = None
        self._lock = asyncio.Lock()

    async def load_entities(self) -> dict[str, str | None]:
        """Return ``{elexonBmUnit: leadPartyName}``; loaded once and cached.

        Raises:
            FileNotFoundError: If the mapping file does not exist.
            ValueError: If the file is not a JSON array of mapping objects.
        """
        if self._cache is not None:
            return dict(self._cache)
        async with self._lock:
            if self._cache is None:
                raw = await asyncio.to_thread(self._path.read_text, encoding="utf-8")
                self._cache = self._parse(raw)
                logger.info(
                    "bmu_mapping.loaded",
                    extra={"extra": {"path": str(self._path), "entities": len(self._cache)}},
                )
        return dict(self._cache)

    @staticmethod
    def _parse(raw: str) -> dict[str, str | None]:
        try:
            data: Any = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise ValueError(f"BMU mapping is not valid JSON: {exc}") from exc
        if not isinstance(data, list):
            raise ValueError("BMU mapping must be a JSON array")

        entities: dict[str, str | None] = {}
        for item in data:
            if not isinstance(item, dict) or not item.get("elexonBmUnit"):
                raise ValueError(f"BMU mapping entry lacks 'elexonBmUnit': {item!r}")
            lead_party = item.get("leadPartyName")
            entities[str(item["elexonBmUnit"])] = str(lead_party) if lead_party else None
        return entities
