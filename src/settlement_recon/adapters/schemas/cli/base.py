# src/settlement_recon/adapters/schemas/cli/base.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Base CLI Schema (Adapters Layer).

Purpose:
    Canonical Pydantic base for every report printed by the CLI. Enforces
    strict config and a deterministic JSON encoding (decimals as plain
    strings, dates in ISO form).

Layer: adapters/schemas/cli
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict


class BaseCLISchema(BaseModel):
    """Base class for CLI-facing report schemas."""

    model_config = ConfigDict(
        extra="forbid",
        populate_by_name=True,
        use_enum_values=True,
        frozen=True,
    )

    def model_dump_cli(self, **kwargs: Any) -> dict[str, Any]:
        """Return a JSON-serializable dict.

        Presenters and commands use this instead of raw ``model_dump()`` so
        every report serializes the same way.
        """
        return self.model_dump(mode="json", **kwargs)

    def to_json(self) -> str:
        """Return the report as indented JSON."""
        return self.model_dump_json(indent=2)
