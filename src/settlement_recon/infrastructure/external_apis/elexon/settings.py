# src/settlement_recon/infrastructure/external_apis/elexon/settings.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Pydantic settings for the Elexon BMRS transport client."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ElexonSettings(BaseSettings):
    """Configuration for the Elexon settlement-stack client.

    Environment variables (with ``model_config.env_prefix``):

    * ``ELEXON_BASE_URL``
    * ``ELEXON_TIMEOUT_S``
    * ``ELEXON_MAX_REQUESTS``
    * ``ELEXON_WINDOW_S``
    * ``ELEXON_SAFETY_MARGIN_S``
    * ``ELEXON_THROTTLE_COOLDOWN_S``
    """

    base_url: str = Field(
        "https://data.elexon.co.uk/bmrs/api/v1",
        description="Base URL for the BMRS API.",
    )
    timeout_s: float = Field(
        30.0,
        gt=0,
        description="Per-request timeout in seconds.",
    )
    max_requests: int = Field(
        4500,
        ge=1,
        description="Requests allowed per rate window (per credential).",
    )
    window_s: float = Field(
        60.0,
        gt=0,
        description="Rate window length in seconds.",
    )
    safety_margin_s: float = Field(
        0.1,
        ge=0,
        description="Extra wait added when the rate window is full.",
    )
    throttle_cooldown_s: float = Field(
        60.0,
        ge=0,
        description="Sleep after a 429 response before retrying the same request.",
    )

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_prefix="ELEXON_",
        env_file=".env",
        extra="ignore",
    )
