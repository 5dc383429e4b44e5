# src/settlement_recon/domain/services/mined_value.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Mined-value transform (Domain Service).

Purpose:
    Default pluggable transform for derived calculations: the bitcoin that a
    fleet of one miner model could have mined with the curtailed energy of a
    single settlement period, given the network difficulty of that day.

Layer:
    domain/services

Notes:
    * Pure function over ``Decimal``; results are rounded to 8 places.
    * Any callable matching :data:`Transform` can replace it.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from decimal import ROUND_FLOOR, ROUND_HALF_UP, Decimal
from types import MappingProxyType
from typing import Final

Transform = Callable[[Decimal, str, Decimal], Decimal]

BLOCK_REWARD: Final[Decimal] = Decimal("3.125")
BLOCKS_PER_SETTLEMENT_PERIOD: Final[int] = 3
SETTLEMENT_PERIOD_HOURS: Final[Decimal] = Decimal("0.5")
_SECONDS_PER_BLOCK: Final[int] = 600
_HASHES_PER_DIFFICULTY: Final[int] = 2**32
_HASHES_PER_TERAHASH: Final[Decimal] = Decimal(10) ** 12
_RESULT_QUANTUM: Final[Decimal] = Decimal("0.00000001")


@dataclass(frozen=True, slots=True)
class MinerModel:
    """Hardware profile of one miner model.

    Args:
        name: Registry key (model parameter).
        hashrate_th: Hashrate in TH/s.
        power_w: Power draw in watts.
    """

    name: str
    hashrate_th: Decimal
    power_w: Decimal


MINER_MODELS: Final[Mapping[str, MinerModel]] = MappingProxyType(
    {
        "S19J_PRO": MinerModel("S19J_PRO", Decimal("100"), Decimal("3050")),
        "S9": MinerModel("S9", Decimal("14"), Decimal("1350")),
        "M20S": MinerModel("M20S", Decimal("68"), Decimal("3360")),
    }
)


def network_hashrate_th(difficulty: Decimal) -> Decimal:
    """Return the implied network hashrate in TH/s for ``difficulty``."""
    return difficulty * _HASHES_PER_DIFFICULTY / _SECONDS_PER_BLOCK / _HASHES_PER_TERAHASH


def mined_value(quantity_mwh: Decimal, model_parameter: str, difficulty: Decimal) -> Decimal:
    """Return the bitcoin mined with ``quantity_mwh`` of curtailed energy.

    Args:
        quantity_mwh: Curtailed energy (absolute value) in MWh.
        model_parameter: Key into :data:`MINER_MODELS`.
        difficulty: Network difficulty for the settlement date.

    Returns:
        Bitcoin amount rounded to 8 decimal places.

    Raises:
        ValueError: If the model is unknown or an input is out of range.
    """
    miner = MINER_MODELS.get(model_parameter)
    if miner is None:
        raise ValueError(f"unknown miner model: {model_parameter!r}")
    if quantity_mwh < 0:
        raise ValueError("quantity must be an absolute value")
    if difficulty <= 0:
        raise ValueError("difficulty must be > 0")

    curtailed_kwh = quantity_mwh * 1000
    miner_kwh = miner.power_w / 1000 * SETTLEMENT_PERIOD_HOURS
    potential_miners = (curtailed_kwh / miner_kwh).to_integral_value(rounding=ROUND_FLOOR)

    share = potential_miners * miner.hashrate_th / network_hashrate_th(difficulty)
    value = share * BLOCK_REWARD * BLOCKS_PER_SETTLEMENT_PERIOD
    return value.quantize(_RESULT_QUANTUM, rounding=ROUND_HALF_UP)
