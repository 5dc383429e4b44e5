# tests/unit/domain/test_mined_value.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Tests for the default mined-value transform."""

from __future__ import annotations

from decimal import Decimal

import pytest

from settlement_recon.domain.services.mined_value import (
    MINER_MODELS,
    mined_value,
    network_hashrate_th,
)

# Difficulty at which the implied network hashrate is exactly 1.4e7 TH/s.
DIFFICULTY = Decimal("8.4E21") / Decimal(2**32)


def test_network_hashrate_from_difficulty() -> None:
    assert network_hashrate_th(DIFFICULTY).quantize(Decimal("1")) == Decimal("14000000")


def test_known_value_for_s9() -> None:
    # 0.675 MWh powers exactly 1000 S9 units for half an hour: 14,000 TH/s,
    # i.e. 0.1% of the network across 3 blocks of 3.125 BTC.
    assert mined_value(Decimal("0.675"), "S9", DIFFICULTY) == Decimal("0.00937500")


def test_partial_miners_are_floored() -> None:
    assert mined_value(Decimal("0.0006"), "S9", DIFFICULTY) == Decimal("0E-8")


def test_more_efficient_model_mines_more() -> None:
    energy = Decimal("25")
    assert mined_value(energy, "S19J_PRO", DIFFICULTY) > mined_value(energy, "S9", DIFFICULTY)


def test_value_scales_inversely_with_difficulty() -> None:
    low = mined_value(Decimal("100"), "M20S", DIFFICULTY)
    high = mined_value(Decimal("100"), "M20S", DIFFICULTY * 2)
    assert abs(low - high * 2) <= Decimal("0.00000002")


def test_result_has_eight_decimal_places() -> None:
    assert mined_value(Decimal("3.3"), "S19J_PRO", DIFFICULTY).as_tuple().exponent == -8


def test_registry_contains_default_models() -> None:
    assert set(MINER_MODELS) == {"S19J_PRO", "S9", "M20S"}


@pytest.mark.parametrize(
    ("quantity", "model", "difficulty"),
    [
        (Decimal("1"), "UNKNOWN", DIFFICULTY),
        (Decimal("-1"), "S9", DIFFICULTY),
        (Decimal("1"), "S9", Decimal("0")),
    ],
)
def test_invalid_inputs_raise(quantity: Decimal, model: str, difficulty: Decimal) -> None:
    with pytest.raises(ValueError):
        mined_value(quantity, model, difficulty)
