# src/settlement_recon/domain/services/settlement_calendar.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Settlement calendar helpers.

Purpose:
    Pure helpers for the fixed settlement partition (48 half-hour periods
    per day) and for the period keys used by the aggregate hierarchy.

Layer:
    domain/services
"""

from __future__ import annotations

from collections.abc import Iterator
from datetime import date, timedelta
from typing import Final

PERIODS_PER_DAY: Final[int] = 48
SETTLEMENT_PERIODS: Final[tuple[int, ...]] = tuple(range(1, PERIODS_PER_DAY + 1))


def validate_settlement_period(period: int) -> int:
    """Return ``period`` if it lies in [1, 48], otherwise raise ``ValueError``."""
    if isinstance(period, bool) or not isinstance(period, int):
        raise ValueError(f"settlement period must be an int, got {period!r}")
    if not 1 <= period <= PERIODS_PER_DAY:
        raise ValueError(f"settlement period must be in [1, {PERIODS_PER_DAY}], got {period}")
    return period


def daily_key(day: date) -> str:
    """Return the Daily aggregate key (``YYYY-MM-DD``)."""
    return day.isoformat()


def month_key(day: date) -> str:
    """Return the Monthly aggregate key (``YYYY-MM``) containing ``day``."""
    return f"{day.year:04d}-{day.month:02d}"


def year_key(day: date) -> str:
    """Return the Yearly aggregate key (``YYYY``) containing ``day``."""
    return f"{day.year:04d}"


def parse_month_key(year_month: str) -> tuple[int, int]:
    """Parse a ``YYYY-MM`` key into ``(year, month)``.

    Raises:
        ValueError: If the key is malformed.
    """
    try:
        year_s, month_s = year_month.split("-")
        year, month = int(year_s), int(month_s)
    except ValueError as exc:
        raise ValueError(f"invalid year-month key: {year_month!r}") from exc
    if len(year_s) != 4 or not 1 <= month <= 12:
        raise ValueError(f"invalid year-month key: {year_month!r}")
    return year, month


def parse_year_key(year: str) -> int:
    """Parse a ``YYYY`` key.

    Raises:
        ValueError: If the key is malformed.
    """
    if len(year) != 4 or not year.isdigit():
        raise ValueError(f"invalid year key: {year!r}")
    return int(year)


def iter_dates(start: date, end: date) -> Iterator[date]:
    """Yield every date from ``start`` to ``end`` inclusive.

    Raises:
        ValueError: If ``end`` precedes ``start``.
    """
    if end < start:
        raise ValueError(f"end date {end} precedes start date {start}")
    current = start
    while current <= end:
        yield current
        current += timedelta(days=1)
