# tests/unit/tasks/test_cli.py
from __future__ import annotations

import json
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import date
from decimal import Decimal
from types import SimpleNamespace
from typing import Any

import pytest
from typer.testing import CliRunner

from settlement_recon.application.use_cases.reconciliation.check_calculation_coverage import (
    CheckCalculationCoverage,
)
from settlement_recon.application.use_cases.reconciliation.reconcile_recent import ReconcileRecent
from settlement_recon.tasks import cli
from tests.fixtures.pipeline import DIFFICULTY, MODELS, build_pipeline
from tests.fixtures.settlement_fakes import (
    FakeContextProvider,
    FakeSettlementSource,
    raw,
    uow_factory_for,
)

DAY = date(2025, 3, 14)
runner = CliRunner()


class RecordingContextValues:
    def __init__(self) -> None:
        self.saved: list[tuple[date, Decimal, str | None]] = []

    async def set_context_value(
        self, day: date, value: Decimal, *, source: str | None = None
    ) -> None:
        self.saved.append((day, value, source))


def _install(
    monkeypatch: pytest.MonkeyPatch, source: FakeSettlementSource | None = None
) -> SimpleNamespace:
    p = build_pipeline(source=source, context=FakeContextProvider({DAY: DIFFICULTY}))
    container = SimpleNamespace(
        reconcile_date=p.reconcile_date,
        reconcile_range=p.reconcile_range,
        reconcile_recent=ReconcileRecent(p.reconcile_range, today=lambda: DAY),
        detector=p.detector,
        fact_store=p.fact_store,
        coverage=CheckCalculationCoverage(uow_factory_for(p.db), model_parameters=MODELS),
        context_values=RecordingContextValues(),
    )

    @asynccontextmanager
    async def _fake_container(*_args: Any, **_kwargs: Any) -> AsyncIterator[SimpleNamespace]:
        yield container

    monkeypatch.setattr(cli, "reconciliation_container", _fake_container)
    return container


def test_reconcile_date_prints_report(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, FakeSettlementSource({(DAY, 2): [raw("T_WIND-1", "-4")]}))

    result = runner.invoke(cli.app, ["reconcile", "date", "2025-03-14"])

    assert result.exit_code == 0, result.stdout
    payload = json.loads(result.stdout)
    assert payload["status"] == "done"
    assert payload["periods_repaired"] == [2]


def test_reconcile_range_exits_non_zero_on_failed_date(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, FakeSettlementSource(always_fail=[5]))

    result = runner.invoke(cli.app, ["reconcile", "range", "2025-03-13", "2025-03-14"])

    assert result.exit_code == 1
    payload = json.loads(result.stdout)
    assert payload["dates_failed"] == 2


def test_reconcile_range_rejects_reversed_dates(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch)
    result = runner.invoke(cli.app, ["reconcile", "range", "2025-03-14", "2025-03-13"])
    assert result.exit_code == 2


def test_classify_flags_periods_needing_repair(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch, FakeSettlementSource({(DAY, 9): [raw("T_WIND-2", "-1")]}))

    result = runner.invoke(cli.app, ["classify", "2025-03-14"])

    assert result.exit_code == 1
    periods = json.loads(result.stdout)["periods"]
    assert len(periods) == 48
    assert periods[8]["status"] == "missing_locally"


def test_coverage_and_duplicates_on_clean_store(monkeypatch: pytest.MonkeyPatch) -> None:
    _install(monkeypatch)

    coverage = runner.invoke(cli.app, ["coverage", "2025-03-13", "2025-03-14"])
    assert coverage.exit_code == 0
    assert [r["settlement_date"] for r in json.loads(coverage.stdout)] == ["2025-03-13", "2025-03-14"]

    dupes = runner.invoke(cli.app, ["duplicates", "2025-03-14"])
    assert dupes.exit_code == 0
    assert json.loads(dupes.stdout)["groups"] == []


def test_context_set_validates_and_stores(monkeypatch: pytest.MonkeyPatch) -> None:
    container = _install(monkeypatch)

    bad = runner.invoke(cli.app, ["context", "set", "2025-03-14", "0"])
    assert bad.exit_code == 2

    ok = runner.invoke(cli.app, ["context", "set", "2025-03-14", "71e12", "--source", "manual"])
    assert ok.exit_code == 0
    assert container.context_values.saved == [(DAY, Decimal("71e12"), "manual")]
