# tests/unit/application/use_cases/test_reconcile_range.py
from __future__ import annotations

import asyncio
from datetime import date, timedelta

import pytest

from settlement_recon.domain.entities.reconciliation import Checkpoint, DateReport
from settlement_recon.domain.entities.settlement import RawRecord
from settlement_recon.domain.enums.reconciliation import ReconciliationState
from tests.fixtures.pipeline import DIFFICULTY, build_pipeline
from tests.fixtures.settlement_fakes import FakeContextProvider, FakeSettlementSource, raw

START = date(2025, 2, 1)
DAYS = [START + timedelta(days=i) for i in range(4)]


def _context() -> FakeContextProvider:
    return FakeContextProvider({d: DIFFICULTY for d in DAYS})


class StopAfterFirstFetch(FakeSettlementSource):
    def __init__(self, stop_event: asyncio.Event) -> None:
        super().__init__()
        self.stop_event = stop_event

    async def fetch_records(self, settlement_date: date, settlement_period: int) -> list[RawRecord]:
        self.stop_event.set()
        return await super().fetch_records(settlement_date, settlement_period)


@pytest.mark.anyio
async def test_every_date_gets_a_terminal_report() -> None:
    source = FakeSettlementSource({(DAYS[1], 4): [raw("T_WIND-1", "-3")]})
    p = build_pipeline(source=source, context=_context(), worker_count=3)

    report = await p.reconcile_range.execute(DAYS[0], DAYS[-1])

    assert [r.settlement_date for r in report.per_date] == DAYS
    assert all(r.status is ReconciliationState.DONE for r in report.per_date)
    assert report.dates_processed == 4
    assert report.dates_repaired == 1
    assert not report.cancelled


@pytest.mark.anyio
async def test_done_dates_are_skipped_unless_forced() -> None:
    p = build_pipeline(context=_context())
    p.db.checkpoints[DAYS[2]] = Checkpoint(settlement_date=DAYS[2], status=ReconciliationState.DONE)

    report = await p.reconcile_range.execute(DAYS[0], DAYS[-1])
    assert report.dates_skipped == 1
    assert DAYS[2] not in {d for d, _ in p.source.calls}

    forced = await p.reconcile_range.execute(DAYS[0], DAYS[-1], force=True)
    assert forced.dates_skipped == 0
    assert DAYS[2] in {d for d, _ in p.source.calls}


@pytest.mark.anyio
async def test_failed_dates_are_retried_by_the_next_batch() -> None:
    p = build_pipeline(
        source=FakeSettlementSource({(DAYS[0], 1): [raw("T_WIND-1", "-1")]}, always_fail=[1]),
        context=_context(),
        attempts=1,
    )
    first = await p.reconcile_range.execute(DAYS[0], DAYS[0])
    assert first.dates_failed == 1

    p.source.always_fail.clear()
    second = await p.reconcile_range.execute(DAYS[0], DAYS[0])
    assert second.dates_failed == 0
    assert second.per_date[0].periods_repaired == (1,)


@pytest.mark.anyio
async def test_unexpected_error_becomes_a_failed_report() -> None:
    p = build_pipeline(context=_context())

    async def explode(day: date, *, run_id: str | None = None) -> DateReport:
        if day == DAYS[1]:
            raise RuntimeError("disk full")
        return await original(day, run_id=run_id)

    original = p.reconcile_date.execute
    p.reconcile_date.execute = explode  # type: ignore[method-assign,assignment]

    report = await p.reconcile_range.execute(DAYS[0], DAYS[-1])

    failed = [r for r in report.per_date if r.failed]
    assert [r.settlement_date for r in failed] == [DAYS[1]]
    assert failed[0].error == "RuntimeError: disk full"
    assert report.dates_processed == 4


@pytest.mark.anyio
async def test_stop_event_leaves_remaining_dates_unprocessed() -> None:
    stop = asyncio.Event()
    p = build_pipeline(source=StopAfterFirstFetch(stop), context=_context(), worker_count=1)

    report = await p.reconcile_range.execute(DAYS[0], DAYS[-1], stop_event=stop)

    assert report.cancelled
    assert [r.settlement_date for r in report.per_date] == [DAYS[0]]
    assert report.per_date[0].status is ReconciliationState.DONE
    assert report.unprocessed == tuple(DAYS[1:])


@pytest.mark.anyio
async def test_reversed_range_is_rejected() -> None:
    with pytest.raises(ValueError):
        await build_pipeline().reconcile_range.execute(DAYS[-1], DAYS[0])


@pytest.mark.anyio
async def test_crash_mid_repair_leaves_a_failed_checkpoint() -> None:
    p = build_pipeline(context=_context())

    async def crash_after_progress(day: date, *, run_id: str | None = None) -> DateReport:
        await p.reconcile_date.checkpoints.save(
            Checkpoint(
                settlement_date=day,
                status=ReconciliationState.REPAIRING,
                periods_repaired=frozenset({1}),
                target_periods=frozenset({1, 2}),
                run_id=run_id,
            )
        )
        raise RuntimeError("connection reset")

    p.reconcile_date.execute = crash_after_progress  # type: ignore[method-assign,assignment]

    report = await p.reconcile_range.execute(DAYS[0], DAYS[0])

    assert report.dates_failed == 1
    checkpoint = p.db.checkpoints[DAYS[0]]
    assert checkpoint.status is ReconciliationState.FAILED
    assert checkpoint.target_periods == frozenset({1, 2})
    assert [c.status for c in p.db.checkpoint_history] == [
        ReconciliationState.REPAIRING,
        ReconciliationState.FAILED,
    ]
