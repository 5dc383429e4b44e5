# src/settlement_recon/tasks/cli.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Settlement Recon CLI: operational commands.

Commands:
    reconcile date DAY           Reconcile one settlement date.
    reconcile range START END    Reconcile an inclusive date range.
    reconcile recent             Reconcile the trailing look-back window.
    classify DAY                 Compare all 48 periods without repairing.
    coverage START [END]         Report derived-calculation coverage.
    duplicates DAY               List (period, entity) pairs stored twice.
    context set DAY VALUE        Store the context value (difficulty) of a date.

Environment:
    DATABASE_URL              Async SQLAlchemy URL.
    BMU_MAPPING_PATH          JSON file of valid BM units.
    RECON_*                   Reconciliation tuning (see config/settings.py).
    ELEXON_*                  Transport tuning (see elexon/settings.py).

Every command prints its report as JSON on stdout. SIGINT and SIGTERM set a
stop event: range runs finish the dates in flight, checkpoint them and stop.
"""

from __future__ import annotations

import asyncio
import signal
from collections.abc import Awaitable, Callable
from contextlib import suppress
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TypeVar

import typer

from settlement_recon.adapters.presenters.reconciliation_presenter import (
    present_batch_report,
    present_classification,
    present_coverage,
    present_date_report,
    present_duplicates,
)
from settlement_recon.adapters.schemas.cli.base import BaseCLISchema
from settlement_recon.dependencies.reconciliation import (
    ReconciliationContainer,
    reconciliation_container,
)
from settlement_recon.domain.entities.reconciliation import (
    BatchReport,
    CoverageReport,
    DateReport,
    PeriodComparison,
)
from settlement_recon.domain.entities.settlement import DuplicateGroup
from settlement_recon.infrastructure.logging.logger import configure_root_logging, get_json_logger

configure_root_logging()
log = get_json_logger(__name__)

T = TypeVar("T")

_DATE_FORMATS = ["%Y-%m-%d"]

app = typer.Typer(add_completion=False, no_args_is_help=True)
reconcile_app = typer.Typer(no_args_is_help=True)
context_app = typer.Typer(no_args_is_help=True)
app.add_typer(reconcile_app, name="reconcile")
app.add_typer(context_app, name="context")


def _day(value: datetime) -> date:
    return value.date()


def _emit(payload: BaseCLISchema | list[BaseCLISchema]) -> None:
    if isinstance(payload, list):
        typer.echo("[" + ",\n".join(p.to_json() for p in payload) + "]")
    else:
        typer.echo(payload.to_json())


def _install_stop_handlers(stop: asyncio.Event) -> None:
    """Set ``stop`` on SIGINT/SIGTERM where the loop supports signal handlers."""
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with suppress(NotImplementedError, RuntimeError):
            loop.add_signal_handler(sig, stop.set)


def _run(fn: Callable[[ReconciliationContainer, asyncio.Event], Awaitable[T]]) -> T:
    """Run ``fn`` against a freshly wired container inside a new event loop."""

    async def _main() -> T:
        stop = asyncio.Event()
        _install_stop_handlers(stop)
        async with reconciliation_container() as container:
            return await fn(container, stop)

    return asyncio.run(_main())


def _exit_for_batch(report: BatchReport) -> None:
    if report.dates_failed:
        raise typer.Exit(code=1)
    if report.cancelled:
        raise typer.Exit(code=130)


@reconcile_app.command("date")
def reconcile_date(
    day: datetime = typer.Argument(..., formats=_DATE_FORMATS, help="Settlement date."),  # noqa: B008
) -> None:
    """Reconcile one settlement date; resumes an interrupted run if one exists."""

    async def _go(c: ReconciliationContainer, _stop: asyncio.Event) -> DateReport:
        return await c.reconcile_date.execute(_day(day))

    report = _run(_go)
    _emit(present_date_report(report))
    if report.failed:
        raise typer.Exit(code=1)


@reconcile_app.command("range")
def reconcile_range(
    start: datetime = typer.Argument(..., formats=_DATE_FORMATS, help="First date."),  # noqa: B008
    end: datetime = typer.Argument(..., formats=_DATE_FORMATS, help="Last date (inclusive)."),  # noqa: B008
    force: bool = typer.Option(False, help="Re-run dates already reconciled."),  # noqa: B008
) -> None:
    """Reconcile every date of an inclusive range with a pool of workers."""
    if end < start:
        raise typer.BadParameter("END precedes START")

    async def _go(c: ReconciliationContainer, stop: asyncio.Event) -> BatchReport:
        return await c.reconcile_range.execute(
            _day(start), _day(end), stop_event=stop, force=force
        )

    report = _run(_go)
    _emit(present_batch_report(report))
    _exit_for_batch(report)


@reconcile_app.command("recent")
def reconcile_recent(
    days: int | None = typer.Option(None, min=1, help="Window size; defaults to RECON_LOOKBACK_DAYS."),  # noqa: B008
    force: bool = typer.Option(False, help="Re-run dates already reconciled."),  # noqa: B008
) -> None:
    """Reconcile the trailing window of dates ending yesterday (UTC)."""

    async def _go(c: ReconciliationContainer, stop: asyncio.Event) -> BatchReport:
        return await c.reconcile_recent.execute(days=days, stop_event=stop, force=force)

    report = _run(_go)
    _emit(present_batch_report(report))
    _exit_for_batch(report)


@app.command("classify")
def classify(
    day: datetime = typer.Argument(..., formats=_DATE_FORMATS, help="Settlement date."),  # noqa: B008
) -> None:
    """Compare all 48 periods of a date with the remote source; no writes."""
    settlement_date = _day(day)

    async def _go(c: ReconciliationContainer, _stop: asyncio.Event) -> dict[int, PeriodComparison]:
        return await c.detector.compare(settlement_date)

    comparisons = _run(_go)
    _emit(present_classification(settlement_date, comparisons))
    if any(c.needs_repair for c in comparisons.values()):
        raise typer.Exit(code=1)


@app.command("coverage")
def coverage(
    start: datetime = typer.Argument(..., formats=_DATE_FORMATS, help="First date."),  # noqa: B008
    end: datetime | None = typer.Argument(None, formats=_DATE_FORMATS, help="Last date."),  # noqa: B008
) -> None:
    """Report fact versus derived row counts per model for each date."""
    first = _day(start)
    last = _day(end) if end is not None else first
    if last < first:
        raise typer.BadParameter("END precedes START")

    async def _go(c: ReconciliationContainer, _stop: asyncio.Event) -> list[CoverageReport]:
        return await c.coverage.execute(first, last)

    reports = _run(_go)
    _emit(list(present_coverage(reports)))
    if not all(r.complete for r in reports):
        raise typer.Exit(code=1)


@app.command("duplicates")
def duplicates(
    day: datetime = typer.Argument(..., formats=_DATE_FORMATS, help="Settlement date."),  # noqa: B008
) -> None:
    """List (period, entity) pairs stored more than once for a date."""
    settlement_date = _day(day)

    async def _go(c: ReconciliationContainer, _stop: asyncio.Event) -> list[DuplicateGroup]:
        return await c.fact_store.find_duplicates(settlement_date)

    groups = _run(_go)
    _emit(present_duplicates(settlement_date, groups))
    if groups:
        raise typer.Exit(code=1)


@context_app.command("set")
def context_set(
    day: datetime = typer.Argument(..., formats=_DATE_FORMATS, help="Settlement date."),  # noqa: B008
    value: str = typer.Argument(..., help="Context value (network difficulty)."),  # noqa: B008
    source: str | None = typer.Option(None, help="Where the value came from."),  # noqa: B008
) -> None:
    """Store or overwrite the context value of a date."""
    try:
        parsed = Decimal(value)
    except InvalidOperation as exc:
        raise typer.BadParameter(f"not a number: {value!r}") from exc
    if not parsed.is_finite() or parsed <= 0:
        raise typer.BadParameter("context value must be a positive number")
    settlement_date = _day(day)

    async def _go(c: ReconciliationContainer, _stop: asyncio.Event) -> None:
        await c.context_values.set_context_value(settlement_date, parsed, source=source)

    _run(_go)
    log.info(
        "context.set",
        extra={"extra": {"day": settlement_date, "value": parsed, "source": source}},
    )


if __name__ == "__main__":
    app()
