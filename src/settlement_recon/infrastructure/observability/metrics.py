# src/settlement_recon/infrastructure/observability/metrics.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Reconciliation observability helpers and Prometheus metrics.

Exports
-------
Collectors (names are part of the public contract and must remain stable):

* ``settlement_recon_upstream_latency_seconds`` (Histogram)
* ``settlement_recon_upstream_errors_total`` (Counter)
* ``settlement_recon_upstream_throttled_total`` (Counter)
* ``settlement_recon_rate_limiter_wait_seconds`` (Histogram)
* ``settlement_recon_period_repairs_total`` (Counter)
* ``settlement_recon_dates_total`` (Counter)

Helpers:

* :func:`observe_upstream_request`: context manager for one upstream call.
* :class:`PrometheusReconciliationMetrics`: outcome sink for the use cases.

Design
------
All collectors are created against the *current* default registry
(:data:`prometheus_client.REGISTRY`). If a collector with the same name
already exists there, the existing instance is reused, so module re-imports
in tests never raise ``Duplicated timeseries``.
"""

from __future__ import annotations

from collections.abc import Generator, Sequence
from contextlib import contextmanager, suppress
from dataclasses import dataclass, field
from time import perf_counter

import prometheus_client as prom
from prometheus_client import Counter, Histogram
from prometheus_client.registry import CollectorRegistry


def _get_or_create_histogram(
    name: str,
    doc: str,
    labelnames: Sequence[str] | None = None,
) -> Histogram:
    """Return a histogram bound to the current default registry.

    Args:
        name: Metric name.
        doc: Human-readable metric description.
        labelnames: Optional iterable of label names.

    Returns:
        A :class:`Histogram` bound to the current :data:`prom.REGISTRY`.
    """
    registry: CollectorRegistry = prom.REGISTRY
    mapping = getattr(registry, "_names_to_collectors", {})
    existing = mapping.get(name)
    if isinstance(existing, Histogram):
        return existing

    labels = tuple(labelnames) if labelnames is not None else ()
    try:
        return Histogram(name, doc, labels, registry=registry)
    except ValueError as exc:
        if "Duplicated timeseries" in str(exc):
            again = getattr(registry, "_names_to_collectors", {}).get(name)
            if isinstance(again, Histogram):
                return again
        raise


def _get_or_create_counter(
    name: str,
    doc: str,
    labelnames: Sequence[str] | None = None,
) -> Counter:
    """Return a counter bound to the current default registry.

    Mirrors :func:`_get_or_create_histogram` for :class:`Counter` collectors.
    """
    registry: CollectorRegistry = prom.REGISTRY
    mapping = getattr(registry, "_names_to_collectors", {})
    # Counters register under both the bare name and the ``_total`` name.
    existing = mapping.get(name) or mapping.get(name.removesuffix("_total"))
    if isinstance(existing, Counter):
        return existing

    labels = tuple(labelnames) if labelnames is not None else ()
    try:
        return Counter(name, doc, labels, registry=registry)
    except ValueError as exc:
        if "Duplicated timeseries" in str(exc):
            mapping = getattr(registry, "_names_to_collectors", {})
            again = mapping.get(name) or mapping.get(name.removesuffix("_total"))
            if isinstance(again, Counter):
                return again
        raise


# ---------------------------------------------------------------------------
# Collectors
# ---------------------------------------------------------------------------

upstream_latency_seconds: Histogram = _get_or_create_histogram(
    "settlement_recon_upstream_latency_seconds",
    "Latency of settlement source calls (seconds).",
    labelnames=("provider", "endpoint", "outcome"),
)

upstream_errors_total: Counter = _get_or_create_counter(
    "settlement_recon_upstream_errors_total",
    "Errors raised by settlement source calls.",
    labelnames=("provider", "endpoint", "reason"),
)

upstream_throttled_total: Counter = _get_or_create_counter(
    "settlement_recon_upstream_throttled_total",
    "Throttling responses received from the settlement source.",
    labelnames=("provider",),
)

rate_limiter_wait_seconds: Histogram = _get_or_create_histogram(
    "settlement_recon_rate_limiter_wait_seconds",
    "Time spent blocked in the sliding-window rate limiter (seconds).",
)

period_repairs_total: Counter = _get_or_create_counter(
    "settlement_recon_period_repairs_total",
    "Period repairs by outcome.",
    labelnames=("outcome",),
)

dates_total: Counter = _get_or_create_counter(
    "settlement_recon_dates_total",
    "Dates reaching a terminal reconciliation state.",
    labelnames=("status",),
)


# ---------------------------------------------------------------------------
# Observation context manager
# ---------------------------------------------------------------------------


@dataclass
class UpstreamObservation:
    """State captured while observing an upstream call.

    Attributes:
        provider: Upstream provider identifier (for labelling).
        endpoint: Logical endpoint name (for labelling).
        start: Monotonic start time in seconds.
        outcome: Outcome of the call (``"success"`` or ``"error"``).
        error_reason: Short, machine-readable error reason if any.
    """

    provider: str
    endpoint: str
    start: float = field(default_factory=perf_counter)
    outcome: str = "success"
    error_reason: str | None = None

    def mark_error(self, reason: str) -> None:
        """Mark the upstream call as failed with a given reason."""
        self.outcome = "error"
        self.error_reason = reason


@contextmanager
def observe_upstream_request(
    *,
    provider: str,
    endpoint: str,
) -> Generator[UpstreamObservation, None, None]:
    """Observe one upstream request.

    Records a latency sample and, when :meth:`UpstreamObservation.mark_error`
    was invoked or an exception escapes, an error increment.

    Args:
        provider: Upstream provider identifier (e.g. ``"elexon"``).
        endpoint: Logical endpoint name (e.g. ``"bid"`` or ``"offer"``).

    Yields:
        A mutable :class:`UpstreamObservation`.
    """
    obs = UpstreamObservation(provider=provider, endpoint=endpoint)
    try:
        yield obs
    except Exception as exc:
        if obs.error_reason is None:
            obs.mark_error(type(exc).__name__)
        raise
    finally:
        elapsed = perf_counter() - obs.start

        # Metrics never break the call path.
        with suppress(Exception):
            upstream_latency_seconds.labels(
                provider=obs.provider,
                endpoint=obs.endpoint,
                outcome=obs.outcome,
            ).observe(elapsed)

            if obs.error_reason is not None:
                upstream_errors_total.labels(
                    provider=obs.provider,
                    endpoint=obs.endpoint,
                    reason=obs.error_reason,
                ).inc()


# ---------------------------------------------------------------------------
# Reconciliation outcome sink
# ---------------------------------------------------------------------------


class PrometheusReconciliationMetrics:
    """``ReconciliationMetrics`` implementation backed by the counters above."""

    def period_repair(self, outcome: str) -> None:
        with suppress(Exception):
            period_repairs_total.labels(outcome=outcome).inc()

    def date_finished(self, status: str) -> None:
        with suppress(Exception):
            dates_total.labels(status=status).inc()
