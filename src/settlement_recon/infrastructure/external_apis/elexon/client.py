# src/settlement_recon/infrastructure/external_apis/elexon/client.py
# Copyright (c) Settlement Recon.
# SPDX-License-Identifier: MIT
"""Elexon BMRS Transport Client: rate limited, instrumented, async.

This transport is framework-agnostic and provides:

* Async HTTP (httpx) with a fixed per-request timeout.
* A shared sliding-window rate limiter consulted before every dispatch.
* Throttling (HTTP 429) handled internally: sleep a fixed cooldown, then
  retry the same request through the limiter again.
* Deterministic mapping of every other failure (transport, timeout, non-2xx,
  malformed payload) to ``FetchFailed``.
* Prometheus metrics per stack side and outcome.

Return shape:
* ``fetch_stack``: list of raw row mappings from the ``data`` array.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Mapping
from contextlib import suppress
from datetime import date
from typing import Any, Final, Literal

import httpx

from settlement_recon.application.run_context import get_run_id
from settlement_recon.domain.exceptions.settlement import FetchFailed, Throttled
from settlement_recon.domain.services.settlement_calendar import validate_settlement_period
from settlement_recon.infrastructure.external_apis.elexon.settings import ElexonSettings
from settlement_recon.infrastructure.logging.logger import get_json_logger
from settlement_recon.infrastructure.observability.metrics import (
    observe_upstream_request,
    upstream_throttled_total,
)
from settlement_recon.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter

StackSide = Literal["bid", "offer"]

_PROVIDER: Final[str] = "elexon"
_DEFAULT_HEADERS: Final[dict[str, str]] = {
    "Accept": "application/json",
    "User-Agent": "settlement-recon-elexon-client/1.0",
}

logger = get_json_logger(__name__)


class ElexonClient:
    """Rate-limited transport client for the BMRS settlement stack endpoints."""

    def __init__(
        self,
        settings: ElexonSettings,
        *,
        rate_limiter: SlidingWindowRateLimiter,
        http: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        """Initialize the transport client.

        Args:
            settings: Provider settings loaded from environment or DI.
            rate_limiter: Process-wide limiter shared by every caller of the
                same credential.
            http: Optional shared ``httpx.AsyncClient``. If omitted, a client
                is created and owned by this instance.
            sleep: Awaitable sleep used for the throttle cooldown.
        """
        self._settings = settings
        self._base_url = str(settings.base_url).rstrip("/")
        self._timeout = float(settings.timeout_s)
        self._cooldown = float(settings.throttle_cooldown_s)
        self._limiter = rate_limiter
        self._sleep = sleep

        self._owns_client = http is None
        self._client = http or httpx.AsyncClient(
            timeout=self._timeout,
            headers=_DEFAULT_HEADERS.copy(),
        )
        if http is not None:
            for key, value in _DEFAULT_HEADERS.items():
                self._client.headers.setdefault(key, value)

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance owns it."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    # ---------------------------- Public API ----------------------------- #

    async def fetch_stack(
        self,
        side: StackSide,
        settlement_date: date,
        settlement_period: int,
    ) -> list[Mapping[str, Any]]:
        """Fetch one bid or offer stack for a settlement period.

        Args:
            side: ``"bid"`` or ``"offer"``.
            settlement_date: Settlement day.
            settlement_period: Period in [1, 48].

        Returns:
            Rows of the ``data`` array; empty when the source has none.

        Raises:
            FetchFailed: On any transport, timeout, status or payload error.
            ValueError: If ``side`` or ``settlement_period`` is invalid.
        """
        if side not in ("bid", "offer"):
            raise ValueError(f"unknown stack side: {side!r}")
        validate_settlement_period(settlement_period)

        path = (
            f"/balancing/settlement/stack/all/{side}/"
            f"{settlement_date.isoformat()}/{settlement_period}"
        )
        payload = await self._get_json(endpoint=side, path=path)

        data = payload.get("data")
        if data is None:
            return []
        if not isinstance(data, list):
            raise FetchFailed("bad_shape", details={"expected": "data:list", "path": path})
        return [row for row in data if isinstance(row, Mapping)]

    # --------------------------- Internal helpers ------------------------- #

    async def _get_json(self, *, endpoint: str, path: str) -> Mapping[str, Any]:
        """GET ``path`` through the limiter; retry after cooldown on 429."""
        try:
            return await self._dispatch(endpoint=endpoint, path=path)
        except Throttled:
            with suppress(Exception):
                upstream_throttled_total.labels(provider=_PROVIDER).inc()
            logger.warning(
                "elexon.throttled",
                extra={
                    "extra": {
                        "path": path,
                        "cooldown_s": self._cooldown,
                        "window_in_flight": self._limiter.in_flight(),
                    }
                },
            )
            await self._sleep(self._cooldown)
            return await self._get_json(endpoint=endpoint, path=path)

    async def _dispatch(self, *, endpoint: str, path: str) -> Mapping[str, Any]:
        """Execute a single rate-limited GET and map failures to domain errors."""
        url = f"{self._base_url}{path}"
        headers: dict[str, str] = {}
        run_id = get_run_id()
        if run_id:
            headers["X-Request-ID"] = run_id

        await self._limiter.acquire()

        with observe_upstream_request(provider=_PROVIDER, endpoint=endpoint) as obs:
            try:
                response = await self._client.get(url, headers=headers, timeout=self._timeout)
            except httpx.TimeoutException as exc:
                obs.mark_error("timeout")
                raise FetchFailed(
                    "timeout", details={"path": path, "timeout_s": self._timeout}
                ) from exc
            except httpx.RequestError as exc:
                obs.mark_error("transport")
                raise FetchFailed(
                    "transport_error", details={"path": path, "error": str(exc)}
                ) from exc

            if response.status_code == 429:
                obs.mark_error("throttled")
                raise Throttled(details={"path": path})
            if response.status_code >= 400:
                obs.mark_error(f"http_{response.status_code}")
                raise FetchFailed(
                    "bad_status", details={"path": path, "status": response.status_code}
                )

            try:
                payload = response.json()
            except ValueError as exc:
                obs.mark_error("non_json")
                raise FetchFailed("non_json", details={"path": path}) from exc

            if not isinstance(payload, Mapping):
                obs.mark_error("bad_shape")
                raise FetchFailed("bad_shape", details={"path": path, "expected": "object"})
            return payload
