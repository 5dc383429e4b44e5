# tests/unit/infrastructure/external_apis/elexon/test_elexon_client.py
from __future__ import annotations

import logging
from datetime import date

import httpx
import pytest
import respx

from settlement_recon.application.run_context import set_run_context
from settlement_recon.domain.exceptions.settlement import FetchFailed
from settlement_recon.infrastructure.external_apis.elexon.client import ElexonClient
from settlement_recon.infrastructure.external_apis.elexon.settings import ElexonSettings
from settlement_recon.infrastructure.resilience.rate_limiter import SlidingWindowRateLimiter

DAY = date(2025, 1, 2)
BASE = "https://bmrs.test/api/v1"
BID_URL = f"{BASE}/balancing/settlement/stack/all/bid/2025-01-02/7"


def _client(http: httpx.AsyncClient, sleeps: list[float]) -> ElexonClient:
    async def sleep(seconds: float) -> None:
        sleeps.append(seconds)

    cfg = ElexonSettings(base_url=BASE, throttle_cooldown_s=5.0, timeout_s=1.0)
    limiter = SlidingWindowRateLimiter(100, 60.0, sleep=sleep)
    return ElexonClient(cfg, rate_limiter=limiter, http=http, sleep=sleep)


@pytest.mark.anyio
@respx.mock
async def test_returns_data_rows_and_propagates_run_id() -> None:
    rows = [{"id": "T_WIND-1", "volume": -5, "originalPrice": 40, "soFlag": True}]
    route = respx.get(BID_URL).mock(return_value=httpx.Response(200, json={"data": rows}))
    set_run_context(run_id="run-123", settlement_date=DAY)

    async with httpx.AsyncClient() as http:
        result = await _client(http, []).fetch_stack("bid", DAY, 7)

    assert result == rows
    assert route.calls.last.request.headers["X-Request-ID"] == "run-123"


@pytest.mark.anyio
@respx.mock
async def test_throttled_response_cools_down_then_retries_same_request(
    caplog: pytest.LogCaptureFixture,
) -> None:
    route = respx.get(BID_URL).mock(
        side_effect=[
            httpx.Response(429, json={}),
            httpx.Response(200, json={"data": [{"id": "X"}]}),
        ]
    )
    sleeps: list[float] = []
    caplog.set_level(logging.WARNING)

    async with httpx.AsyncClient() as http:
        result = await _client(http, sleeps).fetch_stack("bid", DAY, 7)

    assert result == [{"id": "X"}]
    assert route.call_count == 2
    assert sleeps == [5.0]
    (throttled,) = [r for r in caplog.records if r.getMessage() == "elexon.throttled"]
    assert throttled.extra["window_in_flight"] == 1  # type: ignore[attr-defined]


@pytest.mark.anyio
@respx.mock
async def test_missing_data_key_means_no_records() -> None:
    respx.get(BID_URL).mock(return_value=httpx.Response(200, json={"metadata": {}}))
    async with httpx.AsyncClient() as http:
        assert await _client(http, []).fetch_stack("bid", DAY, 7) == []


@pytest.mark.anyio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(500, json={}),
        httpx.Response(404, json={}),
        httpx.Response(200, content=b"<html>down</html>"),
        httpx.Response(200, json=[1, 2, 3]),
        httpx.Response(200, json={"data": {"not": "a list"}}),
    ],
)
async def test_bad_responses_map_to_fetch_failed(response: httpx.Response) -> None:
    with respx.mock:
        respx.get(BID_URL).mock(return_value=response)
        async with httpx.AsyncClient() as http:
            with pytest.raises(FetchFailed):
                await _client(http, []).fetch_stack("bid", DAY, 7)


@pytest.mark.anyio
@respx.mock
async def test_timeout_maps_to_fetch_failed() -> None:
    respx.get(BID_URL).mock(side_effect=httpx.ReadTimeout("slow"))
    async with httpx.AsyncClient() as http:
        with pytest.raises(FetchFailed) as excinfo:
            await _client(http, []).fetch_stack("bid", DAY, 7)
    assert excinfo.value.details["timeout_s"] == 1.0


@pytest.mark.anyio
@respx.mock
async def test_transport_error_maps_to_fetch_failed() -> None:
    respx.get(BID_URL).mock(side_effect=httpx.ConnectError("refused"))
    async with httpx.AsyncClient() as http:
        with pytest.raises(FetchFailed):
            await _client(http, []).fetch_stack("bid", DAY, 7)


@pytest.mark.anyio
async def test_invalid_arguments_are_rejected_before_dispatch() -> None:
    async with httpx.AsyncClient() as http:
        client = _client(http, [])
        with pytest.raises(ValueError):
            await client.fetch_stack("both", DAY, 7)  # type: ignore[arg-type]
        with pytest.raises(ValueError):
            await client.fetch_stack("bid", DAY, 49)


@pytest.mark.anyio
async def test_owned_client_is_closed() -> None:
    cfg = ElexonSettings(base_url=BASE)
    client = ElexonClient(cfg, rate_limiter=SlidingWindowRateLimiter(1, 1.0))
    await client.aclose()
    assert client._client.is_closed
