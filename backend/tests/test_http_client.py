from __future__ import annotations

import httpx
import pytest

from footy.providers.http_client import CircuitOpenError, ResilientClient


def _client(handler, **kwargs) -> ResilientClient:
    kwargs.setdefault("base_delay", 0.0)
    return ResilientClient("test", transport=httpx.MockTransport(handler), **kwargs)


@pytest.mark.asyncio
async def test_retries_server_errors_then_succeeds():
    statuses = [503, 502, 200]
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(statuses.pop(0), json={"ok": True})

    client = _client(handler, max_retries=2)
    resp = await client.get("https://api.test/fixtures")
    await client.aclose()

    assert resp.status_code == 200
    assert len(seen) == 3
    assert client.circuit.failure_count == 0


@pytest.mark.asyncio
async def test_returns_last_response_when_retries_exhausted():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(500)

    client = _client(handler, max_retries=1)
    resp = await client.get("https://api.test/fixtures")
    await client.aclose()

    assert resp.status_code == 500
    assert calls["n"] == 2
    assert client.circuit.failure_count == 1


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        return httpx.Response(403)

    client = _client(handler, max_retries=3)
    resp = await client.get("https://api.test/fixtures")
    await client.aclose()

    assert resp.status_code == 403
    assert calls["n"] == 1


@pytest.mark.asyncio
async def test_network_error_raised_after_bounded_attempts():
    calls = {"n": 0}

    def handler(request: httpx.Request) -> httpx.Response:
        calls["n"] += 1
        raise httpx.ConnectError("refused", request=request)

    client = _client(handler, max_retries=2)
    with pytest.raises(httpx.ConnectError):
        await client.get("https://api.test/fixtures")
    await client.aclose()

    assert calls["n"] == 3


@pytest.mark.asyncio
async def test_circuit_opens_after_repeated_failures():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(503)

    client = _client(handler, max_retries=0)
    for _ in range(3):
        await client.get("https://api.test/fixtures")
    assert client.circuit.is_open
    with pytest.raises(CircuitOpenError):
        await client.get("https://api.test/fixtures")
    await client.aclose()
