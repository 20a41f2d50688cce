"""Tests for the concurrent HTTP transport, exercised in-process over ASGI."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from typing import Any

import httpx
import pytest

from dbhub.errors import TransportClosedError, TransportError
from dbhub.protocol.models import JsonRpcResponse
from dbhub.transport.http import API_KEY_HEADER, HttpTransport, correlation_key


def _envelope(request_id: Any, method: str = "ping") -> dict[str, Any]:
    return {"jsonrpc": "2.0", "id": request_id, "method": method}


async def _wait_for_pending(transport: HttpTransport, count: int) -> None:
    for _ in range(200):
        if transport.pending_count >= count:
            return
        await asyncio.sleep(0.01)
    msg = f"expected {count} pending callers, saw {transport.pending_count}"
    raise AssertionError(msg)


async def _echo_loop(transport: HttpTransport) -> None:
    """Sequential server loop: answer every request with its own id."""
    while True:
        try:
            request = await transport.read_request()
        except TransportClosedError:
            return
        if request.is_notification:
            continue
        await transport.write_response(JsonRpcResponse(id=request.id, result={"echo": request.id}))


def _client(transport: HttpTransport) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=transport.app), base_url="http://test")


@pytest.fixture
async def transport() -> AsyncIterator[HttpTransport]:
    t = HttpTransport(enqueue_timeout=0.1, response_timeout=2.0)
    yield t
    await t.close()


class TestCorrelationKey:
    def test_numeric_and_string_ids_share_a_key(self) -> None:
        assert correlation_key(7) == correlation_key("7")


class TestRequestHandling:
    async def test_round_trip(self, transport: HttpTransport) -> None:
        worker = asyncio.create_task(_echo_loop(transport))
        async with _client(transport) as client:
            resp = await client.post("/mcp", json=_envelope(1))
        worker.cancel()

        assert resp.status_code == 200
        assert resp.json() == {"jsonrpc": "2.0", "id": 1, "result": {"echo": 1}}
        assert transport.pending_count == 0

    async def test_concurrent_callers_get_their_own_response(self, transport: HttpTransport) -> None:
        async def _reverse_responder() -> None:
            requests = [await transport.read_request() for _ in range(3)]
            for request in reversed(requests):
                await transport.write_response(
                    JsonRpcResponse(id=request.id, result={"echo": request.id})
                )

        responder = asyncio.create_task(_reverse_responder())
        async with _client(transport) as client:
            responses = await asyncio.gather(
                client.post("/mcp", json=_envelope(1)),
                client.post("/mcp", json=_envelope("two")),
                client.post("/mcp", json=_envelope(3)),
            )
        await responder

        assert [r.json()["result"]["echo"] for r in responses] == [1, "two", 3]
        assert [r.json()["id"] for r in responses] == [1, "two", 3]

    async def test_notification_accepted(self, transport: HttpTransport) -> None:
        async with _client(transport) as client:
            resp = await client.post(
                "/mcp", json={"jsonrpc": "2.0", "method": "notifications/initialized"}
            )

        assert resp.status_code == 202
        assert resp.content == b""
        request = await transport.read_request()
        assert request.method == "notifications/initialized"

    async def test_duplicate_in_flight_id(self, transport: HttpTransport) -> None:
        async with _client(transport) as client:
            first = asyncio.create_task(client.post("/mcp", json=_envelope(1)))
            await _wait_for_pending(transport, 1)

            duplicate = await client.post("/mcp", json=_envelope("1"))
            assert duplicate.status_code == 409

            request = await transport.read_request()
            await transport.write_response(JsonRpcResponse(id=request.id, result={"ok": True}))
            resp = await first

        assert resp.status_code == 200
        assert resp.json()["result"] == {"ok": True}

    async def test_id_reusable_after_completion(self, transport: HttpTransport) -> None:
        worker = asyncio.create_task(_echo_loop(transport))
        async with _client(transport) as client:
            first = await client.post("/mcp", json=_envelope(9))
            second = await client.post("/mcp", json=_envelope(9))
        worker.cancel()

        assert first.status_code == second.status_code == 200

    async def test_response_timeout(self) -> None:
        transport = HttpTransport(response_timeout=0.05)
        async with _client(transport) as client:
            resp = await client.post("/mcp", json=_envelope(1))

        assert resp.status_code == 504
        assert transport.pending_count == 0
        # A late response finds no caller.
        with pytest.raises(TransportError, match="no pending caller"):
            await transport.write_response(JsonRpcResponse(id=1, result={}))

    async def test_queue_full(self) -> None:
        transport = HttpTransport(queue_size=1, enqueue_timeout=0.05)
        async with _client(transport) as client:
            parked = await client.post("/mcp", json={"jsonrpc": "2.0", "method": "noop"})
            busy = await client.post("/mcp", json=_envelope(2))

        assert parked.status_code == 202
        assert busy.status_code == 503
        assert busy.text == "Server busy"
        assert transport.pending_count == 0


class TestRejections:
    async def test_method_not_allowed(self, transport: HttpTransport) -> None:
        async with _client(transport) as client:
            resp = await client.get("/mcp")

        assert resp.status_code == 405
        assert resp.headers["allow"] == "POST, OPTIONS"

    async def test_invalid_json(self, transport: HttpTransport) -> None:
        async with _client(transport) as client:
            resp = await client.post("/mcp", content=b"{not json")

        assert resp.status_code == 400
        assert resp.text.startswith("Invalid JSON")

    async def test_not_a_request(self, transport: HttpTransport) -> None:
        async with _client(transport) as client:
            resp = await client.post("/mcp", json={"jsonrpc": "2.0", "id": 1})

        assert resp.status_code == 400

    async def test_boolean_id(self, transport: HttpTransport) -> None:
        async with _client(transport) as client:
            resp = await client.post("/mcp", json={"jsonrpc": "2.0", "id": True, "method": "ping"})

        assert resp.status_code == 400
        assert transport.pending_count == 0

    async def test_unknown_path(self, transport: HttpTransport) -> None:
        async with _client(transport) as client:
            resp = await client.post("/other", json=_envelope(1))

        assert resp.status_code == 404


class TestApiKey:
    async def test_missing_key_never_queued(self) -> None:
        transport = HttpTransport(api_key="s3cret")
        async with _client(transport) as client:
            resp = await client.post("/mcp", json=_envelope(1))

        assert resp.status_code == 401
        assert transport.pending_count == 0
        assert transport._queue.empty()

    async def test_wrong_key(self) -> None:
        transport = HttpTransport(api_key="s3cret")
        async with _client(transport) as client:
            resp = await client.post("/mcp", json=_envelope(1), headers={API_KEY_HEADER: "nope"})

        assert resp.status_code == 401

    async def test_correct_key(self) -> None:
        transport = HttpTransport(api_key="s3cret")
        worker = asyncio.create_task(_echo_loop(transport))
        async with _client(transport) as client:
            resp = await client.post("/mcp", json=_envelope(1), headers={API_KEY_HEADER: "s3cret"})
        worker.cancel()

        assert resp.status_code == 200

    async def test_preflight_needs_no_key(self) -> None:
        transport = HttpTransport(api_key="s3cret")
        async with _client(transport) as client:
            resp = await client.options("/mcp")

        assert resp.status_code == 200


class TestCors:
    async def test_wildcard(self, transport: HttpTransport) -> None:
        async with _client(transport) as client:
            resp = await client.options("/mcp", headers={"Origin": "https://app.example"})

        assert resp.status_code == 200
        assert resp.headers["access-control-allow-origin"] == "*"
        assert "X-API-Key" in resp.headers["access-control-allow-headers"]
        assert resp.headers["access-control-max-age"] == "3600"

    async def test_listed_origin_echoed(self) -> None:
        transport = HttpTransport(cors_origins=["https://app.example"])
        async with _client(transport) as client:
            resp = await client.options("/mcp", headers={"Origin": "https://app.example"})

        assert resp.headers["access-control-allow-origin"] == "https://app.example"
        assert resp.headers["vary"] == "Origin"

    async def test_unlisted_origin_gets_no_headers(self) -> None:
        transport = HttpTransport(cors_origins=["https://app.example"])
        async with _client(transport) as client:
            resp = await client.options("/mcp", headers={"Origin": "https://evil.example"})

        assert resp.status_code == 200
        assert "access-control-allow-origin" not in resp.headers


class TestHealth:
    async def test_health(self, transport: HttpTransport) -> None:
        async with _client(transport) as client:
            resp = await client.get("/health")

        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}


class TestShutdown:
    async def test_close_releases_parked_callers(self) -> None:
        transport = HttpTransport(response_timeout=5.0)
        async with _client(transport) as client:
            parked = asyncio.create_task(client.post("/mcp", json=_envelope(1)))
            await _wait_for_pending(transport, 1)

            await transport.close()
            resp = await parked

        assert resp.status_code == 503
        assert resp.text == "Server shutting down"
        assert transport.pending_count == 0

    async def test_requests_after_close(self) -> None:
        transport = HttpTransport()
        await transport.close()
        async with _client(transport) as client:
            resp = await client.post("/mcp", json=_envelope(1))

        assert resp.status_code == 503
        with pytest.raises(TransportClosedError):
            await transport.read_request()
