"""HttpTransport — many concurrent HTTP callers, one sequential server loop.

Each ``POST`` parks its connection on a single-use response slot keyed by the
request id, pushes the request onto a bounded queue, and waits.  The server
loop drains the queue one request at a time and hands every response back
through :meth:`HttpTransport.write_response`, which fulfils the matching slot.

Status codes surfaced to callers:

- ``401`` shared secret missing or wrong (nothing is queued);
- ``405`` anything but ``POST``/``OPTIONS`` on the rpc path;
- ``400`` body is not a JSON-RPC request;
- ``409`` another call with the same id is still pending;
- ``503`` queue stayed full past the enqueue timeout, or shutdown;
- ``504`` no response within the response timeout;
- ``202`` notification accepted (no response body).
"""

from __future__ import annotations

import asyncio
import hmac
import logging
from typing import TYPE_CHECKING

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse, Response
from pydantic import ValidationError

from dbhub.errors import StartupError, TransportClosedError, TransportError
from dbhub.protocol.models import JsonRpcRequest, JsonRpcResponse

if TYPE_CHECKING:
    from dbhub.config import ServerSettings
    from dbhub.protocol.models import RequestId
    from dbhub.transport.base import TransportKind

logger = logging.getLogger(__name__)

API_KEY_HEADER = "X-API-Key"
HEALTH_PATH = "/health"

_RPC_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"]
_CORS_STATIC = {
    "Access-Control-Allow-Methods": "GET, POST, OPTIONS",
    "Access-Control-Allow-Headers": f"Content-Type, {API_KEY_HEADER}",
    "Access-Control-Max-Age": "3600",
}

ResponseSlot = asyncio.Future[JsonRpcResponse | None]


def correlation_key(request_id: RequestId) -> str:
    """Canonical string key for a request id (``7`` and ``"7"`` collide)."""
    return str(request_id)


class HttpTransport:
    """Serves ``POST {path}`` and ``GET /health`` with FastAPI/uvicorn.

    Satisfies the :class:`~dbhub.transport.base.MCPTransport` protocol.

    The FastAPI application is available as :attr:`app` before
    :meth:`start` is called, so it can be exercised in-process with
    ``httpx.ASGITransport``.
    """

    def __init__(
        self,
        *,
        host: str = "0.0.0.0",
        port: int = 8080,
        path: str = "/mcp",
        cors_origins: list[str] | None = None,
        api_key: str = "",
        queue_size: int = 10,
        enqueue_timeout: float = 5.0,
        response_timeout: float = 60.0,
        shutdown_grace: float = 5.0,
    ) -> None:
        self._host = host
        self._port = port
        self._path = path
        self._cors_origins = list(cors_origins) if cors_origins is not None else ["*"]
        self._api_key = api_key
        self._enqueue_timeout = enqueue_timeout
        self._response_timeout = response_timeout
        self._shutdown_grace = shutdown_grace

        self._queue: asyncio.Queue[JsonRpcRequest] = asyncio.Queue(maxsize=queue_size)
        self._pending: dict[str, ResponseSlot] = {}
        self._lock = asyncio.Lock()
        self._closed = asyncio.Event()

        self._server: uvicorn.Server | None = None
        self._serve_task: asyncio.Task[None] | None = None
        self.app = self._build_app()

    @classmethod
    def from_settings(cls, settings: ServerSettings) -> HttpTransport:
        return cls(
            host=settings.http_host,
            port=settings.http_port,
            path=settings.http_path,
            cors_origins=settings.http_cors_origins,
            api_key=settings.http_api_key,
            queue_size=settings.http_queue_size,
            enqueue_timeout=settings.http_enqueue_timeout_sec,
            response_timeout=settings.http_response_timeout_sec,
            shutdown_grace=settings.shutdown_grace_sec,
        )

    @property
    def kind(self) -> TransportKind:
        return "http"

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    # ------------------------------------------------------------------
    # MCPTransport
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start uvicorn in the background and wait until it is listening."""
        config = uvicorn.Config(
            self.app,
            host=self._host,
            port=self._port,
            log_level="warning",
            access_log=False,
            lifespan="off",
        )
        self._server = uvicorn.Server(config)
        self._serve_task = asyncio.create_task(self._server.serve())
        self._serve_task.add_done_callback(self._on_server_exit)

        while not self._server.started:
            if self._serve_task.done():
                msg = f"HTTP server failed to start on {self._host}:{self._port}"
                raise StartupError(msg)
            await asyncio.sleep(0.05)
        logger.info("HTTP server listening on %s:%d%s", self._host, self._port, self._path)

    async def read_request(self) -> JsonRpcRequest:
        """Wait for the next queued request, or raise once the transport closes."""
        getter = asyncio.ensure_future(self._queue.get())
        closer = asyncio.ensure_future(self._closed.wait())
        try:
            done, _ = await asyncio.wait({getter, closer}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            for waiter in (getter, closer):
                if not waiter.done():
                    waiter.cancel()
        if getter in done:
            return getter.result()
        raise TransportClosedError()

    async def write_response(self, response: JsonRpcResponse | None) -> None:
        """Fulfil the slot registered for ``response.id``."""
        if response is None:
            return

        key = correlation_key(response.id)
        async with self._lock:
            slot = self._pending.pop(key, None)

        if slot is None or slot.cancelled():
            raise TransportError(f"no pending caller for response id {key}")
        assert not slot.done(), f"response slot {key} fulfilled twice"
        slot.set_result(response)

    async def close(self) -> None:
        """Release every parked caller, then stop uvicorn within the grace period."""
        if self._closed.is_set():
            return
        logger.info("Shutting down HTTP server...")
        self._closed.set()

        async with self._lock:
            slots = list(self._pending.values())
            self._pending.clear()
        for slot in slots:
            if not slot.done():
                slot.set_result(None)

        if self._server is not None and self._serve_task is not None:
            self._server.should_exit = True
            try:
                await asyncio.wait_for(self._serve_task, timeout=self._shutdown_grace)
            except TimeoutError:
                logger.warning("HTTP server did not stop within %.1fs", self._shutdown_grace)
            self._server = None
            self._serve_task = None
        logger.info("HTTP server shutdown complete")

    # ------------------------------------------------------------------
    # FastAPI handlers
    # ------------------------------------------------------------------

    def _build_app(self) -> FastAPI:
        app = FastAPI(title="dbhub", docs_url=None, redoc_url=None, openapi_url=None)
        app.add_api_route(
            self._path, self._handle_rpc, methods=_RPC_METHODS, include_in_schema=False
        )
        app.add_api_route(
            HEALTH_PATH, self._handle_health, methods=["GET", "OPTIONS"], include_in_schema=False
        )
        return app

    async def _handle_health(self, request: Request) -> Response:
        headers = self._cors_headers(request)
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=headers)
        return JSONResponse({"status": "ok"}, headers=headers)

    async def _handle_rpc(self, request: Request) -> Response:
        headers = self._cors_headers(request)
        if request.method == "OPTIONS":
            return Response(status_code=200, headers=headers)

        if self._api_key and not self._authorized(request):
            return PlainTextResponse("Unauthorized", status_code=401, headers=headers)

        if request.method != "POST":
            return PlainTextResponse(
                "Method not allowed",
                status_code=405,
                headers={**headers, "Allow": "POST, OPTIONS"},
            )

        body = await request.body()
        try:
            rpc = JsonRpcRequest.model_validate_json(body)
        except ValidationError as exc:
            detail = exc.errors()[0]["msg"] if exc.errors() else str(exc)
            return PlainTextResponse(f"Invalid JSON: {detail}", status_code=400, headers=headers)

        if self._closed.is_set():
            return PlainTextResponse("Server shutting down", status_code=503, headers=headers)

        logger.debug("HTTP request: method=%s id=%r", rpc.method, rpc.id)

        if rpc.is_notification:
            if not await self._enqueue(rpc):
                return PlainTextResponse("Server busy", status_code=503, headers=headers)
            return Response(status_code=202, headers=headers)

        key = correlation_key(rpc.id)
        slot = await self._register(key)
        if slot is None:
            return PlainTextResponse(
                f"Request id {key} is already in flight", status_code=409, headers=headers
            )

        try:
            if not await self._enqueue(rpc):
                return PlainTextResponse("Server busy", status_code=503, headers=headers)
            try:
                response = await asyncio.wait_for(slot, timeout=self._response_timeout)
            except TimeoutError:
                logger.warning("Timed out waiting for response to id=%s", key)
                return PlainTextResponse("Request timeout", status_code=504, headers=headers)
        finally:
            await self._release(key, slot)

        if response is None:
            return PlainTextResponse("Server shutting down", status_code=503, headers=headers)

        logger.debug("HTTP response sent: id=%r", response.id)
        return JSONResponse(response.to_wire(), headers=headers)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _authorized(self, request: Request) -> bool:
        provided = request.headers.get(API_KEY_HEADER, "")
        return hmac.compare_digest(provided.encode(), self._api_key.encode())

    def _cors_headers(self, request: Request) -> dict[str, str]:
        origin = request.headers.get("origin", "")
        headers: dict[str, str] = {}
        for allowed in self._cors_origins:
            if allowed == "*":
                headers["Access-Control-Allow-Origin"] = "*"
                break
            if allowed == origin:
                headers["Access-Control-Allow-Origin"] = origin
                headers["Vary"] = "Origin"
                break
        else:
            if origin:
                return {}
        headers.update(_CORS_STATIC)
        return headers

    async def _register(self, key: str) -> ResponseSlot | None:
        async with self._lock:
            if key in self._pending:
                return None
            slot: ResponseSlot = asyncio.get_running_loop().create_future()
            self._pending[key] = slot
            return slot

    async def _release(self, key: str, slot: ResponseSlot) -> None:
        async with self._lock:
            if self._pending.get(key) is slot:
                del self._pending[key]

    async def _enqueue(self, rpc: JsonRpcRequest) -> bool:
        try:
            await asyncio.wait_for(self._queue.put(rpc), timeout=self._enqueue_timeout)
        except TimeoutError:
            logger.warning("Request queue full; rejecting method=%s id=%r", rpc.method, rpc.id)
            return False
        return True

    def _on_server_exit(self, task: asyncio.Task[None]) -> None:
        if not self._closed.is_set():
            logger.info("HTTP server stopped")
            self._closed.set()
