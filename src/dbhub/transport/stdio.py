"""StdioTransport — newline-delimited JSON over the process's stdin/stdout.

Strictly sequential: the server reads one line, dispatches it, writes one
line.  Logging must go to stderr because stdout carries the protocol.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from typing import IO, TYPE_CHECKING

from pydantic import ValidationError

from dbhub.errors import TransportClosedError, TransportError
from dbhub.protocol.models import JsonRpcRequest

if TYPE_CHECKING:
    from dbhub.protocol.models import JsonRpcResponse
    from dbhub.transport.base import TransportKind

logger = logging.getLogger(__name__)

# A single request line may carry a sizeable SQL query.
_LINE_LIMIT = 4 * 1024 * 1024


class StdioTransport:
    """Reads requests from *reader* and writes responses to *writer*.

    Satisfies the :class:`~dbhub.transport.base.MCPTransport` protocol.
    Without arguments the process's stdin/stdout are used; tests pass an
    :class:`asyncio.StreamReader` and an in-memory binary stream.
    """

    def __init__(
        self,
        reader: asyncio.StreamReader | None = None,
        writer: IO[bytes] | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._write_lock = asyncio.Lock()

    @property
    def kind(self) -> TransportKind:
        return "stdio"

    async def start(self) -> None:
        """Attach stdin to the event loop unless a reader was injected."""
        if self._reader is None:
            loop = asyncio.get_running_loop()
            reader = asyncio.StreamReader(limit=_LINE_LIMIT)
            await loop.connect_read_pipe(
                lambda: asyncio.StreamReaderProtocol(reader), sys.stdin
            )
            self._reader = reader
        if self._writer is None:
            self._writer = sys.stdout.buffer

    async def read_request(self) -> JsonRpcRequest:
        """Read the next JSON line from stdin."""
        if self._reader is None:
            msg = "Transport not started"
            raise RuntimeError(msg)

        while True:
            try:
                line = await self._reader.readline()
            except ValueError as exc:
                raise TransportError(f"failed to read request: {exc}") from exc
            if not line:
                raise TransportClosedError()
            if line.strip():
                break

        try:
            request = JsonRpcRequest.model_validate_json(line)
        except ValidationError as exc:
            raise TransportError(f"failed to decode request: {exc}") from exc

        logger.debug("Received request: method=%s id=%r", request.method, request.id)
        return request

    async def write_response(self, response: JsonRpcResponse | None) -> None:
        """Write *response* as one JSON line to stdout."""
        if response is None:
            return
        if self._writer is None:
            msg = "Transport not started"
            raise RuntimeError(msg)

        line = json.dumps(response.to_wire(), default=str) + "\n"
        async with self._write_lock:
            try:
                self._writer.write(line.encode())
                self._writer.flush()
            except (OSError, ValueError) as exc:
                raise TransportError(f"failed to write response: {exc}") from exc

        logger.debug(
            "Sent response: id=%r has_error=%s", response.id, response.error is not None
        )

    async def close(self) -> None:
        """Nothing to release; stdin/stdout belong to the process."""
