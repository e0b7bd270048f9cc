"""Small HTTP/1.1 server built on AnyIO.

Features:
- HTTP/1.0 and HTTP/1.1 request parsing, keep-alive and pipelining
- Content-Length and chunked request bodies, `Expect: 100-continue`
- Read and idle timeouts per connection
- Handler concurrency capped by the worker count (CapacityLimiter)
- Fully AnyIO: the listener's serve() runs one task per connection
"""

from __future__ import annotations

import dataclasses
import logging
import re
from enum import Enum
from typing import Any

import anyio
from anyio.abc import SocketAttribute, SocketStream, TaskStatus

from .message import (
    HttpError,
    HttpRequest,
    HttpResponse,
    body_length,
    encode_response,
    parse_request_head,
)
from .router import Handler


logger = logging.getLogger(__name__)

_MAX_CHUNK_LINE = 4096
_CHUNK_SIZE_RE = re.compile(rb"[0-9A-Fa-f]+")


class ServerState(Enum):
    """UNSTARTED -> LISTENING -> (SERVING | FAILED)."""

    UNSTARTED = "unstarted"
    LISTENING = "listening"
    SERVING = "serving"
    FAILED = "failed"


def _leaf_exceptions(eg: BaseExceptionGroup) -> list[BaseException]:
    """Flatten nested exception groups (one per listener, one per task group)."""
    leaves: list[BaseException] = []
    for exc in eg.exceptions:
        if isinstance(exc, BaseExceptionGroup):
            leaves.extend(_leaf_exceptions(exc))
        else:
            leaves.append(exc)
    return leaves


class _RequestReader:
    """Buffered reads from one connection.

    Bytes received past the end of the current request stay buffered, which is
    what makes pipelined requests work.
    """

    def __init__(self, stream: SocketStream):
        self._stream = stream
        self._buf = bytearray()

    @property
    def pending(self) -> bool:
        return bool(self._buf)

    async def fill(self) -> bool:
        """Receive one chunk into the buffer. Returns False on EOF."""
        try:
            chunk = await self._stream.receive(65536)
        except anyio.EndOfStream:
            return False
        if not chunk:
            return False
        self._buf.extend(chunk)
        return True

    async def read_until(self, marker: bytes, max_bytes: int) -> bytes:
        """Read up to `marker` (consumed, not returned)."""
        offset = 0
        while True:
            idx = self._buf.find(marker, offset)
            if idx != -1:
                if idx > max_bytes:
                    raise anyio.DelimiterNotFound(max_bytes)
                data = bytes(self._buf[:idx])
                del self._buf[: idx + len(marker)]
                return data
            if len(self._buf) > max_bytes:
                raise anyio.DelimiterNotFound(max_bytes)
            offset = max(len(self._buf) - len(marker) + 1, 0)
            if not await self.fill():
                raise anyio.IncompleteRead

    async def skip_empty_lines(self) -> None:
        """Drop CRLFs sent ahead of a request line."""
        while True:
            while self._buf.startswith(b"\r\n"):
                del self._buf[:2]
            if self._buf and self._buf != b"\r":
                return
            if not await self.fill():
                raise anyio.IncompleteRead

    async def read_exact(self, n: int) -> bytes:
        while len(self._buf) < n:
            if not await self.fill():
                raise anyio.IncompleteRead
        data = bytes(self._buf[:n])
        del self._buf[:n]
        return data


class HttpServer:
    """HTTP server over an AnyIO TCP listener.

    Every request is passed to `handler`; the handler's response is written
    back on the same connection. At most `worker_count` handler calls run at
    the same time.

    Typical use inside a task group:

        port = await tg.start(server.run)
    """

    def __init__(
        self,
        handler: Handler,
        *,
        host: str = "127.0.0.1",
        port: int = 0,
        worker_count: int = 1,
        read_timeout: float = 120.0,
        idle_timeout: float = 120.0,
        max_header_bytes: int = 64 * 1024,
        max_body_bytes: int = 1 * 1024 * 1024,
    ):
        self._handler = handler
        self._host = host
        self._port = port
        self._worker_count = worker_count
        self._read_timeout = read_timeout
        self._idle_timeout = idle_timeout
        self._max_header_bytes = max_header_bytes
        self._max_body_bytes = max_body_bytes
        self._state = ServerState.UNSTARTED
        # MultiListener[SocketStream] once bound.
        self._listener: Any = None
        self._limiter: anyio.CapacityLimiter | None = None

    @property
    def state(self) -> ServerState:
        return self._state

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        """The bound port (differs from the requested one when that was 0)."""
        if self._listener is None:
            raise RuntimeError("HttpServer is not bound")
        return self._listener.extra(SocketAttribute.local_port)

    async def bind(self) -> None:
        if self._state is not ServerState.UNSTARTED:
            raise RuntimeError(f"cannot bind a server in state {self._state.value}")
        try:
            self._listener = await anyio.create_tcp_listener(local_host=self._host, local_port=self._port)
        except OSError:
            self._state = ServerState.FAILED
            raise
        self._state = ServerState.LISTENING

    async def serve_forever(self) -> None:
        """Accept connections until cancelled or the listener fails."""
        if self._state is not ServerState.LISTENING:
            raise RuntimeError(f"cannot serve from state {self._state.value}")

        self._limiter = anyio.CapacityLimiter(self._worker_count)
        self._state = ServerState.SERVING
        port = self.port
        try:
            async with self._listener:
                await self._listener.serve(self._handle_client)
        except* OSError as eg:
            self._state = ServerState.FAILED
            for exc in _leaf_exceptions(eg):
                logger.error("accept tcp %s:%d: %s", self._host, port, exc)

    async def run(self, *, task_status: TaskStatus[int] = anyio.TASK_STATUS_IGNORED) -> ServerState:
        """Bind and serve. Returns the final state instead of raising on listener errors."""
        try:
            await self.bind()
        except OSError as exc:
            logger.error("listen tcp %s:%d: %s", self._host, self._port, exc)
            return self._state

        port = self.port
        logger.info("Listening on http://%s:%d", self._host, port)
        task_status.started(port)
        await self.serve_forever()
        return self._state

    async def _handle_client(self, stream: SocketStream) -> None:
        async with stream:
            try:
                await self._serve_connection(stream)
            except (anyio.IncompleteRead, anyio.BrokenResourceError, anyio.ClosedResourceError, OSError) as e:
                logger.debug("connection dropped: %r", e)
            except Exception:  # pragma: no cover
                logger.exception("unexpected error while serving connection")

    async def _serve_connection(self, stream: SocketStream) -> None:
        reader = _RequestReader(stream)
        first = True
        while True:
            if not first and not reader.pending:
                alive = False
                with anyio.move_on_after(self._idle_timeout):
                    alive = await reader.fill()
                if not alive:
                    return
            first = False

            request: HttpRequest | None = None
            try:
                with anyio.move_on_after(self._read_timeout):
                    request = await self._read_request(reader, stream)
            except HttpError as e:
                logger.debug("rejecting request: %s", e)
                await stream.send(encode_response(e.to_response(), keep_alive=False))
                return
            if request is None:
                return

            response = await self._dispatch(request)
            keep_alive = request.keep_alive
            await stream.send(
                encode_response(
                    response,
                    keep_alive=keep_alive,
                    version=request.version,
                    head_only=request.method == "HEAD",
                )
            )
            if not keep_alive:
                return

    async def _dispatch(self, request: HttpRequest) -> HttpResponse:
        assert self._limiter is not None
        async with self._limiter:
            try:
                return await self._handler(request)
            except Exception:
                logger.exception("handler error for %s %s", request.method, request.path)
                return HttpResponse.text("500 Internal Server Error\n", status=500)

    async def _read_request(self, reader: _RequestReader, stream: SocketStream) -> HttpRequest:
        await reader.skip_empty_lines()
        try:
            head = await reader.read_until(b"\r\n\r\n", self._max_header_bytes)
        except anyio.DelimiterNotFound:
            raise HttpError(431, "request header too large") from None

        request = parse_request_head(head)
        length = body_length(request)
        if length == 0:
            return request
        if length is not None and length > self._max_body_bytes:
            raise HttpError(413, "request body too large")

        if request.version != "HTTP/1.0" and request.headers.get("expect", "").lower() == "100-continue":
            await stream.send(b"HTTP/1.1 100 Continue\r\n\r\n")

        if length is None:
            body = await self._read_chunked(reader)
        else:
            body = await reader.read_exact(length)
        return dataclasses.replace(request, body=body)

    async def _read_chunked(self, reader: _RequestReader) -> bytes:
        body = bytearray()
        while True:
            try:
                line = await reader.read_until(b"\r\n", _MAX_CHUNK_LINE)
            except anyio.DelimiterNotFound:
                raise HttpError(400, "chunk size line too long") from None
            size_field = line.split(b";", 1)[0].strip()
            if not _CHUNK_SIZE_RE.fullmatch(size_field):
                raise HttpError(400, "malformed chunk size")
            size = int(size_field, 16)
            if size == 0:
                break
            if len(body) + size > self._max_body_bytes:
                raise HttpError(413, "request body too large")
            chunk = await reader.read_exact(size + 2)
            if chunk[-2:] != b"\r\n":
                raise HttpError(400, "malformed chunk")
            body.extend(chunk[:-2])

        # Trailer section, discarded.
        while True:
            try:
                line = await reader.read_until(b"\r\n", self._max_header_bytes)
            except anyio.DelimiterNotFound:
                raise HttpError(431, "trailer section too large") from None
            if not line:
                break
        return bytes(body)
