"""Shared test fixtures."""

from __future__ import annotations

from dataclasses import dataclass

import anyio
import pytest
from anyio.streams.buffered import BufferedByteReceiveStream


@dataclass
class RawResponse:
    status: int
    headers: dict[str, str]
    body: bytes
    raw: bytes


class RawHttpClient:
    """
    Minimal HTTP client over a plain TCP stream.

    Requests are sent as raw bytes so tests control framing exactly, and
    responses keep their raw bytes for byte-for-byte comparisons.
    """

    def __init__(self, port: int, host: str = "127.0.0.1"):
        self.host = host
        self.port = port

    async def __aenter__(self) -> "RawHttpClient":
        self.stream = await anyio.connect_tcp(self.host, self.port)
        self.reader = BufferedByteReceiveStream(self.stream)
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stream.aclose()

    async def send(self, data: bytes) -> None:
        await self.stream.send(data)

    async def read_response(self, *, head_only: bool = False, timeout: float = 5.0) -> RawResponse:
        with anyio.fail_after(timeout):
            head = await self.reader.receive_until(b"\r\n\r\n", 65536)
            lines = head.decode("latin-1").split("\r\n")
            status = int(lines[0].split(" ")[1])
            headers: dict[str, str] = {}
            for line in lines[1:]:
                name, _, value = line.partition(":")
                headers[name.strip().lower()] = value.strip()

            length = 0 if head_only else int(headers.get("content-length", "0"))
            body = await self.reader.receive_exactly(length) if length else b""
        return RawResponse(status=status, headers=headers, body=body, raw=head + b"\r\n\r\n" + body)

    async def closed(self, timeout: float = 5.0) -> bool:
        """Wait for the server to close the connection. False if data arrives instead."""
        with anyio.fail_after(timeout):
            try:
                await self.reader.receive()
            except (anyio.EndOfStream, anyio.BrokenResourceError):
                return True
        return False


def get(path: str = "/", *, version: str = "HTTP/1.1", close: bool = True, extra: str = "") -> bytes:
    connection = "Connection: close\r\n" if close else ""
    return f"GET {path} {version}\r\nHost: localhost\r\n{connection}{extra}\r\n".encode("latin-1")


@pytest.fixture
def http_client():
    """Factory for raw clients: `async with http_client(port) as c: ...`."""
    return RawHttpClient


@pytest.fixture
def request_bytes():
    """Builder for simple GET requests."""
    return get
