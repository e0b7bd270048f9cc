"""HTTP/1.x request and response messages.

Parsing of the request head and encoding of responses. The body is read by the
server (see `server.py`), which knows about the connection and its limits.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Mapping
from urllib.parse import urlsplit

from typing_extensions import override


HeaderMap = dict[str, str]

_TOKEN_RE = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")
_VERSION_RE = re.compile(r"HTTP/(\d)\.(\d)")

_STATUS_TEXT: dict[int, str] = {
    100: "Continue",
    200: "OK",
    204: "No Content",
    400: "Bad Request",
    404: "Not Found",
    405: "Method Not Allowed",
    413: "Payload Too Large",
    431: "Request Header Fields Too Large",
    500: "Internal Server Error",
    501: "Not Implemented",
    505: "HTTP Version Not Supported",
}


class HttpError(Exception):
    """A request that cannot be served; answered with `status` and a close."""

    def __init__(self, status: int, reason: str):
        super().__init__(status, reason)
        self.status = status
        self.reason = reason

    @override
    def __str__(self) -> str:
        return f"{self.status} {status_text(self.status)}: {self.reason}"

    def to_response(self) -> "HttpResponse":
        return HttpResponse.text(f"{self.status} {status_text(self.status)}: {self.reason}", status=self.status)


@dataclass(frozen=True, slots=True)
class HttpRequest:
    method: str
    path: str
    version: str
    headers: HeaderMap = field(default_factory=dict)
    body: bytes = b""
    query: str = ""

    @property
    def keep_alive(self) -> bool:
        """Whether the client allows the connection to stay open after this request."""
        tokens = connection_tokens(self.headers)
        match self.version:
            case "HTTP/1.0":
                return "keep-alive" in tokens
            case _:
                return "close" not in tokens


@dataclass(frozen=True, slots=True)
class HttpResponse:
    status: int = 200
    headers: Mapping[str, str] | None = None
    body: bytes = b""

    @staticmethod
    def text(
        text: str,
        *,
        status: int = 200,
        headers: Mapping[str, str] | None = None,
        encoding: str = "utf-8",
    ) -> "HttpResponse":
        body = text.encode(encoding)
        merged: dict[str, str] = {"content-type": f"text/plain; charset={encoding}"}
        if headers:
            merged.update({k.lower(): v for k, v in headers.items()})
        return HttpResponse(status=status, headers=merged, body=body)


def status_text(status: int) -> str:
    return _STATUS_TEXT.get(status, "Unknown")


def canonical_header(name: str) -> str:
    """`content-type` -> `Content-Type`."""
    return "-".join(part.capitalize() for part in name.split("-"))


def connection_tokens(headers: Mapping[str, str]) -> set[str]:
    value = headers.get("connection", "")
    return {token.strip().lower() for token in value.split(",") if token.strip()}


def _parse_request_line(line: str) -> tuple[str, str, str, str]:
    parts = line.split(" ")
    if len(parts) != 3:
        raise HttpError(400, "malformed request line")
    method, target, version = parts

    if not _TOKEN_RE.fullmatch(method):
        raise HttpError(400, "invalid method")

    m = _VERSION_RE.fullmatch(version)
    if m is None:
        raise HttpError(400, "malformed HTTP version")
    if m.group(1) != "1":
        raise HttpError(505, f"unsupported protocol version {version}")

    if target.startswith("/") or target == "*":
        path, _, query = target.partition("?")
    elif target.startswith(("http://", "https://")):
        url = urlsplit(target)
        path, query = url.path or "/", url.query
    else:
        raise HttpError(400, "invalid request target")

    return method, path, query, version


def parse_request_head(block: bytes) -> HttpRequest:
    """Parse a request line and headers (without the terminating blank line).

    The returned request has an empty body.
    """
    # Tolerate leading blank lines before the request line.
    head = block.decode("iso-8859-1").lstrip("\r\n")
    lines = head.split("\r\n")
    if not lines or not lines[0]:
        raise HttpError(400, "missing request line")

    method, path, query, version = _parse_request_line(lines[0])

    headers: HeaderMap = {}
    for line in lines[1:]:
        if line[:1] in (" ", "\t"):
            raise HttpError(400, "obsolete line folding")
        name, sep, value = line.partition(":")
        if not sep or not _TOKEN_RE.fullmatch(name):
            raise HttpError(400, f"malformed header line {line!r}")
        key = name.lower()
        value = value.strip(" \t")
        if key in headers:
            if key == "content-length":
                if headers[key] != value:
                    raise HttpError(400, "conflicting Content-Length")
                continue
            headers[key] = f"{headers[key]}, {value}"
        else:
            headers[key] = value

    if version != "HTTP/1.0" and "host" not in headers:
        raise HttpError(400, "missing required Host header")

    return HttpRequest(method=method, path=path, version=version, headers=headers, query=query)


def body_length(request: HttpRequest) -> int | None:
    """Declared body length, or None for a chunked body."""
    encoding = request.headers.get("transfer-encoding")
    if encoding is not None:
        if encoding.strip().lower() != "chunked":
            raise HttpError(501, f"unsupported transfer encoding {encoding!r}")
        if "content-length" in request.headers:
            raise HttpError(400, "both Transfer-Encoding and Content-Length")
        return None

    raw = request.headers.get("content-length", "0") or "0"
    if not (raw.isascii() and raw.isdigit()):
        raise HttpError(400, f"bad Content-Length {raw!r}")
    return int(raw)


def encode_response(
    response: HttpResponse,
    *,
    keep_alive: bool,
    version: str = "HTTP/1.1",
    head_only: bool = False,
) -> bytes:
    headers = {canonical_header(k): v for k, v in (response.headers or {}).items()}
    body = response.body or b""

    headers.setdefault("Content-Length", str(len(body)))
    if not keep_alive:
        headers["Connection"] = "close"
    elif version == "HTTP/1.0":
        headers["Connection"] = "keep-alive"

    start = f"HTTP/1.1 {response.status} {status_text(response.status)}\r\n"
    head = "".join(f"{k}: {v}\r\n" for k, v in headers.items())
    out = (start + head + "\r\n").encode("latin-1")
    if head_only:
        return out
    return out + body
