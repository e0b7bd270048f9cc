"""HTTP/1.x serving on top of AnyIO.

A small request/response layer and path multiplexer; connection-level
concurrency is left to AnyIO's TCP listener.
"""

from .message import HttpError, HttpRequest, HttpResponse
from .router import Handler, ServeMux
from .server import HttpServer, ServerState

__all__ = [
    "Handler",
    "HttpError",
    "HttpRequest",
    "HttpResponse",
    "HttpServer",
    "ServeMux",
    "ServerState",
]
