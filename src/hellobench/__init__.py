"""Fixed-response HTTP server for measuring baseline request throughput."""

from .config import ConfigurationError, ServerConfig, fixed_config
from .handler import HELLO_RESPONSE, HELLO_WORLD, build_router, hello_handler
from .http import HttpRequest, HttpResponse, HttpServer, ServeMux, ServerState

__all__ = [
    # Configuration
    "ConfigurationError",
    "ServerConfig",
    "fixed_config",
    # Handler
    "HELLO_RESPONSE",
    "HELLO_WORLD",
    "build_router",
    "hello_handler",
    # HTTP
    "HttpRequest",
    "HttpResponse",
    "HttpServer",
    "ServeMux",
    "ServerState",
]
