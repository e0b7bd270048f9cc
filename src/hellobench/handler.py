"""The fixed-response handler."""

from types import MappingProxyType

from .http import HttpRequest, HttpResponse, ServeMux


HELLO_WORLD = b"Hello World!"
SERVER_NAME = "Python"

HELLO_RESPONSE = HttpResponse(
    status=200,
    headers=MappingProxyType({"server": SERVER_NAME, "content-type": "text/plain"}),
    body=HELLO_WORLD,
)


async def hello_handler(_req: HttpRequest) -> HttpResponse:
    # Method, path, headers and body are all ignored.
    return HELLO_RESPONSE


def build_router() -> ServeMux:
    return ServeMux({"/": hello_handler})
