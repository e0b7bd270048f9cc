"""
Extra routes next to the hello handler

Runs the fixed-response server with two more routes registered on the same
ServeMux, on an ephemeral port.

Run:
  uv run python examples/01_extra_routes.py

Then try:
  curl -i http://127.0.0.1:<port>/
  curl -i http://127.0.0.1:<port>/health
  curl -i -X POST http://127.0.0.1:<port>/echo -d 'hello there'
"""

from __future__ import annotations

import logging

import anyio

from hellobench import HttpRequest, HttpResponse, HttpServer, build_router


async def handle_health(_req: HttpRequest) -> HttpResponse:
    return HttpResponse.text("ok\n")


async def handle_echo(req: HttpRequest) -> HttpResponse:
    # Echo the raw body bytes back.
    return HttpResponse(
        status=200,
        headers={"content-type": req.headers.get("content-type", "application/octet-stream")},
        body=req.body,
    )


async def main() -> None:
    router = build_router()
    router.handle("/health", handle_health)
    router.handle("/echo", handle_echo)

    server = HttpServer(router, worker_count=4)
    async with anyio.create_task_group() as tg:
        port = await tg.start(server.run)
        print(f"Listening on http://127.0.0.1:{port}")
        print("Press Ctrl-C to stop.")


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    anyio.run(main)
