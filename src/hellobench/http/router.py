"""Path multiplexer.

Patterns ending in "/" name a subtree ("/static/" matches "/static/app.js"),
other patterns match a single path. The longest registered pattern wins, so
"/" alone catches every request.
"""

from __future__ import annotations

from typing import Awaitable, Callable, Mapping

from .message import HttpRequest, HttpResponse


Handler = Callable[[HttpRequest], Awaitable[HttpResponse]]


async def not_found(_req: HttpRequest) -> HttpResponse:
    return HttpResponse.text("404 page not found\n", status=404)


class ServeMux:
    """Dispatches requests to handlers by path. Callable as a handler itself."""

    def __init__(self, routes: Mapping[str, Handler] | None = None):
        self._exact: dict[str, Handler] = {}
        self._subtrees: list[tuple[str, Handler]] = []
        for pattern, handler in (routes or {}).items():
            self.handle(pattern, handler)

    def handle(self, pattern: str, handler: Handler) -> None:
        if not pattern.startswith("/"):
            raise ValueError(f"invalid pattern {pattern!r}: must start with '/'")
        if pattern in self._exact or any(p == pattern for p, _ in self._subtrees):
            raise ValueError(f"multiple registrations for {pattern}")

        if pattern.endswith("/"):
            self._subtrees.append((pattern, handler))
            # Longest first.
            self._subtrees.sort(key=lambda item: len(item[0]), reverse=True)
        else:
            self._exact[pattern] = handler

    def route(self, path: str) -> Handler:
        """Return the handler registered for `path`, or the 404 handler."""
        handler = self._exact.get(path)
        if handler is not None:
            return handler
        for prefix, handler in self._subtrees:
            if path.startswith(prefix):
                return handler
        return not_found

    async def __call__(self, req: HttpRequest) -> HttpResponse:
        return await self.route(req.path)(req)
