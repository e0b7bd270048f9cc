"""
Command-line entry points.

Two variants share everything except where the worker count comes from:
  - `hellobench -worker_count N`: the count is required on the command line
  - `hellobench-fixed`: the count is FIXED_WORKER_COUNT
"""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

import anyio
import anyio.to_thread
from anyio.abc import TaskStatus

from .config import ConfigurationError, ServerConfig, fixed_config
from .handler import build_router
from .http import HttpServer, ServerState


logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: int = logging.INFO) -> None:
    logging.basicConfig(level=level, format=LOG_FORMAT)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="hellobench",
        description="Answer every HTTP request with 'Hello World!'.",
    )
    parser.add_argument(
        "-worker_count",
        "--worker-count",
        dest="worker_count",
        type=int,
        default=None,
        metavar="N",
        help="Number of workers used by the runtime. Must be a positive integer.",
    )
    return parser


def build_server(config: ServerConfig) -> HttpServer:
    """Wire the hello router into an unstarted server for `config`."""
    return HttpServer(
        build_router(),
        host=config.host,
        port=config.port,
        worker_count=config.worker_count,
        read_timeout=config.read_timeout,
        idle_timeout=config.idle_timeout,
        max_header_bytes=config.max_header_bytes,
        max_body_bytes=config.max_body_bytes,
    )


async def serve(config: ServerConfig, *, task_status: TaskStatus[int] = anyio.TASK_STATUS_IGNORED) -> ServerState:
    # Parallelism hint for anything the runtime pushes to worker threads.
    anyio.to_thread.current_default_thread_limiter().total_tokens = config.worker_count
    server = build_server(config)
    return await server.run(task_status=task_status)


def run(config: ServerConfig) -> int:
    """Serve until interrupted. Returns the process exit status."""
    try:
        state = anyio.run(serve, config)
    except KeyboardInterrupt:
        logger.info("interrupted, shutting down")
        return 0
    return 1 if state is ServerState.FAILED else 0


def main(argv: Sequence[str] | None = None) -> int:
    configure_logging()
    args = build_parser().parse_args(argv)
    try:
        config = ServerConfig.from_worker_count(args.worker_count)
    except ConfigurationError as e:
        logger.critical("%s", e)
        return 2

    print(f"Using {config.worker_count} workers.", flush=True)
    return run(config)


def main_fixed(argv: Sequence[str] | None = None) -> int:
    configure_logging()
    argparse.ArgumentParser(
        prog="hellobench-fixed",
        description="Answer every HTTP request with 'Hello World!' using a fixed worker count.",
    ).parse_args(argv)
    return run(fixed_config())
