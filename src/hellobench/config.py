"""Server configuration, built once at startup and passed to the server."""

from dataclasses import dataclass

from typing_extensions import Self


DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 7080
DEFAULT_READ_TIMEOUT = 120.0
DEFAULT_IDLE_TIMEOUT = 120.0
FIXED_WORKER_COUNT = 6

WORKER_COUNT_REQUIREMENT = (
    "Server must be started with the worker_count command-line option indicating "
    "the number of threads to be used by the runtime (-worker_count N). "
    "The worker_count option value must be a positive integer."
)


class ConfigurationError(ValueError):
    """Raised when a configuration value is missing or out of range."""


@dataclass(frozen=True, slots=True)
class ServerConfig:
    """
    Settings for one server process.

    Attributes:
        worker_count: Degree of parallelism given to the runtime (> 0)
        host: Address to listen on
        port: TCP port (0 picks a free one)
        read_timeout: Seconds allowed to read a whole request
        idle_timeout: Seconds a kept-alive connection may wait for its next request
        max_header_bytes: Largest accepted request head
        max_body_bytes: Largest accepted request body
    """
    worker_count: int
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    read_timeout: float = DEFAULT_READ_TIMEOUT
    idle_timeout: float = DEFAULT_IDLE_TIMEOUT
    max_header_bytes: int = 64 * 1024
    max_body_bytes: int = 1 * 1024 * 1024

    def __post_init__(self):
        """Validate the configuration."""
        if (
            not isinstance(self.worker_count, int)
            or isinstance(self.worker_count, bool)
            or self.worker_count <= 0
        ):
            raise ConfigurationError(f"{WORKER_COUNT_REQUIREMENT} Got {self.worker_count!r}.")
        if not self.host:
            raise ConfigurationError("host cannot be empty")
        if not 0 <= self.port <= 65535:
            raise ConfigurationError(f"port must be in 0..65535, got {self.port}")
        if self.read_timeout <= 0 or self.idle_timeout <= 0:
            raise ConfigurationError("timeouts must be positive")
        if self.max_header_bytes <= 0 or self.max_body_bytes <= 0:
            raise ConfigurationError("size limits must be positive")

    @classmethod
    def from_worker_count(cls, worker_count: int | None) -> Self:
        """Configuration for a worker count taken from the command line (None if absent)."""
        if worker_count is None:
            raise ConfigurationError(WORKER_COUNT_REQUIREMENT)
        return cls(worker_count=worker_count)


def fixed_config() -> ServerConfig:
    """Configuration with the built-in worker count."""
    return ServerConfig(worker_count=FIXED_WORKER_COUNT)
