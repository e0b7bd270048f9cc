"""Tests for server configuration."""

import pytest

from src.hellobench.config import (
    DEFAULT_HOST,
    DEFAULT_PORT,
    FIXED_WORKER_COUNT,
    ConfigurationError,
    ServerConfig,
    fixed_config,
)


class TestServerConfig:
    """Validation and defaults."""

    def test_defaults(self):
        config = ServerConfig(worker_count=4)
        assert config.worker_count == 4
        assert (config.host, config.port) == ("127.0.0.1", 7080)
        assert (DEFAULT_HOST, DEFAULT_PORT) == ("127.0.0.1", 7080)
        assert config.read_timeout == 120.0
        assert config.idle_timeout == 120.0

    @pytest.mark.parametrize("value", [0, -1, -100, True, "4", 2.0])
    def test_worker_count_must_be_positive_int(self, value):
        with pytest.raises(ConfigurationError, match="positive integer"):
            ServerConfig(worker_count=value)

    def test_frozen(self):
        config = ServerConfig(worker_count=1)
        with pytest.raises(AttributeError):
            config.worker_count = 2  # type: ignore[misc]

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"port": -1},
            {"port": 65536},
            {"host": ""},
            {"read_timeout": 0},
            {"idle_timeout": -5.0},
            {"max_header_bytes": 0},
            {"max_body_bytes": -1},
        ],
    )
    def test_other_fields_validated(self, kwargs):
        with pytest.raises(ConfigurationError):
            ServerConfig(worker_count=1, **kwargs)

    def test_configuration_error_is_value_error(self):
        assert issubclass(ConfigurationError, ValueError)


class TestStartupConfig:
    """The two ways a process obtains its configuration."""

    def test_from_worker_count(self):
        assert ServerConfig.from_worker_count(8).worker_count == 8

    def test_from_missing_worker_count(self):
        with pytest.raises(ConfigurationError, match="-worker_count N"):
            ServerConfig.from_worker_count(None)

    @pytest.mark.parametrize("value", [0, -3])
    def test_from_non_positive_worker_count(self, value):
        with pytest.raises(ConfigurationError, match="-worker_count N"):
            ServerConfig.from_worker_count(value)

    def test_fixed_config(self):
        config = fixed_config()
        assert config.worker_count == FIXED_WORKER_COUNT == 6
        assert config.port == 7080
