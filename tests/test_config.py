"""Tests for operator configuration."""

import pytest

from config import OperatorConfig
from models import ConfigurationError


class TestOperatorConfig:
    """Tests for OperatorConfig class."""

    def test_defaults(self):
        config = OperatorConfig()

        assert config.watch_namespace == ""
        assert config.client_name == "stream-operator"
        assert config.max_queue_retries == 10
        assert config.workers == 1
        assert config.queue_base_delay == 0.005
        assert config.queue_max_delay == 1000.0
        assert config.metrics_port == 9090

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("WATCH_NAMESPACE", "nats")
        monkeypatch.setenv("NATS_CLIENT_NAME", "my-operator")
        monkeypatch.setenv("MAX_QUEUE_RETRIES", "3")
        monkeypatch.setenv("WORKERS", "4")
        monkeypatch.setenv("JETSTREAM_TIMEOUT_SECONDS", "2.5")
        monkeypatch.setenv("METRICS_PORT", "0")

        config = OperatorConfig.from_env()

        assert config.watch_namespace == "nats"
        assert config.client_name == "my-operator"
        assert config.max_queue_retries == 3
        assert config.workers == 4
        assert config.jetstream_timeout == 2.5
        assert config.metrics_port == 0

    def test_from_env_empty_uses_defaults(self, monkeypatch):
        monkeypatch.setenv("MAX_QUEUE_RETRIES", "")

        assert OperatorConfig.from_env().max_queue_retries == 10

    def test_from_env_not_a_number(self, monkeypatch):
        monkeypatch.setenv("WORKERS", "many")

        with pytest.raises(ConfigurationError, match="WORKERS must be an integer"):
            OperatorConfig.from_env()

    def test_negative_retries(self):
        with pytest.raises(ConfigurationError, match="MAX_QUEUE_RETRIES"):
            OperatorConfig(max_queue_retries=-1)

    def test_zero_workers(self):
        with pytest.raises(ConfigurationError, match="WORKERS"):
            OperatorConfig(workers=0)

    def test_max_delay_below_base(self):
        with pytest.raises(ConfigurationError):
            OperatorConfig(queue_base_delay=10.0, queue_max_delay=1.0)

    def test_invalid_port(self):
        with pytest.raises(ConfigurationError, match="METRICS_PORT"):
            OperatorConfig(metrics_port=70000)

    def test_is_frozen(self):
        config = OperatorConfig()
        with pytest.raises(AttributeError):
            config.workers = 2
