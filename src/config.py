"""Operator configuration loaded from environment variables."""

import os
from dataclasses import dataclass

from models import ConfigurationError

DEFAULT_CLIENT_NAME = "stream-operator"
DEFAULT_MAX_QUEUE_RETRIES = 10
DEFAULT_API_TIMEOUT_SECONDS = 5.0
DEFAULT_JETSTREAM_TIMEOUT_SECONDS = 5.0


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "")
    if raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "")
    if raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class OperatorConfig:
    """Operator configuration.

    All fields are validated at construction time. Invalid configurations
    raise ConfigurationError immediately rather than failing at runtime.
    """

    watch_namespace: str = ""
    client_name: str = DEFAULT_CLIENT_NAME
    max_queue_retries: int = DEFAULT_MAX_QUEUE_RETRIES
    workers: int = 1
    api_timeout: float = DEFAULT_API_TIMEOUT_SECONDS
    jetstream_timeout: float = DEFAULT_JETSTREAM_TIMEOUT_SECONDS
    queue_base_delay: float = 0.005
    queue_max_delay: float = 1000.0
    queue_qps: float = 10.0
    queue_burst: int = 100
    metrics_port: int = 9090

    def __post_init__(self) -> None:
        if not self.client_name:
            raise ConfigurationError("client name must not be empty")
        if self.max_queue_retries < 0:
            raise ConfigurationError("MAX_QUEUE_RETRIES must be >= 0")
        if self.workers < 1:
            raise ConfigurationError("WORKERS must be >= 1")
        if self.api_timeout <= 0 or self.jetstream_timeout <= 0:
            raise ConfigurationError("timeouts must be positive")
        if self.queue_base_delay < 0 or self.queue_max_delay < self.queue_base_delay:
            raise ConfigurationError(
                "QUEUE_BASE_DELAY_SECONDS must be >= 0 and "
                "<= QUEUE_MAX_DELAY_SECONDS"
            )
        if self.queue_burst < 1:
            raise ConfigurationError("QUEUE_BURST must be >= 1")
        if not 0 <= self.metrics_port <= 65535:
            raise ConfigurationError("METRICS_PORT must be a valid port or 0")

    @classmethod
    def from_env(cls) -> "OperatorConfig":
        """Load configuration from environment variables.

        Environment variables:
            WATCH_NAMESPACE: Namespace to watch (default: all namespaces)
            NATS_CLIENT_NAME: Connection name sent to NATS
            MAX_QUEUE_RETRIES: Re-queues before a key is dropped (default: 10)
            WORKERS: Number of worker threads (default: 1)
            API_TIMEOUT_SECONDS: Kubernetes write timeout (default: 5)
            JETSTREAM_TIMEOUT_SECONDS: Timeout of each JetStream call (default: 5)
            QUEUE_BASE_DELAY_SECONDS, QUEUE_MAX_DELAY_SECONDS: Per-key backoff
            QUEUE_QPS, QUEUE_BURST: Overall re-queue token bucket
            METRICS_PORT: Prometheus port, 0 disables (default: 9090)
        """
        return cls(
            watch_namespace=os.environ.get("WATCH_NAMESPACE", ""),
            client_name=os.environ.get("NATS_CLIENT_NAME", DEFAULT_CLIENT_NAME),
            max_queue_retries=_env_int("MAX_QUEUE_RETRIES", DEFAULT_MAX_QUEUE_RETRIES),
            workers=_env_int("WORKERS", 1),
            api_timeout=_env_float("API_TIMEOUT_SECONDS", DEFAULT_API_TIMEOUT_SECONDS),
            jetstream_timeout=_env_float(
                "JETSTREAM_TIMEOUT_SECONDS", DEFAULT_JETSTREAM_TIMEOUT_SECONDS
            ),
            queue_base_delay=_env_float("QUEUE_BASE_DELAY_SECONDS", 0.005),
            queue_max_delay=_env_float("QUEUE_MAX_DELAY_SECONDS", 1000.0),
            queue_qps=_env_float("QUEUE_QPS", 10.0),
            queue_burst=_env_int("QUEUE_BURST", 100),
            metrics_port=_env_int("METRICS_PORT", 9090),
        )
