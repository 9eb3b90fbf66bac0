"""NATS JetStream wrapper with timeouts, retries and metrics.

The reconciler works from plain worker threads, so this client exposes a
blocking API. Each connection owns a private event loop on which the
nats-py coroutines are driven to completion.
"""

import asyncio
import logging
import time
from collections.abc import Callable, Coroutine, Sequence
from functools import wraps
from typing import Any, ParamSpec, TypeVar

import nats
import nats.errors
from nats.aio.client import Client as NATSClient
from nats.js.api import DiscardPolicy, RetentionPolicy, StorageType, StreamConfig
from nats.js.errors import NotFoundError

from metrics import JETSTREAM_API_CALLS, JETSTREAM_API_DURATION
from models import JetStreamError, StreamSpec, StreamSpecError
from utils import parse_duration

logger = logging.getLogger(__name__)

P = ParamSpec("P")
T = TypeVar("T")

DEFAULT_SERVER = "nats://localhost:4222"


def retry_on_error(
    max_retries: int = 2,
    delay: float = 0.5,
    backoff: float = 2.0,
) -> Callable[[Callable[P, T]], Callable[P, T]]:
    """Decorator to retry idempotent JetStream calls on transient errors."""

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        @wraps(func)
        def wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            current_delay = delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except JetStreamError as e:
                    if attempt >= max_retries:
                        logger.error(
                            "All %d attempts failed for %s",
                            max_retries + 1,
                            func.__name__,
                        )
                        raise
                    logger.warning(
                        "Attempt %d/%d failed for %s: %s. Retrying in %.1fs...",
                        attempt + 1,
                        max_retries + 1,
                        func.__name__,
                        e,
                        current_delay,
                    )
                    time.sleep(current_delay)
                    current_delay *= backoff

            raise JetStreamError(f"Operation {func.__name__} failed unexpectedly")

        return wrapper

    return decorator


def stream_config_from_spec(spec: StreamSpec) -> StreamConfig:
    """Translate a Stream spec into a JetStream stream configuration.

    Unset optional limits are left out so that the server applies its own
    defaults.
    """
    try:
        max_age = parse_duration(spec.max_age) if spec.max_age else None
        duplicate_window = (
            parse_duration(spec.duplicate_window) if spec.duplicate_window else None
        )
    except ValueError as e:
        raise StreamSpecError(f"invalid stream {spec.name!r}: {e}") from e

    params: dict[str, Any] = {
        "name": spec.name,
        "description": spec.description or None,
        "subjects": list(spec.subjects) or None,
        "retention": RetentionPolicy(spec.retention.value),
        "max_consumers": spec.max_consumers,
        "max_msgs": spec.max_msgs,
        "max_bytes": spec.max_bytes,
        "discard": DiscardPolicy(spec.discard.value),
        "max_age": max_age,
        "max_msg_size": spec.max_msg_size,
        "storage": StorageType(spec.storage.value),
        "num_replicas": spec.replicas,
        "no_ack": spec.no_ack,
        "duplicate_window": duplicate_window,
    }
    return StreamConfig(**{k: v for k, v in params.items() if v is not None})


class JetStreamClient:
    """Blocking client for managing JetStream streams.

    One instance serves one reconciliation attempt: `connect()`, a few
    stream calls, then `close()`. All failures surface as JetStreamError.
    """

    def __init__(self, timeout: float = 5.0) -> None:
        """Initialize the client.

        Args:
            timeout: Upper bound in seconds for every single call
        """
        self._timeout = timeout
        self._loop: asyncio.AbstractEventLoop | None = None
        self._nc: NATSClient | None = None

    def _call(self, operation: str, coro: Coroutine[Any, Any, T]) -> T:
        if self._loop is None:
            coro.close()
            raise JetStreamError(f"{operation} failed: not connected")

        start_time = time.monotonic()
        try:
            result = self._loop.run_until_complete(
                asyncio.wait_for(coro, timeout=self._timeout)
            )
        except (nats.errors.Error, asyncio.TimeoutError, OSError) as e:
            JETSTREAM_API_CALLS.labels(operation=operation, status="error").inc()
            detail = str(e) or type(e).__name__
            raise JetStreamError(f"{operation} failed: {detail}") from e
        finally:
            JETSTREAM_API_DURATION.labels(operation=operation).observe(
                time.monotonic() - start_time
            )

        JETSTREAM_API_CALLS.labels(operation=operation, status="success").inc()
        return result

    def connect(self, servers: Sequence[str], name: str) -> None:
        """Connect to the given NATS servers.

        Args:
            servers: Server URLs from the Stream spec
            name: Connection name reported to the server
        """
        self.close()
        urls = list(servers) or [DEFAULT_SERVER]
        logger.debug("Connecting to NATS servers: %s", ",".join(urls))

        self._loop = asyncio.new_event_loop()
        try:
            self._nc = self._call(
                "connect",
                nats.connect(
                    servers=urls,
                    name=name,
                    pedantic=True,
                    allow_reconnect=False,
                    connect_timeout=self._timeout,
                    max_reconnect_attempts=0,
                ),
            )
        except JetStreamError:
            self._loop.close()
            self._loop = None
            raise

    def _jsm(self) -> Any:
        if self._nc is None:
            raise JetStreamError("not connected")
        return self._nc.jsm()

    @retry_on_error()
    def exists(self, name: str) -> bool:
        """Check whether a stream with the given name exists."""
        jsm = self._jsm()

        async def _exists() -> bool:
            try:
                await jsm.stream_info(name)
            except NotFoundError:
                return False
            return True

        return self._call("exists", _exists())

    def create(self, spec: StreamSpec) -> None:
        """Create a stream from its spec."""
        config = stream_config_from_spec(spec)
        logger.info("Creating stream: %s", spec.name)
        self._call("create", self._jsm().add_stream(config=config))

    def update(self, spec: StreamSpec) -> None:
        """Update an existing stream to match its spec."""
        config = stream_config_from_spec(spec)
        logger.info("Updating stream: %s", spec.name)
        self._call("update", self._jsm().update_stream(config=config))

    def delete(self, name: str) -> None:
        """Delete a stream. A stream that is already gone is not an error."""
        jsm = self._jsm()

        async def _delete() -> bool:
            try:
                return await jsm.delete_stream(name)
            except NotFoundError:
                return False

        logger.info("Deleting stream: %s", name)
        if not self._call("delete", _delete()):
            logger.info("Stream %s was already deleted", name)

    def close(self) -> None:
        """Close the NATS connection and its event loop."""
        if self._loop is None:
            return
        try:
            if self._nc is not None and not self._nc.is_closed:
                self._loop.run_until_complete(self._nc.close())
        except (nats.errors.Error, OSError) as e:
            logger.warning("Error while closing NATS connection: %s", e)
        finally:
            self._nc = None
            self._loop.close()
            self._loop = None
