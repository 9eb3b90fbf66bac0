"""Shared fixtures: in-memory stand-ins for the API server and JetStream."""

from typing import Any

import pytest
from kubernetes.client import ApiException

from cache import StreamCache
from constants import STREAM_FINALIZER_KEY
from models import JetStreamError, Stream, StreamSpec


def build_body(
    name: str = "orders",
    namespace: str = "default",
    generation: int = 1,
    observed_generation: int | None = None,
    finalizers: list[str] | None = None,
    deleting: bool = False,
    **spec: Any,
) -> dict[str, Any]:
    metadata: dict[str, Any] = {
        "name": name,
        "namespace": namespace,
        "generation": generation,
        "resourceVersion": "1",
        "uid": f"uid-{name}",
    }
    if finalizers is not None:
        metadata["finalizers"] = finalizers
    if deleting:
        metadata["deletionTimestamp"] = "2024-01-01T00:00:00Z"

    body: dict[str, Any] = {
        "apiVersion": "jetstream.nats.io/v1",
        "kind": "Stream",
        "metadata": metadata,
        "spec": {"name": name, "storage": "file", **spec},
    }
    if observed_generation is not None:
        body["status"] = {"observedGeneration": observed_generation}
    return body


class FakeStreamApi:
    """Records writes and echoes them back like the API server would."""

    def __init__(self) -> None:
        self.updates: list[Stream] = []
        self.status_updates: list[Stream] = []
        self.fail_update: Exception | None = None
        self.fail_update_status: Exception | None = None

    def update(self, stream: Stream, timeout: float | None = None) -> Stream:
        if self.fail_update is not None:
            raise self.fail_update
        self.updates.append(stream)
        return Stream.from_dict(stream.to_dict())

    def update_status(self, stream: Stream, timeout: float | None = None) -> Stream:
        if self.fail_update_status is not None:
            raise self.fail_update_status
        self.status_updates.append(stream)
        return Stream.from_dict(stream.to_dict())


class FakeJetStream:
    """JetStream server state shared by every client the factory hands out."""

    def __init__(self) -> None:
        self.streams: dict[str, StreamSpec] = {}
        self.calls: list[tuple[str, str]] = []
        self.errors: dict[str, Exception] = {}
        self.closed = 0

    def client(self) -> "FakeJetStreamClient":
        return FakeJetStreamClient(self)

    def mutating_calls(self) -> list[tuple[str, str]]:
        return [c for c in self.calls if c[0] in ("create", "update", "delete")]


class FakeJetStreamClient:
    def __init__(self, server: FakeJetStream) -> None:
        self._server = server

    def _record(self, operation: str, name: str) -> None:
        self._server.calls.append((operation, name))
        err = self._server.errors.get(operation)
        if err is not None:
            raise err

    def connect(self, servers: tuple[str, ...], name: str) -> None:
        self._record("connect", name)

    def exists(self, name: str) -> bool:
        self._record("exists", name)
        return name in self._server.streams

    def create(self, spec: StreamSpec) -> None:
        self._record("create", spec.name)
        self._server.streams[spec.name] = spec

    def update(self, spec: StreamSpec) -> None:
        self._record("update", spec.name)
        self._server.streams[spec.name] = spec

    def delete(self, name: str) -> None:
        self._record("delete", name)
        self._server.streams.pop(name, None)

    def close(self) -> None:
        self._server.closed += 1


class FakeRecorder:
    def __init__(self) -> None:
        self.events: list[tuple[str, str, str]] = []

    def normal(self, stream: Stream, reason: str, message: str) -> None:
        self.events.append(("Normal", reason, message))

    def warning(self, stream: Stream, reason: str, message: str) -> None:
        self.events.append(("Warning", reason, message))

    def reasons(self) -> list[str]:
        return [reason for _, reason, _ in self.events]


@pytest.fixture
def make_body():
    return build_body


@pytest.fixture
def make_stream():
    def _make(**kwargs: Any) -> Stream:
        return Stream.from_dict(build_body(**kwargs))

    return _make


@pytest.fixture
def api():
    return FakeStreamApi()


@pytest.fixture
def jetstream():
    return FakeJetStream()


@pytest.fixture
def recorder():
    return FakeRecorder()


@pytest.fixture
def cache():
    return StreamCache()


@pytest.fixture
def api_error():
    return ApiException(status=500, reason="Internal Server Error")


@pytest.fixture
def jetstream_error():
    return JetStreamError("connect failed: nats: no servers available for connection")


@pytest.fixture
def finalizer():
    return STREAM_FINALIZER_KEY
