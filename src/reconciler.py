"""Stream reconciliation: converge a JetStream stream to its Stream object.

The reconciler is level-triggered. Whatever event caused a key to be
queued, it reloads the current object, asks the JetStream server whether
the stream exists and derives the action from those two facts alone.
"""

import logging
import time
from collections.abc import Callable
from typing import NoReturn, Protocol

from cache import StreamCache
from finalizers import clear_stream_finalizer, set_stream_finalizer, stream_lifecycle
from metrics import RECONCILE_DURATION, RECONCILE_IN_PROGRESS, RECONCILE_TOTAL
from models import (
    Action,
    Lifecycle,
    OperatorError,
    ReconcileError,
    StatusUpdateError,
    Stream,
    StreamSpec,
)
from status import set_stream_errored, set_stream_synced
from stream_api import StreamApi

logger = logging.getLogger(__name__)


class StreamServiceClient(Protocol):
    """The slice of the JetStream client used by the reconciler."""

    def connect(self, servers: tuple[str, ...], name: str) -> None: ...

    def exists(self, name: str) -> bool: ...

    def create(self, spec: StreamSpec) -> None: ...

    def update(self, spec: StreamSpec) -> None: ...

    def delete(self, name: str) -> None: ...

    def close(self) -> None: ...


class Recorder(Protocol):
    def normal(self, stream: Stream, reason: str, message: str) -> None: ...


def decide_action(stream: Stream, exists_remotely: bool) -> Action:
    """Decide what to do with the remote stream. First match wins.

    | exists | delete requested | generation changed | action |
    |--------|------------------|--------------------|--------|
    | any    | yes              | any                | DELETE |
    | yes    | no               | yes                | UPDATE |
    | no     | no               | yes                | CREATE |
    | otherwise                                     | NOOP   |
    """
    if stream_lifecycle(stream) is not Lifecycle.ACTIVE:
        return Action.DELETE
    if not stream.generation_changed:
        return Action.NOOP
    if exists_remotely:
        return Action.UPDATE
    return Action.CREATE


class StreamReconciler:
    """Reconcile one Stream key at a time.

    Collaborators are injected so that the decision logic can be tested
    with in-memory fakes.
    """

    def __init__(
        self,
        cache: StreamCache,
        api: StreamApi,
        client_factory: Callable[[], StreamServiceClient],
        recorder: Recorder,
        client_name: str,
    ) -> None:
        self._cache = cache
        self._api = api
        self._client_factory = client_factory
        self._recorder = recorder
        self._client_name = client_name

    def process_stream(self, namespace: str, name: str) -> Action:
        """Reconcile the Stream with the given namespace and name.

        Returns the action taken.

        Raises:
            ReconcileError: The attempt failed and the key should be retried
        """
        stream = self._cache.get(namespace, name)
        if stream is None:
            logger.debug("Stream %s/%s is gone, nothing to do", namespace, name)
            return Action.NOOP

        start_time = time.monotonic()
        operation = "observe"
        RECONCILE_IN_PROGRESS.inc()
        client = self._client_factory()
        try:
            try:
                client.connect(stream.spec.servers, self._client_name)
            except OperatorError as e:
                self._fail(stream, e)

            try:
                try:
                    exists = client.exists(stream.spec.name)
                except OperatorError as e:
                    self._fail(stream, e)

                action = decide_action(stream, exists)
                operation = action.value
                logger.debug("Stream %s: %s", stream.key, operation)

                if action in (Action.CREATE, Action.UPDATE):
                    self._create_or_update(client, stream, action)
                elif action is Action.DELETE:
                    self._delete(client, stream)
            finally:
                client.close()
        except ReconcileError:
            RECONCILE_TOTAL.labels(operation=operation, status="error").inc()
            raise
        finally:
            RECONCILE_IN_PROGRESS.dec()

        RECONCILE_TOTAL.labels(operation=operation, status="success").inc()
        RECONCILE_DURATION.labels(operation=operation).observe(
            time.monotonic() - start_time
        )
        return action

    def _create_or_update(
        self, client: StreamServiceClient, stream: Stream, action: Action
    ) -> None:
        if action is Action.CREATE:
            verb, past, remote_call = "Creating", "Created", client.create
        else:
            verb, past, remote_call = "Updating", "Updated", client.update

        stream_name = stream.spec.name
        self._recorder.normal(stream, verb, f'{verb} stream "{stream_name}"')
        try:
            remote_call(stream.spec)
        except OperatorError as e:
            self._fail(stream, e)

        try:
            stream = set_stream_finalizer(stream, self._api)
        except OperatorError as e:
            self._fail(stream, e)

        try:
            stream = set_stream_synced(stream, self._api)
        except StatusUpdateError as e:
            raise ReconcileError(f"failed to process stream: {e}") from e

        logger.info("%s stream %s for %s", past, stream_name, stream.key)
        self._recorder.normal(stream, past, f'{past} stream "{stream_name}"')

    def _delete(self, client: StreamServiceClient, stream: Stream) -> None:
        stream_name = stream.spec.name
        self._recorder.normal(stream, "Deleting", f'Deleting stream "{stream_name}"')
        try:
            client.delete(stream_name)
        except OperatorError as e:
            self._fail(stream, e)

        try:
            clear_stream_finalizer(stream, self._api)
        except OperatorError as e:
            self._fail(stream, e)

        logger.info("Deleted stream %s for %s", stream_name, stream.key)

    def _fail(self, stream: Stream, err: OperatorError) -> NoReturn:
        """Record the error on the Stream status and raise it for a retry.

        A failure to write the status is folded into the raised message.
        """
        try:
            set_stream_errored(stream, self._api, err)
        except StatusUpdateError as serr:
            raise ReconcileError(f"failed to process stream: {err}: {serr}") from err
        raise ReconcileError(f"failed to process stream: {err}") from err
