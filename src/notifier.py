"""Change notification: turn watch events into work queue keys.

Callbacks here run on the watch delivery path. They keep the local cache
current and decide whether a change is worth reconciling; they never
talk to JetStream and never mutate cached objects.
"""

import logging
from typing import Any

from cache import StreamCache
from metrics import NOTIFICATIONS_TOTAL
from models import ImmutableFieldError, StatusUpdateError, Stream, StreamSpecError
from status import set_stream_errored
from stream_api import StreamApi
from workqueue import WorkQueue

logger = logging.getLogger(__name__)


def validate_stream_update(prev: Stream, new: Stream) -> bool:
    """Check an update and tell whether it needs reconciling.

    Returns False for updates that leave the spec semantically unchanged.
    Updates that start or change a deletion always pass through, without
    looking at the spec.

    Raises:
        ImmutableFieldError: The update changes spec.name or spec.storage
    """
    if prev.deletion_timestamp != new.deletion_timestamp:
        return True

    if prev.spec.name != new.spec.name:
        raise ImmutableFieldError(
            "failed to validate update: "
            "updating stream name is not allowed, please recreate"
        )
    if prev.spec.storage != new.spec.storage:
        raise ImmutableFieldError(
            "failed to validate update: "
            "updating stream storage is not allowed, please recreate"
        )

    return prev.spec != new.spec


class ChangeNotifier:
    """Filter add/update/delete notifications and enqueue Stream keys."""

    def __init__(self, queue: WorkQueue, api: StreamApi | None = None) -> None:
        self._queue = queue
        self._api = api

    def on_add(self, stream: Stream) -> None:
        self._enqueue("add", stream)

    def on_delete(self, stream: Stream) -> None:
        self._enqueue("delete", stream)

    def on_update(self, prev: Stream, new: Stream) -> None:
        try:
            needs_sync = validate_stream_update(prev, new)
        except ImmutableFieldError as e:
            self._reject(new, e)
            return

        if not needs_sync:
            NOTIFICATIONS_TOTAL.labels(kind="update", outcome="skipped").inc()
            return

        self._enqueue("update", new)

    def _enqueue(self, kind: str, stream: Stream) -> None:
        self._queue.add(stream.key)
        NOTIFICATIONS_TOTAL.labels(kind=kind, outcome="enqueued").inc()
        logger.debug("Queued %s (%s)", stream.key, kind)

    def _reject(self, stream: Stream, err: ImmutableFieldError) -> None:
        """Report a rejected update on the Stream status, never retry it."""
        NOTIFICATIONS_TOTAL.labels(kind="update", outcome="rejected").inc()
        message = str(err)
        if self._api is not None:
            try:
                set_stream_errored(stream, self._api, err)
            except StatusUpdateError as serr:
                message = f"{message}: {serr}"
        logger.error("Rejected update of %s: %s", stream.key, message)


class StreamInformer:
    """Adapt raw watch events to cache updates and notifier callbacks.

    The first sight of an object is an add, later sights are updates
    against the previously cached version, and DELETED is a delete.
    """

    def __init__(self, cache: StreamCache, notifier: ChangeNotifier) -> None:
        self._cache = cache
        self._notifier = notifier

    def handle_event(self, raw_event: dict[str, Any]) -> None:
        """Process one watch event: {"type": ..., "object": {...}}."""
        event_type = raw_event.get("type")
        body = raw_event.get("object") or {}

        try:
            stream = Stream.from_dict(body)
        except StreamSpecError as e:
            metadata = body.get("metadata", {})
            logger.error(
                "Ignoring invalid Stream %s/%s: %s",
                metadata.get("namespace", ""),
                metadata.get("name", ""),
                e,
            )
            return

        if event_type == "DELETED":
            self._cache.delete(stream.key)
            self._notifier.on_delete(stream)
            return

        previous = self._cache.put(stream)
        if previous is None:
            self._notifier.on_add(stream)
        else:
            self._notifier.on_update(previous, stream)

    def prime(self, bodies: list[dict[str, Any]]) -> None:
        """Load the initial listing into the cache and queue every object."""
        for body in bodies:
            self.handle_event({"type": "ADDED", "object": body})
        logger.info("Stream cache primed with %d objects", len(self._cache))
