"""Local cache of Stream objects, fed by the watch stream.

The cache is written only by the informer (see notifier.StreamInformer)
and read by the reconciler. Readers get the shared instance and must
`deep_copy()` it before mutating anything.
"""

import threading

from models import Stream


class StreamCache:
    """Thread-safe mapping of work queue keys to the last seen Stream."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._items: dict[str, Stream] = {}

    def get(self, namespace: str, name: str) -> Stream | None:
        """Return the cached Stream, or None if it is unknown or deleted."""
        key = f"{namespace}/{name}" if namespace else name
        return self.get_by_key(key)

    def get_by_key(self, key: str) -> Stream | None:
        with self._lock:
            return self._items.get(key)

    def put(self, stream: Stream) -> Stream | None:
        """Store a Stream and return the one it replaced, if any."""
        with self._lock:
            previous = self._items.get(stream.key)
            self._items[stream.key] = stream
            return previous

    def delete(self, key: str) -> Stream | None:
        """Remove a Stream and return it, if it was cached."""
        with self._lock:
            return self._items.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
