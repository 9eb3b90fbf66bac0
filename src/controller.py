"""Worker loop draining the Stream work queue.

Every failure of a reconciliation ends up in `_handle_error`, the single
place where errors are reported. A failing key is re-queued with backoff
until it has been re-queued `max_queue_retries` times; after that it is
dropped until a new notification queues it again.
"""

import logging
import threading
from collections.abc import Callable

from metrics import QUEUE_DROPPED, QUEUE_RETRIES
from models import Action
from utils import split_key
from workqueue import WorkQueue

logger = logging.getLogger(__name__)

ProcessFn = Callable[[str, str], Action]
ErrorHandler = Callable[[str, Exception], None]


class Controller:
    """Run reconciliations for queued keys on a pool of worker threads."""

    def __init__(
        self,
        queue: WorkQueue,
        process: ProcessFn,
        max_queue_retries: int = 10,
        workers: int = 1,
        on_give_up: ErrorHandler | None = None,
    ) -> None:
        """Initialize the controller.

        Args:
            queue: Work queue of 'namespace/name' keys
            process: Reconciles one key, raises on failure
            max_queue_retries: Re-queues allowed before a key is dropped
            workers: Number of worker threads
            on_give_up: Called with the key and last error when a key is dropped
        """
        self._queue = queue
        self._process = process
        self._max_queue_retries = max_queue_retries
        self._workers = workers
        self._on_give_up = on_give_up
        self._threads: list[threading.Thread] = []

    def start(self) -> None:
        """Start the worker threads."""
        for i in range(self._workers):
            thread = threading.Thread(
                target=self.run_worker, name=f"stream-worker-{i}", daemon=True
            )
            thread.start()
            self._threads.append(thread)
        logger.info("Started %d stream worker(s)", self._workers)

    def stop(self, timeout: float | None = 30.0) -> None:
        """Shut the queue down and wait for workers to finish their current key."""
        self._queue.shut_down()
        for thread in self._threads:
            thread.join(timeout)
            if thread.is_alive():
                logger.warning("Worker %s did not stop in time", thread.name)
        self._threads.clear()
        logger.info("Stream workers stopped")

    def run_worker(self) -> None:
        while self.process_next_item():
            pass

    def process_next_item(self) -> bool:
        """Process one key. Returns False once the queue is shut down."""
        key, shutdown = self._queue.get()
        if shutdown or key is None:
            return False

        try:
            self._process_key(key)
        finally:
            self._queue.done(key)
        return True

    def _process_key(self, key: str) -> None:
        try:
            namespace, name = split_key(key)
        except ValueError as e:
            # Probably junk, clean it up.
            self._handle_error(key, e)
            self._queue.forget(key)
            return

        try:
            self._process(namespace, name)
        except Exception as e:
            self._handle_error(key, e)
            self._requeue_or_drop(key, e)
            return

        # Processed successfully, don't requeue.
        self._queue.forget(key)

    def _requeue_or_drop(self, key: str, err: Exception) -> None:
        if self._queue.num_requeues(key) < self._max_queue_retries:
            QUEUE_RETRIES.inc()
            self._queue.add_rate_limited(key)
            return

        # If we haven't been able to recover by this point, then just stop.
        # The user should have enough info in the object's status and events.
        logger.error("Dropping %s after %d retries", key, self._max_queue_retries)
        QUEUE_DROPPED.inc()
        self._queue.forget(key)
        if self._on_give_up is None:
            return
        try:
            self._on_give_up(key, err)
        except Exception as e:
            self._handle_error(key, e)

    def _handle_error(self, key: str, err: Exception) -> None:
        """Report a failed reconciliation."""
        logger.error("Error processing %s: %s", key, err)
        logger.debug("Traceback for %s", key, exc_info=err)
