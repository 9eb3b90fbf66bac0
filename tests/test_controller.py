"""Tests for the controller worker loop."""

import threading

import pytest

from controller import Controller
from models import Action, ReconcileError
from ratelimit import ItemExponentialBackoff
from workqueue import WorkQueue


class FakeProcess:
    """Records calls and fails the first `failures` of them."""

    def __init__(self, failures: int = 0) -> None:
        self.failures = failures
        self.calls: list[tuple[str, str]] = []
        self.succeeded = threading.Event()

    def __call__(self, namespace: str, name: str) -> Action:
        self.calls.append((namespace, name))
        if len(self.calls) <= self.failures:
            raise ReconcileError(f"failed to process stream: attempt {len(self.calls)}")
        self.succeeded.set()
        return Action.NOOP


@pytest.fixture
def queue():
    q = WorkQueue(ItemExponentialBackoff(base_delay=0.001, max_delay=0.01))
    yield q
    q.shut_down()


class TestProcessNextItem:
    """Tests for processing a single key."""

    def test_success_forgets(self, queue):
        process = FakeProcess()
        controller = Controller(queue, process)
        queue.add("default/orders")

        assert controller.process_next_item() is True

        assert process.calls == [("default", "orders")]
        assert queue.num_requeues("default/orders") == 0
        assert len(queue) == 0

    def test_failure_requeues_with_backoff(self, queue):
        controller = Controller(queue, FakeProcess(failures=1))
        queue.add("default/orders")

        controller.process_next_item()

        assert queue.num_requeues("default/orders") == 1

    def test_cluster_scoped_key(self, queue):
        process = FakeProcess()
        controller = Controller(queue, process)
        queue.add("orders")

        controller.process_next_item()

        assert process.calls == [("", "orders")]

    def test_malformed_key_is_dropped(self, queue):
        process = FakeProcess()
        controller = Controller(queue, process)
        queue.add("a/b/c")

        assert controller.process_next_item() is True

        assert process.calls == []
        assert queue.num_requeues("a/b/c") == 0

    def test_no_retries_gives_up_at_once(self, queue):
        given_up = []
        controller = Controller(
            queue,
            FakeProcess(failures=1),
            max_queue_retries=0,
            on_give_up=lambda key, err: given_up.append((key, str(err))),
        )
        queue.add("default/orders")

        controller.process_next_item()

        assert given_up == [("default/orders", "failed to process stream: attempt 1")]
        assert queue.num_requeues("default/orders") == 0

    def test_failing_give_up_callback_keeps_worker_alive(self, queue):
        def broken_give_up(key, err):
            raise RuntimeError("event post exploded")

        process = FakeProcess(failures=1)
        controller = Controller(
            queue, process, max_queue_retries=0, on_give_up=broken_give_up
        )
        queue.add("default/orders")
        queue.add("default/other")

        assert controller.process_next_item() is True
        assert controller.process_next_item() is True

        assert process.calls == [("default", "orders"), ("default", "other")]

    def test_stops_after_shutdown(self, queue):
        controller = Controller(queue, FakeProcess())
        queue.shut_down()

        assert controller.process_next_item() is False


class TestWorkers:
    """Tests for the worker threads."""

    def test_retry_ceiling(self, queue):
        process = FakeProcess(failures=100)
        gave_up = threading.Event()
        controller = Controller(
            queue,
            process,
            max_queue_retries=3,
            on_give_up=lambda key, err: gave_up.set(),
        )
        controller.start()
        queue.add("default/orders")

        assert gave_up.wait(timeout=5)
        controller.stop(timeout=5)

        # First attempt plus three retries
        assert len(process.calls) == 4

    def test_recovers_after_transient_failures(self, queue):
        process = FakeProcess(failures=2)
        controller = Controller(queue, process, max_queue_retries=10)
        controller.start()
        queue.add("default/orders")

        assert process.succeeded.wait(timeout=5)
        controller.stop(timeout=5)

        assert len(process.calls) == 3
        assert queue.num_requeues("default/orders") == 0

