"""Shared operator state - thread-safe singleton wiring the Stream controller."""

import threading
from dataclasses import dataclass, field

from kubernetes import client as k8s_client
from kubernetes import config as k8s_config

from cache import StreamCache
from config import OperatorConfig
from controller import Controller
from events import EventRecorder
from jetstream_client import JetStreamClient
from notifier import ChangeNotifier, StreamInformer
from ratelimit import default_controller_rate_limiter
from reconciler import StreamReconciler
from stream_api import StreamApi
from utils import split_key
from workqueue import WorkQueue


@dataclass
class OperatorState:
    """Thread-safe operator state container.

    This class provides thread-safe access to shared operator resources:
    - Operator configuration
    - Kubernetes API clients
    - Stream cache, work queue and informer
    - Reconciler and worker pool

    All handlers should use the global `state` instance rather than
    building their own.
    """

    _lock: threading.RLock = field(default_factory=threading.RLock, repr=False)
    _config: OperatorConfig | None = field(default=None, repr=False)
    _k8s_core_api: k8s_client.CoreV1Api | None = field(default=None, repr=False)
    _k8s_custom_api: k8s_client.CustomObjectsApi | None = field(default=None, repr=False)
    _k8s_configured: bool = field(default=False, repr=False)
    _stream_api: StreamApi | None = field(default=None, repr=False)
    _recorder: EventRecorder | None = field(default=None, repr=False)
    _cache: StreamCache | None = field(default=None, repr=False)
    _queue: WorkQueue | None = field(default=None, repr=False)
    _informer: StreamInformer | None = field(default=None, repr=False)
    _controller: Controller | None = field(default=None, repr=False)

    def _ensure_k8s_config(self) -> None:
        """Ensure Kubernetes configuration is loaded (must hold lock)."""
        if not self._k8s_configured:
            try:
                k8s_config.load_incluster_config()
            except k8s_config.ConfigException:
                k8s_config.load_kube_config()
            self._k8s_configured = True

    def get_config(self) -> OperatorConfig:
        """Get the operator configuration, loading it on first use."""
        with self._lock:
            if self._config is None:
                self._config = OperatorConfig.from_env()
            return self._config

    def get_k8s_core_api(self) -> k8s_client.CoreV1Api:
        """Get or create the Kubernetes CoreV1Api client (thread-safe)."""
        with self._lock:
            self._ensure_k8s_config()
            if self._k8s_core_api is None:
                self._k8s_core_api = k8s_client.CoreV1Api()
            return self._k8s_core_api

    def get_k8s_custom_api(self) -> k8s_client.CustomObjectsApi:
        """Get or create the Kubernetes CustomObjectsApi client (thread-safe)."""
        with self._lock:
            self._ensure_k8s_config()
            if self._k8s_custom_api is None:
                self._k8s_custom_api = k8s_client.CustomObjectsApi()
            return self._k8s_custom_api

    def get_stream_api(self) -> StreamApi:
        with self._lock:
            if self._stream_api is None:
                self._stream_api = StreamApi(
                    self.get_k8s_custom_api(), timeout=self.get_config().api_timeout
                )
            return self._stream_api

    def get_event_recorder(self) -> EventRecorder:
        with self._lock:
            if self._recorder is None:
                self._recorder = EventRecorder(
                    self.get_k8s_core_api(), timeout=self.get_config().api_timeout
                )
            return self._recorder

    def get_cache(self) -> StreamCache:
        with self._lock:
            if self._cache is None:
                self._cache = StreamCache()
            return self._cache

    def get_queue(self) -> WorkQueue:
        """Get or create the rate-limited work queue (thread-safe)."""
        with self._lock:
            if self._queue is None:
                config = self.get_config()
                self._queue = WorkQueue(
                    default_controller_rate_limiter(
                        base_delay=config.queue_base_delay,
                        max_delay=config.queue_max_delay,
                        qps=config.queue_qps,
                        burst=config.queue_burst,
                    )
                )
            return self._queue

    def get_informer(self) -> StreamInformer:
        """Get or create the informer feeding the cache and the queue."""
        with self._lock:
            if self._informer is None:
                notifier = ChangeNotifier(self.get_queue(), self.get_stream_api())
                self._informer = StreamInformer(self.get_cache(), notifier)
            return self._informer

    def get_controller(self) -> Controller:
        """Get or create the controller and its reconciler (thread-safe)."""
        with self._lock:
            if self._controller is None:
                config = self.get_config()
                reconciler = StreamReconciler(
                    cache=self.get_cache(),
                    api=self.get_stream_api(),
                    client_factory=lambda: JetStreamClient(
                        timeout=config.jetstream_timeout
                    ),
                    recorder=self.get_event_recorder(),
                    client_name=config.client_name,
                )
                self._controller = Controller(
                    self.get_queue(),
                    reconciler.process_stream,
                    max_queue_retries=config.max_queue_retries,
                    workers=config.workers,
                    on_give_up=self._report_give_up,
                )
            return self._controller

    def _report_give_up(self, key: str, err: Exception) -> None:
        namespace, name = split_key(key)
        stream = self.get_cache().get(namespace, name)
        if stream is None:
            return
        self.get_event_recorder().warning(
            stream,
            "RetriesExhausted",
            f"Giving up on stream after {self.get_config().max_queue_retries} "
            f"retries: {err}",
        )

    def close(self) -> None:
        """Stop the workers and release the queue."""
        with self._lock:
            controller = self._controller
            self._controller = None
        if controller is not None:
            controller.stop()


# Global operator state singleton
state = OperatorState()
