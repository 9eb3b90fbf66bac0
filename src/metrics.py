"""Prometheus metrics for the Stream operator."""

from prometheus_client import Counter, Histogram, Gauge, Info

# Reconciliation metrics
RECONCILE_TOTAL = Counter(
    "stream_operator_reconcile_total",
    "Total number of reconciliations",
    ["operation", "status"],
)

RECONCILE_DURATION = Histogram(
    "stream_operator_reconcile_duration_seconds",
    "Time spent in reconciliation",
    ["operation"],
    buckets=(0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0),
)

RECONCILE_IN_PROGRESS = Gauge(
    "stream_operator_reconcile_in_progress",
    "Number of reconciliations currently in progress",
)

# JetStream API metrics
JETSTREAM_API_CALLS = Counter(
    "stream_operator_jetstream_api_calls_total",
    "Total number of JetStream API calls",
    ["operation", "status"],
)

JETSTREAM_API_DURATION = Histogram(
    "stream_operator_jetstream_api_duration_seconds",
    "Time spent in JetStream API calls",
    ["operation"],
    buckets=(0.005, 0.01, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0),
)

# Work queue metrics
QUEUE_DEPTH = Gauge(
    "stream_operator_queue_depth",
    "Number of keys waiting in the work queue",
)

QUEUE_RETRIES = Counter(
    "stream_operator_queue_retries_total",
    "Total number of keys re-queued after a failed reconciliation",
)

QUEUE_DROPPED = Counter(
    "stream_operator_queue_dropped_total",
    "Total number of keys dropped after exhausting their retries",
)

RATE_LIMIT_WAIT_SECONDS = Histogram(
    "stream_operator_rate_limit_wait_seconds",
    "Delay assigned to rate limited re-queues",
    buckets=(0.005, 0.01, 0.05, 0.1, 0.5, 1.0, 5.0, 30.0, 120.0, 600.0, 1000.0),
)

# Notifier metrics
NOTIFICATIONS_TOTAL = Counter(
    "stream_operator_notifications_total",
    "Watch notifications by kind and outcome",
    ["kind", "outcome"],
)

# Operator info
OPERATOR_INFO = Info(
    "stream_operator",
    "Information about the Stream operator",
)


def set_operator_info(version: str, client_name: str) -> None:
    """Set operator info labels."""
    OPERATOR_INFO.info({"version": version, "client_name": client_name})


def init_metrics() -> None:
    """Initialize all metrics with zero values.

    Prometheus metrics with labels don't appear until used.
    This ensures all metrics are visible immediately at startup.
    """
    operations = ["observe", "create", "update", "delete", "noop"]
    statuses = ["success", "error"]

    for operation in operations:
        RECONCILE_DURATION.labels(operation=operation)
        for status in statuses:
            RECONCILE_TOTAL.labels(operation=operation, status=status)

    for operation in ["connect", "exists", "create", "update", "delete"]:
        JETSTREAM_API_DURATION.labels(operation=operation)
        for status in statuses:
            JETSTREAM_API_CALLS.labels(operation=operation, status=status)

    for kind in ["add", "update", "delete"]:
        for outcome in ["enqueued", "skipped", "rejected"]:
            NOTIFICATIONS_TOTAL.labels(kind=kind, outcome=outcome)
