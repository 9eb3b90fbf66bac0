"""Kopf handlers for the Stream CRD.

Kopf only delivers watch events here. Reconciliation itself happens on the
controller's worker threads, fed through the informer and the work queue.
"""

import logging
import os
import sys
from pathlib import Path
from typing import Any

# Add src directory to path for imports when run as script by Kopf
_src_dir = Path(__file__).parent
if str(_src_dir) not in sys.path:
    sys.path.insert(0, str(_src_dir))

import kopf
from prometheus_client import start_http_server

from constants import STREAM_GROUP, STREAM_PLURAL, STREAM_VERSION
from metrics import init_metrics, set_operator_info
from state import state

logger = logging.getLogger(__name__)

# Operator version
OPERATOR_VERSION = "0.1.0"


@kopf.on.startup()
def configure(settings: kopf.OperatorSettings, **_: Any) -> None:
    """Configure operator settings and start the Stream controller."""
    config = state.get_config()

    # Reduce logging noise
    settings.posting.level = logging.WARNING
    # Set watching namespace - explicit cluster-wide or specific namespace
    if config.watch_namespace:
        settings.watching.namespaces = [config.watch_namespace]
    else:
        settings.watching.clusterwide = True

    # Start Prometheus metrics server
    if config.metrics_port:
        try:
            start_http_server(config.metrics_port)
            logger.info(
                "Prometheus metrics server started on port %d", config.metrics_port
            )
        except OSError as e:
            logger.warning(
                "Failed to start metrics server on port %d: %s", config.metrics_port, e
            )

    # Initialize metrics and set operator info
    init_metrics()
    set_operator_info(OPERATOR_VERSION, config.client_name)

    # Queue every existing Stream before the workers start
    bodies = state.get_stream_api().list(config.watch_namespace)
    state.get_informer().prime(bodies)
    state.get_controller().start()

    logger.info("Stream operator started (version %s)", OPERATOR_VERSION)


@kopf.on.cleanup()
def cleanup(**_: Any) -> None:
    """Clean up resources on operator shutdown."""
    logger.info("Stream operator shutting down")
    state.close()


@kopf.on.event(STREAM_GROUP, STREAM_VERSION, STREAM_PLURAL)
def stream_event(event: kopf.RawEvent, **_: Any) -> None:
    """Feed every raw watch event of a Stream into the informer."""
    state.get_informer().handle_event(dict(event))


def main() -> None:
    """Entry point for running the operator."""
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Kopf will be run via the CLI, but this allows direct invocation for testing
    logger.info("Starting Stream operator...")
    logger.info("Use 'kopf run src/handlers.py' to run the operator")
    sys.exit(0)


if __name__ == "__main__":
    main()
