"""Status management for Stream objects.

Every write works on a deep copy of the given Stream, upserts the Ready
condition, trims the condition history and replaces the status
subresource. The caller receives the version stored by the API server.
"""

import logging

import urllib3
from kubernetes.client import ApiException

from constants import MAX_CONDITIONS, STREAM_READY_COND_TYPE
from models import Condition, ConditionStatus, StatusUpdateError, Stream
from stream_api import StreamApi
from utils import now_iso, prune_conditions, upsert_condition

logger = logging.getLogger(__name__)


def _set_ready(
    stream: Stream, status: ConditionStatus, reason: str, message: str
) -> None:
    """Upsert the Ready condition and prune the history (mutates stream)."""
    conditions = upsert_condition(
        stream.status.conditions,
        Condition(
            type=STREAM_READY_COND_TYPE,
            status=status,
            reason=reason,
            message=message,
            last_transition_time=now_iso(),
        ),
    )
    stream.status.conditions = prune_conditions(conditions, MAX_CONDITIONS)


def set_stream_errored(
    stream: Stream, api: StreamApi, err: BaseException | None
) -> Stream:
    """Record a failure as Ready=False/Errored.

    Returns the stream unchanged when there is no error to record.

    Raises:
        StatusUpdateError: The status write itself failed
    """
    if err is None:
        return stream

    copy = stream.deep_copy()
    _set_ready(copy, ConditionStatus.FALSE, "Errored", str(err))

    try:
        return api.update_status(copy)
    except (ApiException, urllib3.exceptions.HTTPError) as e:
        raise StatusUpdateError(f"failed to set stream errored status: {e}") from e


def set_stream_synced(stream: Stream, api: StreamApi) -> Stream:
    """Record a successful sync of the current generation.

    Raises:
        StatusUpdateError: The status write failed
    """
    copy = stream.deep_copy()
    copy.status.observed_generation = stream.generation
    _set_ready(copy, ConditionStatus.TRUE, "Synced", "Stream is synced with spec")

    try:
        return api.update_status(copy)
    except (ApiException, urllib3.exceptions.HTTPError) as e:
        raise StatusUpdateError(
            f'failed to set "{stream.spec.name}" stream synced status: {e}'
        ) from e
