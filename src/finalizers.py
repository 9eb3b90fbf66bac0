"""Finalizer handling: the gate of the two-phase Stream deletion.

While our finalizer is on a Stream object the API server keeps it around,
even after deletion was requested. The reconciler removes the finalizer
only once the remote stream is gone.
"""

import logging

import urllib3
from kubernetes.client import ApiException

from constants import STREAM_FINALIZER_KEY
from models import FinalizerUpdateError, Lifecycle, Stream
from stream_api import StreamApi

logger = logging.getLogger(__name__)


def stream_lifecycle(stream: Stream) -> Lifecycle:
    """Derive the deletion phase of a Stream.

    ACTIVE: no deletion requested.
    DELETING: deletion requested, our finalizer still holds the object.
    GONE: deletion requested and nothing of ours holds the object.
    """
    if stream.deletion_timestamp is None:
        return Lifecycle.ACTIVE
    if STREAM_FINALIZER_KEY in stream.finalizers:
        return Lifecycle.DELETING
    return Lifecycle.GONE


def set_stream_finalizer(stream: Stream, api: StreamApi) -> Stream:
    """Add our finalizer to the Stream if it is not there yet.

    Raises:
        FinalizerUpdateError: The metadata write failed
    """
    if STREAM_FINALIZER_KEY in stream.finalizers:
        return stream

    copy = stream.deep_copy()
    copy.finalizers = [*copy.finalizers, STREAM_FINALIZER_KEY]

    try:
        result = api.update(copy)
    except (ApiException, urllib3.exceptions.HTTPError) as e:
        raise FinalizerUpdateError(
            f'failed to set "{stream.name}" stream finalizers: {e}'
        ) from e

    logger.debug("Added finalizer to %s", stream.key)
    return result


def clear_stream_finalizer(stream: Stream, api: StreamApi) -> Stream:
    """Remove our finalizer so the API server can finish the deletion.

    Does nothing unless deletion was requested and our finalizer is present.
    Other finalizers keep their order.

    Raises:
        FinalizerUpdateError: The metadata write failed
    """
    if stream_lifecycle(stream) is not Lifecycle.DELETING:
        return stream

    copy = stream.deep_copy()
    copy.finalizers = [f for f in copy.finalizers if f != STREAM_FINALIZER_KEY]

    try:
        result = api.update(copy)
    except (ApiException, urllib3.exceptions.HTTPError) as e:
        raise FinalizerUpdateError(
            f'failed to clear "{stream.name}" stream finalizers: {e}'
        ) from e

    logger.debug("Removed finalizer from %s", stream.key)
    return result
