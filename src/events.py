"""Best-effort Kubernetes events for Stream objects."""

import datetime
import logging

import urllib3
from kubernetes import client as k8s_client
from kubernetes.client import ApiException

from constants import EVENT_SOURCE_COMPONENT, STREAM_GROUP, STREAM_KIND, STREAM_VERSION
from models import Stream

logger = logging.getLogger(__name__)


class EventRecorder:
    """Post Kubernetes events about Stream objects.

    Posting is fire-and-forget: a failure is logged and never reaches the
    caller, so events can be emitted from any point of a reconciliation.
    """

    def __init__(
        self,
        core_api: k8s_client.CoreV1Api,
        component: str = EVENT_SOURCE_COMPONENT,
        timeout: float = 5.0,
    ) -> None:
        self._api = core_api
        self._component = component
        self._timeout = timeout

    def normal(self, stream: Stream, reason: str, message: str) -> None:
        self._post(stream, "Normal", reason, message)

    def warning(self, stream: Stream, reason: str, message: str) -> None:
        self._post(stream, "Warning", reason, message)

    def _post(self, stream: Stream, event_type: str, reason: str, message: str) -> None:
        namespace = stream.namespace or "default"
        timestamp = datetime.datetime.now(datetime.UTC)
        event = k8s_client.CoreV1Event(
            metadata=k8s_client.V1ObjectMeta(
                generate_name=f"{stream.name}.",
                namespace=namespace,
            ),
            involved_object=k8s_client.V1ObjectReference(
                api_version=f"{STREAM_GROUP}/{STREAM_VERSION}",
                kind=STREAM_KIND,
                name=stream.name,
                namespace=stream.namespace or None,
                uid=stream.metadata.get("uid"),
                resource_version=stream.metadata.get("resourceVersion"),
            ),
            type=event_type,
            reason=reason,
            message=message[:1024],
            source=k8s_client.V1EventSource(component=self._component),
            first_timestamp=timestamp,
            last_timestamp=timestamp,
            count=1,
        )

        try:
            self._api.create_namespaced_event(
                namespace, event, _request_timeout=self._timeout
            )
        except (ApiException, urllib3.exceptions.HTTPError) as e:
            logger.warning(
                "Failed to post %s event %s for %s: %s",
                event_type,
                reason,
                stream.key,
                e,
            )
