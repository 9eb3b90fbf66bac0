"""Kubernetes API access for Stream custom resources."""

import logging
from typing import Any

from kubernetes import client as k8s_client
from kubernetes.client import ApiException

from constants import STREAM_GROUP, STREAM_PLURAL, STREAM_VERSION
from models import Stream

logger = logging.getLogger(__name__)


class StreamApi:
    """Typed wrapper around CustomObjectsApi for the Stream resource.

    Reads return None for objects that do not exist. Writes carry an
    explicit request timeout so that a slow API server cannot stall the
    worker; callers wrap ApiException into their own error types.
    """

    def __init__(
        self,
        custom_api: k8s_client.CustomObjectsApi,
        timeout: float = 5.0,
    ) -> None:
        self._api = custom_api
        self.timeout = timeout

    def _coords(self) -> dict[str, str]:
        return {"group": STREAM_GROUP, "version": STREAM_VERSION, "plural": STREAM_PLURAL}

    def get(self, namespace: str, name: str) -> Stream | None:
        """Fetch a Stream from the API server, or None if it does not exist."""
        try:
            body = self._api.get_namespaced_custom_object(
                namespace=namespace,
                name=name,
                _request_timeout=self.timeout,
                **self._coords(),
            )
        except ApiException as e:
            if e.status == 404:
                return None
            raise
        return Stream.from_dict(body)

    def list(self, namespace: str = "") -> list[dict[str, Any]]:
        """List raw Stream bodies in a namespace, or cluster-wide if empty."""
        if namespace:
            result = self._api.list_namespaced_custom_object(
                namespace=namespace,
                _request_timeout=self.timeout,
                **self._coords(),
            )
        else:
            result = self._api.list_cluster_custom_object(
                _request_timeout=self.timeout, **self._coords()
            )
        return list(result.get("items", []))

    def update(self, stream: Stream, timeout: float | None = None) -> Stream:
        """Replace the object (metadata and spec) and return the stored version."""
        body = self._api.replace_namespaced_custom_object(
            namespace=stream.namespace,
            name=stream.name,
            body=stream.to_dict(),
            _request_timeout=timeout or self.timeout,
            **self._coords(),
        )
        return Stream.from_dict(body)

    def update_status(self, stream: Stream, timeout: float | None = None) -> Stream:
        """Replace the status subresource and return the stored version."""
        body = self._api.replace_namespaced_custom_object_status(
            namespace=stream.namespace,
            name=stream.name,
            body=stream.to_dict(),
            _request_timeout=timeout or self.timeout,
            **self._coords(),
        )
        return Stream.from_dict(body)
