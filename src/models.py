"""Domain models for the Stream operator.

This module defines typed views over the Stream custom resource. The raw
API body is kept alongside the parsed views so that writes back to the
API server never drop fields the operator does not know about.
"""

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


# =============================================================================
# Enums for constrained values
# =============================================================================


class ConditionStatus(Enum):
    """Kubernetes condition status."""

    TRUE = "True"
    FALSE = "False"
    UNKNOWN = "Unknown"


class Lifecycle(Enum):
    """Two-phase deletion state of a Stream object."""

    ACTIVE = "Active"
    DELETING = "Deleting"
    GONE = "Gone"


class Action(Enum):
    """What a reconciliation does to the remote stream."""

    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"
    NOOP = "noop"


class Storage(Enum):
    """JetStream storage backend."""

    FILE = "file"
    MEMORY = "memory"


class Retention(Enum):
    """JetStream retention policy."""

    LIMITS = "limits"
    INTEREST = "interest"
    WORKQUEUE = "workqueue"


class Discard(Enum):
    """JetStream discard policy."""

    OLD = "old"
    NEW = "new"


def _enum_value(enum_cls: type[Enum], value: Any, default: Enum) -> Enum:
    if value is None or value == "":
        return default
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        raise StreamSpecError(
            f"invalid {enum_cls.__name__.lower()} {value!r}, "
            f"expected one of: {', '.join(e.value for e in enum_cls)}"
        ) from None


def _int_field(data: dict[str, Any], key: str) -> int | None:
    value = data.get(key)
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise StreamSpecError(f"spec.{key} must be an integer, got {value!r}")
    return value


def _bool_field(data: dict[str, Any], key: str) -> bool:
    value = data.get(key)
    if value is None:
        return False
    if not isinstance(value, bool):
        raise StreamSpecError(f"spec.{key} must be a boolean, got {value!r}")
    return value


def _str_field(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise StreamSpecError(f"spec.{key} must be a string, got {value!r}")
    return value


def _str_list_field(data: dict[str, Any], key: str) -> tuple[str, ...]:
    value = data.get(key)
    if value is None:
        return ()
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise StreamSpecError(f"spec.{key} must be a list of strings, got {value!r}")
    return tuple(value)


# =============================================================================
# Dataclasses for spec and status
# =============================================================================


@dataclass(frozen=True)
class StreamSpec:
    """Parsed spec of a Stream resource.

    Equality of two specs is the semantic comparison used to tell a real
    spec change from a metadata or status only update.
    """

    name: str
    storage: Storage = Storage.FILE
    servers: tuple[str, ...] = ()
    description: str = ""
    subjects: tuple[str, ...] = ()
    retention: Retention = Retention.LIMITS
    max_consumers: int | None = None
    max_msgs: int | None = None
    max_bytes: int | None = None
    max_age: str = ""
    max_msg_size: int | None = None
    replicas: int = 1
    no_ack: bool = False
    discard: Discard = Discard.OLD
    duplicate_window: str = ""

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StreamSpec":
        """Create from a Kubernetes spec dict."""
        name = _str_field(data, "name")
        if not name:
            raise StreamSpecError("spec.name is required")

        return cls(
            name=name,
            storage=_enum_value(Storage, data.get("storage"), Storage.FILE),  # type: ignore[arg-type]
            servers=_str_list_field(data, "servers"),
            description=_str_field(data, "description"),
            subjects=_str_list_field(data, "subjects"),
            retention=_enum_value(Retention, data.get("retention"), Retention.LIMITS),  # type: ignore[arg-type]
            max_consumers=_int_field(data, "maxConsumers"),
            max_msgs=_int_field(data, "maxMsgs"),
            max_bytes=_int_field(data, "maxBytes"),
            max_age=_str_field(data, "maxAge"),
            max_msg_size=_int_field(data, "maxMsgSize"),
            replicas=_int_field(data, "replicas") or 1,
            no_ack=_bool_field(data, "noAck"),
            discard=_enum_value(Discard, data.get("discard"), Discard.OLD),  # type: ignore[arg-type]
            duplicate_window=_str_field(data, "duplicateWindow"),
        )


@dataclass(frozen=True)
class Condition:
    """Kubernetes-style condition."""

    type: str
    status: ConditionStatus
    reason: str = ""
    message: str = ""
    last_transition_time: str = ""

    def to_dict(self) -> dict[str, str]:
        """Convert to dict for Kubernetes status."""
        return {
            "type": self.type,
            "status": self.status.value,
            "reason": self.reason,
            "message": self.message,
            "lastTransitionTime": self.last_transition_time,
        }

    @classmethod
    def from_dict(cls, data: dict[str, str]) -> "Condition":
        """Create from Kubernetes status dict."""
        try:
            status = ConditionStatus(data.get("status", "Unknown"))
        except ValueError:
            status = ConditionStatus.UNKNOWN
        return cls(
            type=data.get("type", ""),
            status=status,
            reason=data.get("reason", ""),
            message=data.get("message", ""),
            last_transition_time=data.get("lastTransitionTime", ""),
        )


@dataclass
class StreamStatus:
    """Status of a Stream resource."""

    observed_generation: int = 0
    conditions: list[Condition] = field(default_factory=list)

    def to_dict(self) -> dict[str, object]:
        """Convert to dict for Kubernetes status."""
        result: dict[str, object] = {"observedGeneration": self.observed_generation}
        if self.conditions:
            result["conditions"] = [c.to_dict() for c in self.conditions]
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> "StreamStatus":
        """Create from Kubernetes status dict."""
        data = data or {}
        return cls(
            observed_generation=int(data.get("observedGeneration") or 0),
            conditions=[Condition.from_dict(c) for c in data.get("conditions") or []],
        )

    def get_condition(self, condition_type: str) -> Condition | None:
        for condition in self.conditions:
            if condition.type == condition_type:
                return condition
        return None


@dataclass
class Stream:
    """A Stream custom resource: raw body plus parsed spec and status.

    The controller only ever changes the status and the finalizer list.
    Instances read from the cache are shared and must be copied with
    `deep_copy()` before any mutation.
    """

    body: dict[str, Any]
    spec: StreamSpec
    status: StreamStatus

    @classmethod
    def from_dict(cls, body: dict[str, Any]) -> "Stream":
        """Create from a Kubernetes object body (the body is copied)."""
        body = copy.deepcopy(body)
        metadata = body.setdefault("metadata", {})
        if not metadata.get("name"):
            raise StreamSpecError("metadata.name is required")
        spec = body.get("spec") or {}
        if not isinstance(spec, dict):
            raise StreamSpecError(f"spec must be an object, got {spec!r}")
        return cls(
            body=body,
            spec=StreamSpec.from_dict(spec),
            status=StreamStatus.from_dict(body.get("status")),
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert to a Kubernetes object body suitable for replace calls."""
        body = copy.deepcopy(self.body)
        body["status"] = self.status.to_dict()
        return body

    def deep_copy(self) -> "Stream":
        return Stream(
            body=copy.deepcopy(self.body),
            spec=self.spec,
            status=copy.deepcopy(self.status),
        )

    @property
    def metadata(self) -> dict[str, Any]:
        return self.body["metadata"]

    @property
    def name(self) -> str:
        return self.metadata["name"]

    @property
    def namespace(self) -> str:
        return self.metadata.get("namespace") or ""

    @property
    def key(self) -> str:
        """Work queue identifier: 'namespace/name', or 'name' if cluster-scoped."""
        if self.namespace:
            return f"{self.namespace}/{self.name}"
        return self.name

    @property
    def generation(self) -> int:
        return int(self.metadata.get("generation") or 0)

    @property
    def deletion_timestamp(self) -> str | None:
        return self.metadata.get("deletionTimestamp")

    @property
    def finalizers(self) -> list[str]:
        return list(self.metadata.get("finalizers") or [])

    @finalizers.setter
    def finalizers(self, value: list[str]) -> None:
        self.metadata["finalizers"] = list(value)

    @property
    def generation_changed(self) -> bool:
        return self.generation != self.status.observed_generation


# =============================================================================
# Exceptions
# =============================================================================


class OperatorError(Exception):
    """Base exception for operator errors."""

    pass


class ConfigurationError(OperatorError):
    """Invalid or missing configuration."""

    pass


class StreamSpecError(OperatorError):
    """A Stream object could not be parsed."""

    pass


class ImmutableFieldError(OperatorError):
    """An update tried to change a field that cannot change after creation."""

    pass


class JetStreamError(OperatorError):
    """Error communicating with the JetStream server."""

    pass


class StatusUpdateError(OperatorError):
    """Writing the status subresource failed."""

    pass


class FinalizerUpdateError(OperatorError):
    """Writing the finalizer list failed."""

    pass


class ReconcileError(OperatorError):
    """A reconciliation attempt failed and should be retried."""

    pass
