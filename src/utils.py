"""Utility functions for the Stream operator."""

import datetime
import re

from constants import MAX_CONDITIONS
from models import Condition

_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|ms|s|m|h)")

_DURATION_UNITS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def now_iso() -> str:
    """Return current UTC time in ISO format."""
    return datetime.datetime.now(datetime.UTC).isoformat()


def split_key(key: str) -> tuple[str, str]:
    """Split a work queue key into namespace and name.

    Raises ValueError for keys that are not "namespace/name" or "name".
    """
    parts = key.split("/")
    if len(parts) == 1 and parts[0]:
        return "", parts[0]
    if len(parts) == 2 and parts[1]:
        return parts[0], parts[1]
    raise ValueError(f"unexpected key format: {key!r}")


def parse_duration(value: str) -> float:
    """Parse a Go-style duration string into seconds.

    Example: '1h30m' -> 5400.0, '250ms' -> 0.25, '' -> 0.0
    """
    text = value.strip()
    if text in ("", "0"):
        return 0.0

    sign = 1.0
    if text[0] in "+-":
        sign = -1.0 if text[0] == "-" else 1.0
        text = text[1:]

    total = 0.0
    pos = 0
    for match in _DURATION_PART.finditer(text):
        if match.start() != pos:
            break
        total += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
        pos = match.end()

    if pos != len(text) or pos == 0:
        raise ValueError(f"invalid duration: {value!r}")
    return sign * total


def upsert_condition(
    conditions: list[Condition], condition: Condition
) -> list[Condition]:
    """Insert or replace the condition with the same type.

    The replaced entry keeps its position. Its transition time only moves
    when the status actually changes.
    """
    result = list(conditions)
    for i, existing in enumerate(result):
        if existing.type != condition.type:
            continue
        if existing.status == condition.status and existing.last_transition_time:
            condition = Condition(
                type=condition.type,
                status=condition.status,
                reason=condition.reason,
                message=condition.message,
                last_transition_time=existing.last_transition_time,
            )
        result[i] = condition
        return result

    result.append(condition)
    return result


def prune_conditions(
    conditions: list[Condition], max_conditions: int = MAX_CONDITIONS
) -> list[Condition]:
    """Drop the oldest conditions so that at most `max_conditions` remain."""
    if len(conditions) <= max_conditions:
        return list(conditions)
    return list(conditions[len(conditions) - max_conditions :])
