"""
Event capture: typed interaction events and payload helpers.

The host UI layer forwards every pointer, touch, keyboard, focus, visibility,
paste and field-input occurrence as an InteractionEvent. Payloads are plain
mappings whose shape depends on the kind; missing or mistyped fields are
treated as absent, never as errors.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from behaviorguard.logging import get_logger

logger = get_logger(__name__)


class EventKind(str, Enum):
    POINTER_MOVE = "pointer-move"
    POINTER_DOWN = "pointer-down"
    CLICK = "click"
    TOUCH_START = "touch-start"
    TOUCH_MOVE = "touch-move"
    TOUCH_END = "touch-end"
    KEY_DOWN = "key-down"
    KEY_UP = "key-up"
    FOCUS = "focus"
    BLUR = "blur"
    VISIBILITY_CHANGE = "visibility-change"
    PASTE = "paste"
    FIELD_INPUT = "field-input"


# DOM event names hosts tend to forward as-is
_ALIASES: dict[str, EventKind] = {
    "mousemove": EventKind.POINTER_MOVE,
    "pointermove": EventKind.POINTER_MOVE,
    "mousedown": EventKind.POINTER_DOWN,
    "pointerdown": EventKind.POINTER_DOWN,
    "touchstart": EventKind.TOUCH_START,
    "touchmove": EventKind.TOUCH_MOVE,
    "touchend": EventKind.TOUCH_END,
    "keydown": EventKind.KEY_DOWN,
    "keyup": EventKind.KEY_UP,
    "focusin": EventKind.FOCUS,
    "focusout": EventKind.BLUR,
    "visibilitychange": EventKind.VISIBILITY_CHANGE,
    "input": EventKind.FIELD_INPUT,
}

# Kinds that count as a deliberate interaction for first-interaction timing
QUALIFYING_KINDS = frozenset(
    {
        EventKind.POINTER_MOVE,
        EventKind.POINTER_DOWN,
        EventKind.CLICK,
        EventKind.TOUCH_START,
        EventKind.KEY_DOWN,
        EventKind.FOCUS,
        EventKind.FIELD_INPUT,
        EventKind.PASTE,
    }
)


def resolve_kind(kind: EventKind | str | None) -> EventKind | None:
    """Map an EventKind, its value, or a DOM alias to EventKind; None if unknown."""
    if isinstance(kind, EventKind):
        return kind
    if not isinstance(kind, str):
        return None
    name = kind.strip().lower().replace("_", "-")
    try:
        return EventKind(name)
    except ValueError:
        return _ALIASES.get(name.replace("-", ""))


@dataclass(frozen=True)
class Point:
    """One sampled position with its timestamp (ms)."""

    x: float
    y: float
    timestamp: float


@dataclass(frozen=True)
class TouchContact:
    id: int | None
    x: float
    y: float
    pressure: float = 1.0


@dataclass(frozen=True)
class InteractionEvent:
    """One timestamped occurrence forwarded by the UI layer."""

    kind: EventKind
    timestamp: float
    payload: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "timestamp": self.timestamp,
            "payload": dict(self.payload),
        }


def parse_event(raw: Mapping[str, Any]) -> InteractionEvent | None:
    """
    Build an InteractionEvent from a wire mapping {kind, timestamp, payload}.

    Returns None when the kind is unknown or the timestamp is not a finite
    number; a missing or non-mapping payload becomes an empty one.
    """
    if not isinstance(raw, Mapping):
        return None
    kind = resolve_kind(raw.get("kind") or raw.get("type"))
    timestamp = as_float(raw.get("timestamp"))
    if kind is None or timestamp is None:
        logger.debug("event_parse_skipped", kind=raw.get("kind"), timestamp=raw.get("timestamp"))
        return None
    payload = raw.get("payload")
    if not isinstance(payload, Mapping):
        payload = {}
    return InteractionEvent(kind=kind, timestamp=timestamp, payload=payload)


def as_float(value: Any) -> float | None:
    """Finite float from an int/float payload value; None otherwise (bools excluded)."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if math.isnan(value) or math.isinf(value):
        return None
    return value


def payload_point(payload: Mapping[str, Any], timestamp: float) -> Point | None:
    """Coordinates from x/y (or clientX/clientY); None when either is unusable."""
    x = as_float(payload.get("x", payload.get("clientX")))
    y = as_float(payload.get("y", payload.get("clientY")))
    if x is None or y is None:
        return None
    return Point(x=x, y=y, timestamp=timestamp)


def payload_touches(payload: Mapping[str, Any]) -> list[TouchContact]:
    """Active contacts of a touch payload; contacts without coordinates are dropped."""
    raw = payload.get("touches")
    if not isinstance(raw, (list, tuple)):
        return []
    contacts: list[TouchContact] = []
    for item in raw:
        if not isinstance(item, Mapping):
            continue
        x = as_float(item.get("x", item.get("clientX")))
        y = as_float(item.get("y", item.get("clientY")))
        if x is None or y is None:
            continue
        ident = item.get("id", item.get("identifier"))
        pressure = as_float(item.get("pressure", item.get("force"))) or 1.0
        contacts.append(
            TouchContact(
                id=ident if isinstance(ident, int) and not isinstance(ident, bool) else None,
                x=x,
                y=y,
                pressure=pressure,
            )
        )
    return contacts


def payload_field(payload: Mapping[str, Any]) -> str | None:
    """Field identifier from field/name; None for window-level events."""
    name = payload.get("field", payload.get("name"))
    if isinstance(name, str) and name:
        return name
    return None


def payload_text(payload: Mapping[str, Any], key: str = "value") -> str | None:
    value = payload.get(key)
    return value if isinstance(value, str) else None
