# Event capture: interaction event kinds, wire parsing, payload helpers.

from behaviorguard.capture.events import (
    QUALIFYING_KINDS,
    EventKind,
    InteractionEvent,
    Point,
    TouchContact,
    parse_event,
    resolve_kind,
)

__all__ = [
    "QUALIFYING_KINDS",
    "EventKind",
    "InteractionEvent",
    "Point",
    "TouchContact",
    "parse_event",
    "resolve_kind",
]
