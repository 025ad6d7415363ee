"""
Session record: everything one protected form view accumulates.

Owned by exactly one BehaviorEngine; never shared between engines. Created
when the engine is built, replaced wholesale on reset.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from behaviorguard.analysis_engine.anomaly import FlagLog
from behaviorguard.analysis_engine.features import (
    ClickAccumulator,
    KeyboardAccumulator,
    PointerAccumulator,
    TimingAccumulator,
    TouchAccumulator,
)
from behaviorguard.analysis_engine.models import NEUTRAL_SCORE, ChannelScores, Classification
from behaviorguard.config.settings import EngineConfig
from behaviorguard.verification.levels import VerificationLevel

# Distinct form fields tracked per session; further names are ignored
MAX_TRACKED_FIELDS = 256


@dataclass
class FieldInteraction:
    """Per-field activity used by the fast-typing and burst rules."""

    focus_count: int = 0
    input_count: int = 0
    first_focus: float | None = None
    last_activity: float = 0.0


@dataclass
class Session:
    session_id: str
    start: float
    pointer: PointerAccumulator
    touch: TouchAccumulator
    click: ClickAccumulator
    keyboard: KeyboardAccumulator
    timing: TimingAccumulator
    flags: FlagLog
    scores: ChannelScores = field(default_factory=ChannelScores)
    overall_score: float = NEUTRAL_SCORE
    classification: Classification = Classification.UNCERTAIN
    confidence: float = NEUTRAL_SCORE
    level: VerificationLevel = VerificationLevel.NONE
    tracking: bool = False
    started: bool = False
    dirty: bool = True
    last_seen: float = 0.0
    """Latest timestamp seen by observe/tick/decide; snapshots measure duration up to it."""
    fields: dict[str, FieldInteraction] = field(default_factory=dict)
    honeypot_value: str | None = None
    pointer_movements: int = 0
    field_inputs: int = 0
    focus_events: int = 0
    last_keydown: float | None = None
    last_click: float | None = None
    hidden: bool = False
    visible_since: float | None = None
    visibility_burst: int = 0
    visibility_flagged: bool = False

    @classmethod
    def new(cls, config: EngineConfig, start: float, session_id: str | None = None) -> Session:
        capacity = config.buffer_capacity
        return cls(
            session_id=session_id or uuid.uuid4().hex,
            start=start,
            last_seen=start,
            pointer=PointerAccumulator(capacity=capacity, min_samples=config.min_pointer_samples),
            touch=TouchAccumulator(capacity=capacity),
            click=ClickAccumulator(capacity=capacity, tolerance_ms=config.click_consistency_tolerance_ms),
            keyboard=KeyboardAccumulator(capacity=capacity, natural_pause_ms=config.natural_pause_ms),
            timing=TimingAccumulator(session_start=start),
            flags=FlagLog(capacity=config.flag_log_capacity),
        )

    def restart_clock(self, start: float) -> None:
        self.start = start
        self.last_seen = max(self.last_seen, start)
        self.timing.session_start = start

    def field_record(self, name: str) -> FieldInteraction | None:
        """Field record, created on first use; None once the field cap is reached."""
        record = self.fields.get(name)
        if record is None:
            if len(self.fields) >= MAX_TRACKED_FIELDS:
                return None
            record = FieldInteraction()
            self.fields[name] = record
        return record

    def interacted_channels(self) -> int:
        """How many of the five channels have seen at least one observation."""
        return sum(
            (
                self.pointer.total_count > 0,
                self.touch.event_count > 0,
                self.click.click_count > 0,
                self.keyboard.keypress_count > 0,
                self.timing.first_interaction is not None,
            )
        )

    def duration(self, now: float | None = None) -> float:
        end = self.last_seen if now is None else now
        return max(0.0, end - self.start)
