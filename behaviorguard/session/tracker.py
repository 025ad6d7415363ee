"""
Behavior engine: one protected session from start to the submit decision.

Flow per event: observe() -> tagged dispatch into the matching accumulator
and event-time anomaly rules. Flow per tick (every analysis_interval_ms on a
background thread, or driven by the host via tick()): channel scores ->
fused score -> classification -> confidence -> verification level. decide()
refreshes once more and runs the final gate.

All state lives in one Session guarded by one re-entrant lock. Callbacks are
queued while the lock is held and run after it is released; a callback that
raises is logged and does not affect the session or other callbacks.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from behaviorguard.analysis_engine.anomaly import (
    AnomalyFlag,
    AnomalyType,
    DevToolsMonitor,
    check_fast_clicking,
    check_fast_typing,
    check_uniform_typing,
    compute_confidence,
    detect_environment_anomalies,
    make_flag,
)
from behaviorguard.analysis_engine.models import Classification
from behaviorguard.analysis_engine.scorer import classify, fuse_scores, score_channels
from behaviorguard.capture.events import (
    QUALIFYING_KINDS,
    EventKind,
    InteractionEvent,
    as_float,
    payload_field,
    payload_point,
    payload_text,
    payload_touches,
    resolve_kind,
)
from behaviorguard.config.settings import EngineConfig
from behaviorguard.environment.probe import EnvironmentProbe
from behaviorguard.logging import bind_session
from behaviorguard.session.session import Session
from behaviorguard.verification.gate import GateInputs, VerificationDecision, composite_score, evaluate_submission
from behaviorguard.verification.levels import VerificationLevel, advance_level, derive_level
from behaviorguard.verification.token import build_token, encode_token


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


@dataclass
class EngineHooks:
    """
    Notification callbacks; any may be None.

    on_bot_detected / on_human_detected fire once per transition into that
    classification unless the config asks for per-tick notifications.
    """

    on_score_update: Callable[[float, dict[str, Any]], None] | None = None
    on_classification_change: Callable[[Classification, Classification], None] | None = None
    on_bot_detected: Callable[[dict[str, Any]], None] | None = None
    on_human_detected: Callable[[dict[str, Any]], None] | None = None
    on_flag: Callable[[AnomalyFlag], None] | None = None
    on_level_change: Callable[[VerificationLevel, VerificationLevel], None] | None = None
    on_decision: Callable[[VerificationDecision], None] | None = None


class BehaviorEngine:
    """
    Human-vs-automation classifier for one form or page view.

    Usage:
        engine = BehaviorEngine(EngineConfig(), probe=browser_probe)
        engine.start()
        engine.observe("pointer-move", {"x": 10, "y": 20}, timestamp=ts)
        ...
        decision = engine.decide()
        engine.stop()
    """

    def __init__(
        self,
        config: EngineConfig | None = None,
        *,
        hooks: EngineHooks | None = None,
        probe: EnvironmentProbe | None = None,
        clock: Callable[[], float] | None = None,
        session_id: str | None = None,
    ) -> None:
        self.config = config or EngineConfig()
        self.hooks = hooks or EngineHooks()
        self._probe = probe
        self._clock = clock or _wall_clock_ms
        self._lock = threading.RLock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._pending: list[tuple[str, tuple[Any, ...]]] = []
        self._devtools = DevToolsMonitor(self.config.devtools_threshold_px)
        self.session = Session.new(self.config, self._clock(), session_id)
        self._log = bind_session(self.session.session_id)
        self._handlers: dict[EventKind, Callable[[EventKind, Mapping[str, Any], float], None]] = {
            EventKind.POINTER_MOVE: self._on_pointer_move,
            EventKind.POINTER_DOWN: self._on_noop,
            EventKind.CLICK: self._on_click,
            EventKind.TOUCH_START: self._on_touch,
            EventKind.TOUCH_MOVE: self._on_touch,
            EventKind.TOUCH_END: self._on_touch,
            EventKind.KEY_DOWN: self._on_key_down,
            EventKind.KEY_UP: self._on_key_up,
            EventKind.FOCUS: self._on_focus,
            EventKind.BLUR: self._on_noop,
            EventKind.VISIBILITY_CHANGE: self._on_visibility_change,
            EventKind.PASTE: self._on_paste,
            EventKind.FIELD_INPUT: self._on_field_input,
        }

    # --- Lifecycle ---

    def start(self, *, background: bool = True) -> None:
        """
        Begin tracking. The first start fixes the session start time and runs
        the environment checks; background=False leaves ticking to the host.
        """
        with self._lock:
            if self.session.tracking:
                return
            now = self._clock()
            self._begin(now)
            # Fresh event per run so a loop left over from an earlier run never sees it cleared
            self._stop_event = threading.Event()
            if background:
                self._thread = threading.Thread(
                    target=self._run_timer,
                    args=(self._stop_event,),
                    name=f"behaviorguard-{self.session.session_id[:8]}",
                    daemon=True,
                )
                self._thread.start()
            self._log.info("tracking_started", background=background, start=self.session.start)
            notes = self._drain()
        self._dispatch(notes)

    def _begin(self, now: float) -> None:
        s = self.session
        s.tracking = True
        if s.started:
            return
        s.started = True
        s.restart_clock(now)
        if self._probe is not None:
            for flag in detect_environment_anomalies(self._probe, self.config, now):
                self._add_flag(flag)
            self._check_devtools(now)

    def stop(self) -> None:
        """Stop tracking; waits for an in-flight tick before returning."""
        with self._lock:
            self.session.tracking = False
            self._stop_event.set()
            thread, self._thread = self._thread, None
        if thread is not None and thread is not threading.current_thread():
            thread.join()
        self._log.info("tracking_stopped")

    def reset(self) -> None:
        """Discard everything collected and start a fresh session; tracking state is kept."""
        with self._lock:
            was_tracking = self.session.tracking
            self.session = Session.new(self.config, self._clock())
            self._devtools.reset()
            self._pending.clear()
            self._log = bind_session(self.session.session_id)
            if was_tracking:
                self._begin(self.session.start)
            self._log.info("session_reset", tracking=was_tracking)
            notes = self._drain()
        self._dispatch(notes)

    def _run_timer(self, stop_event: threading.Event) -> None:
        interval = self.config.analysis_interval_ms / 1000.0
        self._log.debug("analysis_timer_started", interval_sec=interval)
        while not stop_event.wait(timeout=interval):
            try:
                self.tick()
            except Exception as e:
                self._log.exception("analysis_tick_failed", error=str(e))
        self._log.debug("analysis_timer_stopped")

    # --- Event capture ---

    def observe(
        self,
        kind: EventKind | str,
        payload: Mapping[str, Any] | None = None,
        timestamp: float | None = None,
    ) -> bool:
        """
        Feed one interaction event. Returns False when it was ignored
        (unknown kind or tracking inactive). Never raises for bad payloads.
        """
        resolved = resolve_kind(kind)
        if resolved is None:
            self._log.debug("event_ignored_unknown_kind", kind=str(kind))
            return False
        ts = as_float(timestamp)
        if ts is None:
            ts = self._clock()
        if not isinstance(payload, Mapping):
            payload = {}
        with self._lock:
            s = self.session
            if not s.tracking:
                return False
            s.last_seen = max(s.last_seen, ts)
            if resolved in QUALIFYING_KINDS:
                self._record_interaction(resolved, ts)
            self._handlers[resolved](resolved, payload, ts)
            s.dirty = True
            notes = self._drain()
        self._dispatch(notes)
        return True

    def observe_event(self, event: InteractionEvent) -> bool:
        return self.observe(event.kind, event.payload, event.timestamp)

    def _record_interaction(self, kind: EventKind, ts: float) -> None:
        s = self.session
        if s.timing.push(kind, ts):
            self._log.debug(
                "first_interaction",
                kind=kind.value,
                delay_ms=max(0.0, ts - s.start),
            )
        if s.visible_since is None:
            return
        if ts - s.visible_since > self.config.visibility_burst_window_ms:
            s.visible_since = None
            return
        s.visibility_burst += 1
        if s.visibility_burst > self.config.visibility_burst_max and not s.visibility_flagged:
            s.visibility_flagged = True
            self._add_flag(
                make_flag(
                    AnomalyType.RAPID_ACTIVITY_AFTER_FOCUS,
                    ts,
                    {
                        "interactions": s.visibility_burst,
                        "time_window": self.config.visibility_burst_window_ms,
                    },
                )
            )

    def _on_noop(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        return None

    def _on_pointer_move(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        point = payload_point(payload, ts)
        if point is None:
            return
        self.session.pointer_movements += 1
        self.session.pointer.push(point)

    def _on_click(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        s = self.session
        s.click.push(ts)
        if s.last_click is not None:
            flag = check_fast_clicking(ts - s.last_click, self.config, ts)
            if flag is not None:
                self._add_flag(flag)
        s.last_click = ts

    def _on_touch(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        self.session.touch.push(kind, payload_touches(payload), ts)

    def _on_key_down(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        s = self.session
        s.keyboard.push(EventKind.KEY_DOWN, ts)
        if s.last_keydown is not None:
            flag = check_uniform_typing(ts - s.last_keydown, self.config, ts)
            if flag is not None:
                self._add_flag(flag)
        s.last_keydown = ts

    def _on_key_up(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        self.session.keyboard.push(EventKind.KEY_UP, ts)

    def _on_focus(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        s = self.session
        s.focus_events += 1
        name = payload_field(payload)
        if name is None:
            return
        record = s.field_record(name)
        if record is None:
            return
        record.focus_count += 1
        if record.first_focus is None:
            record.first_focus = ts
        record.last_activity = ts

    def _on_visibility_change(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        s = self.session
        hidden = payload.get("hidden")
        state = payload.get("state")
        if not isinstance(hidden, bool):
            if state == "hidden":
                hidden = True
            elif state == "visible":
                hidden = False
            else:
                return
        s.hidden = hidden
        if hidden:
            s.visible_since = None
        else:
            s.visible_since = ts
            s.visibility_burst = 0
            s.visibility_flagged = False

    def _on_paste(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        length = as_float(payload.get("length"))
        self._add_flag(
            make_flag(
                AnomalyType.PASTE_DETECTED,
                ts,
                {"field": payload_field(payload), "data_length": int(length) if length is not None else 0},
            )
        )

    def _on_field_input(self, kind: EventKind, payload: Mapping[str, Any], ts: float) -> None:
        s = self.session
        name = payload_field(payload)
        if name is None:
            return
        if self.config.honeypot_enabled and name == self.config.honeypot_field:
            self._record_honeypot(payload_text(payload), ts)
            return
        s.field_inputs += 1
        record = s.field_record(name)
        if record is None:
            return
        record.input_count += 1
        record.last_activity = ts
        if record.input_count == 1 and record.first_focus is not None:
            flag = check_fast_typing(name, max(0.0, ts - record.first_focus), self.config, ts)
            if flag is not None:
                self._add_flag(flag)

    def _record_honeypot(self, value: str | None, ts: float) -> None:
        s = self.session
        already_filled = bool(s.honeypot_value)
        s.honeypot_value = value
        if value and not already_filled:
            self._add_flag(
                make_flag(
                    AnomalyType.HONEYPOT_FILLED,
                    ts,
                    {"field": self.config.honeypot_field, "value_length": len(value)},
                )
            )

    # --- Scoring ---

    def tick(self, now: float | None = None) -> float:
        """One periodic re-evaluation; returns the overall score. No-op while not tracking."""
        with self._lock:
            if self.session.tracking:
                self._evaluate(self._clock() if now is None else now)
            score = self.session.overall_score
            notes = self._drain()
        self._dispatch(notes)
        return score

    def _evaluate(self, now: float) -> None:
        s = self.session
        s.last_seen = max(s.last_seen, now)
        self._check_devtools(now)

        recomputed = s.dirty
        if s.dirty:
            s.scores = score_channels(
                s.pointer.features(),
                s.touch.features(),
                s.click.features(),
                s.keyboard.features(),
                s.timing.features(),
                suspicious_linearity=self.config.suspicious_linearity_threshold,
            )
            s.overall_score = fuse_scores(s.scores, self.config.weights)
            s.dirty = False

        previous = s.classification
        current = classify(
            s.overall_score,
            bot_threshold=self.config.bot_threshold,
            human_threshold=self.config.human_threshold,
        )
        s.classification = current
        changed = current != previous
        self._refresh_confidence(now)

        edge = self.config.edge_triggered_notifications
        if recomputed or not edge:
            self._queue("on_score_update", lambda: (s.overall_score, self._analysis()))
        if changed:
            self._log.info(
                "classification_changed",
                previous=previous.value,
                current=current.value,
                score=round(s.overall_score, 4),
            )
            self._queue("on_classification_change", lambda: (previous, current))
        if current == Classification.BOT:
            if changed:
                self._add_flag(
                    make_flag(
                        AnomalyType.BOT_BEHAVIOR_DETECTED,
                        now,
                        {"score": round(s.overall_score, 4), "scores": s.scores.to_dict()},
                    )
                )
            if changed or not edge:
                self._queue("on_bot_detected", lambda: (self._analysis(),))
        elif current == Classification.HUMAN and (changed or not edge):
            self._queue("on_human_detected", lambda: (self._analysis(),))

    def _check_devtools(self, now: float) -> None:
        if self._probe is None or not self.config.check_devtools:
            return
        try:
            geometry = self._probe.window_geometry()
        except Exception as e:
            self._log.warning("environment_check_failed", rule="devtools", error=str(e))
            return
        flag = self._devtools.check(geometry, now)
        if flag is not None:
            self._add_flag(flag)

    def _refresh_confidence(self, now: float) -> None:
        s = self.session
        s.confidence = compute_confidence(
            s.overall_score,
            s.classification,
            s.flags.penalty_total,
            human_bonus=self.config.human_confidence_bonus,
        )
        derived = derive_level(s.confidence, s.flags.total, max(0.0, now - s.start), self.config.min_tracking_ms)
        level = advance_level(s.level, derived)
        if level != s.level:
            previous, s.level = s.level, level
            self._log.info(
                "verification_level_changed",
                previous=previous.value,
                current=level.value,
                confidence=round(s.confidence, 4),
            )
            self._queue("on_level_change", lambda: (previous, level))

    def _add_flag(self, flag: AnomalyFlag) -> None:
        s = self.session
        s.flags.append(flag)
        self._log.warning(
            "anomaly_flag_raised",
            flag_type=flag.type,
            penalty=flag.penalty,
            flag_count=s.flags.total,
            data=flag.data,
        )
        self._queue("on_flag", lambda: (flag,))
        self._refresh_confidence(max(flag.timestamp, s.last_seen))

    def raise_flag(
        self,
        flag_type: AnomalyType | str,
        data: dict[str, Any] | None = None,
        timestamp: float | None = None,
    ) -> AnomalyFlag:
        """Record a host-detected anomaly; unknown types carry the default penalty."""
        with self._lock:
            ts = self._clock() if timestamp is None else timestamp
            flag = make_flag(flag_type, ts, data)
            self._add_flag(flag)
            notes = self._drain()
        self._dispatch(notes)
        return flag

    # --- Decision ---

    def decide(self, honeypot_value: str | None = None, now: float | None = None) -> VerificationDecision:
        """
        Final gate for a submission. honeypot_value, when given, is the
        submitted value of the honeypot field and overrides what was observed.
        """
        with self._lock:
            now = self._clock() if now is None else now
            s = self.session
            if honeypot_value is not None and self.config.honeypot_enabled:
                self._record_honeypot(honeypot_value, now)
            self._evaluate(now)
            # Fill time is time-to-submit, measured from session start like tracking time
            elapsed = max(0.0, now - s.start)
            inputs = GateInputs(
                honeypot_value=s.honeypot_value,
                session_ms=elapsed,
                fill_ms=elapsed,
                pointer_movements=s.pointer_movements,
                classification=s.classification,
                level=s.level,
                confidence=s.confidence,
                overall_score=s.overall_score,
                interacted_channels=s.interacted_channels(),
                flag_count=s.flags.total,
            )
            decision = evaluate_submission(inputs, self.config)
            self._log.info(
                "verification_decided",
                allow=decision.allow,
                reason=decision.reason,
                score=round(decision.score, 2),
                confidence=round(decision.confidence, 4),
                level=decision.level.value,
            )
            self._queue("on_decision", lambda: (decision,))
            notes = self._drain()
        self._dispatch(notes)
        return decision

    def verification_token(self, decision: VerificationDecision, now: float | None = None) -> str:
        """
        Base64 JSON token {timestamp, score, confidence, sessionDurationMs}; unsigned.
        Reads only; pass the decision returned by decide().
        """
        with self._lock:
            ts = self._clock() if now is None else now
            payload = build_token(decision, timestamp=ts, session_duration_ms=self.session.duration(ts))
        return encode_token(payload)

    # --- Queries ---

    def current_score(self) -> float:
        return self.session.overall_score

    def classification(self) -> Classification:
        return self.session.classification

    def confidence(self) -> float:
        return self.session.confidence

    def verification_level(self) -> VerificationLevel:
        return self.session.level

    def is_tracking(self) -> bool:
        return self.session.tracking

    def is_bot(self) -> bool:
        return self.session.classification == Classification.BOT

    def is_human(self) -> bool:
        return self.session.classification == Classification.HUMAN

    def flags(self) -> list[AnomalyFlag]:
        with self._lock:
            return list(self.session.flags)

    def analysis_snapshot(self) -> dict[str, Any]:
        """Scores, feature summaries, classification and flags; reads only."""
        with self._lock:
            return self._analysis()

    def _analysis(self) -> dict[str, Any]:
        s = self.session
        scores = s.scores.to_dict()
        scores["overall"] = s.overall_score
        return {
            "session_id": s.session_id,
            "scores": scores,
            "classification": s.classification.value,
            "confidence": s.confidence,
            "verification_level": s.level.value,
            "flag_count": s.flags.total,
            "flags": s.flags.types(),
            "pointer": s.pointer.features().to_dict(),
            "touch": s.touch.features().to_dict(),
            "click": s.click.features().to_dict(),
            "keyboard": s.keyboard.features().to_dict(),
            "timing": s.timing.features().to_dict(),
            "interacted_channels": s.interacted_channels(),
            "session_duration": s.duration(),
            "tracking": s.tracking,
        }

    def verification_status(self) -> dict[str, Any]:
        """Level, composite score, confidence and flag count as of the latest activity."""
        with self._lock:
            s = self.session
            return {
                "level": s.level.value,
                "score": composite_score(
                    confidence=s.confidence,
                    overall_score=s.overall_score,
                    interacted_channels=s.interacted_channels(),
                    flag_count=s.flags.total,
                    session_ms=s.duration(),
                    config=self.config,
                ),
                "confidence": s.confidence,
                "is_verified": s.level == VerificationLevel.VERIFIED,
                "suspicious_flags": s.flags.total,
                "session_time": s.duration(),
            }

    # --- Notifications ---

    def _queue(self, hook: str, make_args: Callable[[], tuple[Any, ...]]) -> None:
        # Arguments are only built when someone listens
        if getattr(self.hooks, hook, None) is None:
            return
        self._pending.append((hook, make_args()))

    def _drain(self) -> list[tuple[str, tuple[Any, ...]]]:
        notes, self._pending = self._pending, []
        return notes

    def _dispatch(self, notes: list[tuple[str, tuple[Any, ...]]]) -> None:
        for hook, args in notes:
            callback = getattr(self.hooks, hook, None)
            if callback is None:
                continue
            try:
                callback(*args)
            except Exception as e:
                self._log.exception("callback_failed", hook=hook, error=str(e))
