"""
Rule-based anomaly flags for interaction sessions.

Independent checks: environment inspection at setup (automation markers,
user agent, viewport ratio, devtools geometry) and event-time rules
(honeypot input, paste, typing right after focus, machine-uniform typing,
rapid clicks, activity bursts when the page becomes visible, bot
classification). Every detection becomes an explainable AnomalyFlag with a
fixed confidence penalty; no ML.
"""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from behaviorguard.analysis_engine.models import Classification
from behaviorguard.analysis_engine.scorer import clamp01
from behaviorguard.config.settings import EngineConfig
from behaviorguard.environment.probe import (
    MARKER_PHANTOM,
    MARKER_WEBDRIVER,
    EnvironmentProbe,
    WindowGeometry,
)
from behaviorguard.logging import get_logger

logger = get_logger(__name__)


class AnomalyType(str, Enum):
    HONEYPOT_FILLED = "honeypot_filled"
    BOT_BEHAVIOR_DETECTED = "bot_behavior_detected"
    WEBDRIVER_DETECTED = "webdriver_detected"
    PHANTOM_DETECTED = "phantom_detected"
    DEV_TOOLS_DETECTED = "dev_tools_detected"
    FAST_TYPING = "fast_typing"
    UNIFORM_TYPING = "uniform_typing"
    PASTE_DETECTED = "paste_detected"
    FAST_CLICKING = "fast_clicking"
    SUSPICIOUS_USER_AGENT = "suspicious_user_agent"
    MISSING_LANGUAGES = "missing_languages"
    UNUSUAL_VIEWPORT_RATIO = "unusual_viewport_ratio"
    RAPID_ACTIVITY_AFTER_FOCUS = "rapid_activity_after_focus"


# Confidence penalty per flag type (explainable, rule-based)
PENALTIES: dict[str, float] = {
    AnomalyType.HONEYPOT_FILLED.value: -0.8,
    AnomalyType.BOT_BEHAVIOR_DETECTED.value: -0.6,
    AnomalyType.WEBDRIVER_DETECTED.value: -0.7,
    AnomalyType.DEV_TOOLS_DETECTED.value: -0.2,
    AnomalyType.FAST_TYPING.value: -0.3,
    AnomalyType.UNIFORM_TYPING.value: -0.4,
    AnomalyType.PASTE_DETECTED.value: -0.1,
    AnomalyType.PHANTOM_DETECTED.value: -0.9,
}
DEFAULT_PENALTY = -0.1

HEADLESS_USER_AGENT_MARKERS = ("HeadlessChrome", "PhantomJS")


def penalty_for(flag_type: AnomalyType | str) -> float:
    key = flag_type.value if isinstance(flag_type, AnomalyType) else str(flag_type)
    return PENALTIES.get(key, DEFAULT_PENALTY)


@dataclass(frozen=True)
class AnomalyFlag:
    """
    Single logged detection.

    Immutable once created; the log only appends and clears in bulk.
    """

    type: str
    data: dict[str, Any] = field(default_factory=dict)
    """Context for the detection: field names, intervals, thresholds."""
    timestamp: float = 0.0
    penalty: float = DEFAULT_PENALTY

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "data": dict(self.data),
            "timestamp": self.timestamp,
            "penalty": self.penalty,
        }


def make_flag(flag_type: AnomalyType | str, timestamp: float, data: dict[str, Any] | None = None) -> AnomalyFlag:
    key = flag_type.value if isinstance(flag_type, AnomalyType) else str(flag_type)
    return AnomalyFlag(type=key, data=dict(data or {}), timestamp=timestamp, penalty=penalty_for(key))


class FlagLog:
    """
    Bounded flag log with session totals.

    total is the number of flags ever raised this session and drives the
    verification rules; penalty_total is the sum of their penalties. Both
    survive eviction of old entries from the buffer.
    """

    def __init__(self, capacity: int) -> None:
        self._flags: deque[AnomalyFlag] = deque(maxlen=capacity)
        self.total = 0
        self.penalty_total = 0.0

    def __len__(self) -> int:
        return len(self._flags)

    def __iter__(self):
        return iter(self._flags)

    def append(self, flag: AnomalyFlag) -> None:
        self._flags.append(flag)
        self.total += 1
        self.penalty_total += flag.penalty

    def types(self) -> list[str]:
        return [f.type for f in self._flags]

    def count(self, flag_type: AnomalyType | str) -> int:
        key = flag_type.value if isinstance(flag_type, AnomalyType) else str(flag_type)
        return sum(1 for f in self._flags if f.type == key)

    def clear(self) -> None:
        self._flags.clear()
        self.total = 0
        self.penalty_total = 0.0


def compute_confidence(
    overall_score: float,
    classification: Classification,
    penalty_total: float,
    *,
    human_bonus: float = 0.2,
) -> float:
    """
    Human-likelihood confidence: classifier score, plus a bonus while the
    session is classified human, plus every flag penalty so far; in [0, 1].
    """
    value = overall_score + penalty_total
    if classification == Classification.HUMAN:
        value += human_bonus
    return clamp01(value)


# --- Setup-time environment checks ---


def _check_automation_markers(probe: EnvironmentProbe, config: EngineConfig, ts: float) -> list[AnomalyFlag]:
    if not config.check_automation_flags:
        return []
    markers = probe.automation_markers()
    flags: list[AnomalyFlag] = []
    if MARKER_WEBDRIVER in markers:
        flags.append(make_flag(AnomalyType.WEBDRIVER_DETECTED, ts))
    if MARKER_PHANTOM in markers:
        flags.append(make_flag(AnomalyType.PHANTOM_DETECTED, ts))
    return flags


def _check_user_agent(probe: EnvironmentProbe, config: EngineConfig, ts: float) -> list[AnomalyFlag]:
    if not config.validate_user_agent:
        return []
    flags: list[AnomalyFlag] = []
    ua = probe.user_agent()
    if not ua or ua == "undefined" or any(m in ua for m in HEADLESS_USER_AGENT_MARKERS):
        flags.append(make_flag(AnomalyType.SUSPICIOUS_USER_AGENT, ts, {"user_agent": ua}))
    if not probe.languages():
        flags.append(make_flag(AnomalyType.MISSING_LANGUAGES, ts))
    return flags


def _check_viewport_ratio(probe: EnvironmentProbe, config: EngineConfig, ts: float) -> list[AnomalyFlag]:
    if not config.check_viewport_ratio:
        return []
    geometry = probe.window_geometry()
    ratio = geometry.viewport_ratio if geometry else None
    if ratio is None:
        return []
    if ratio < config.viewport_ratio_min or ratio > config.viewport_ratio_max:
        return [
            make_flag(
                AnomalyType.UNUSUAL_VIEWPORT_RATIO,
                ts,
                {
                    "ratio": round(ratio, 4),
                    "min": config.viewport_ratio_min,
                    "max": config.viewport_ratio_max,
                },
            )
        ]
    return []


def detect_environment_anomalies(
    probe: EnvironmentProbe,
    config: EngineConfig,
    timestamp: float,
) -> list[AnomalyFlag]:
    """
    Run the one-shot environment checks (automation markers, user agent,
    viewport ratio). A probe that raises only disables its own check.
    """
    flags: list[AnomalyFlag] = []
    for check in (_check_automation_markers, _check_user_agent, _check_viewport_ratio):
        try:
            flags.extend(check(probe, config, timestamp))
        except Exception as e:
            logger.warning("environment_check_failed", rule=check.__name__, error=str(e))
    return flags


class DevToolsMonitor:
    """
    Docked devtools heuristic: outer window much larger than the viewport.

    Flags once per closed-to-open transition.
    """

    def __init__(self, threshold_px: float) -> None:
        self.threshold_px = threshold_px
        self.is_open = False

    def check(self, geometry: WindowGeometry | None, timestamp: float) -> AnomalyFlag | None:
        if geometry is None:
            return None
        width_gap = geometry.outer_width - geometry.inner_width
        height_gap = geometry.outer_height - geometry.inner_height
        if width_gap > self.threshold_px or height_gap > self.threshold_px:
            if self.is_open:
                return None
            self.is_open = True
            return make_flag(
                AnomalyType.DEV_TOOLS_DETECTED,
                timestamp,
                {"width_gap": width_gap, "height_gap": height_gap, "threshold": self.threshold_px},
            )
        self.is_open = False
        return None

    def reset(self) -> None:
        self.is_open = False


# --- Event-time rules ---


def check_fast_typing(field_name: str, since_focus_ms: float, config: EngineConfig, ts: float) -> AnomalyFlag | None:
    """First input into a field arriving almost immediately after it gained focus."""
    if since_focus_ms < config.fast_typing_ms:
        return make_flag(
            AnomalyType.FAST_TYPING,
            ts,
            {"field": field_name, "time_since_focus": since_focus_ms, "threshold": config.fast_typing_ms},
        )
    return None


def check_uniform_typing(interval_ms: float, config: EngineConfig, ts: float) -> AnomalyFlag | None:
    """Key-downs closer together than human finger travel allows."""
    if 0 < interval_ms < config.uniform_typing_ms:
        return make_flag(
            AnomalyType.UNIFORM_TYPING,
            ts,
            {"interval": interval_ms, "threshold": config.uniform_typing_ms},
        )
    return None


def check_fast_clicking(interval_ms: float, config: EngineConfig, ts: float) -> AnomalyFlag | None:
    if 0 < interval_ms < config.fast_click_ms:
        return make_flag(
            AnomalyType.FAST_CLICKING,
            ts,
            {"interval": interval_ms, "threshold": config.fast_click_ms},
        )
    return None
