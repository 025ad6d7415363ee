"""
Engine settings: every threshold, weight and duration the engine uses.

EngineConfig is validated at construction; a bad value is a programmer
mistake and raises ConfigurationError immediately instead of surfacing as
odd scores later. get_settings() builds one from BEHAVIORGUARD_* environment
variables (see config.env).
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, fields
from typing import Any

from behaviorguard.core.exceptions import ConfigurationError

WEIGHT_SUM_EPSILON = 1e-6

# Defaults (milliseconds for all durations)
DEFAULT_BUFFER_CAPACITY = 1000
DEFAULT_FLAG_LOG_CAPACITY = 256
DEFAULT_MIN_TRACKING_MS = 10_000.0
DEFAULT_MIN_FILL_MS = 3_000.0
DEFAULT_ANALYSIS_INTERVAL_MS = 1_000.0
DEFAULT_HONEYPOT_FIELD = "email_confirm"


@dataclass
class ChannelWeights:
    """Fusion weights per channel; must sum to 1.0."""

    pointer: float = 0.25
    touch: float = 0.20
    click: float = 0.20
    keyboard: float = 0.20
    timing: float = 0.15

    def __post_init__(self) -> None:
        for f in fields(self):
            value = getattr(self, f.name)
            if not isinstance(value, (int, float)) or math.isnan(value) or not 0.0 <= value <= 1.0:
                raise ConfigurationError(f"weights.{f.name}", f"must be in [0, 1], got {value!r}")
        total = self.total()
        if abs(total - 1.0) > WEIGHT_SUM_EPSILON:
            raise ConfigurationError("weights", f"must sum to 1.0, got {total:.6f}")

    def total(self) -> float:
        return self.pointer + self.touch + self.click + self.keyboard + self.timing

    def to_dict(self) -> dict[str, float]:
        return {
            "pointer": self.pointer,
            "touch": self.touch,
            "click": self.click,
            "keyboard": self.keyboard,
            "timing": self.timing,
        }


@dataclass
class EngineConfig:
    """
    Configurable thresholds for one behavior engine.

    Tune these per form; durations are milliseconds, scores are in [0, 1].
    """

    weights: ChannelWeights = field(default_factory=ChannelWeights)

    # Classification
    bot_threshold: float = 0.3
    human_threshold: float = 0.7
    analysis_interval_ms: float = DEFAULT_ANALYSIS_INTERVAL_MS
    edge_triggered_notifications: bool = True
    """False reproduces per-tick bot/human callbacks while a threshold stays crossed."""

    # Accumulators
    buffer_capacity: int = DEFAULT_BUFFER_CAPACITY
    flag_log_capacity: int = DEFAULT_FLAG_LOG_CAPACITY
    min_pointer_samples: int = 5
    suspicious_linearity_threshold: float = 0.95
    click_consistency_tolerance_ms: float = 10.0
    natural_pause_ms: float = 500.0

    # Verification
    min_tracking_ms: float = DEFAULT_MIN_TRACKING_MS
    min_fill_ms: float = DEFAULT_MIN_FILL_MS
    require_pointer_movement: bool = True
    min_pointer_movements: int = 10
    required_channels: int = 3
    human_confidence_bonus: float = 0.2

    # Honeypot
    honeypot_enabled: bool = True
    honeypot_field: str = DEFAULT_HONEYPOT_FIELD

    # Environment checks
    check_devtools: bool = True
    check_automation_flags: bool = True
    validate_user_agent: bool = True
    check_viewport_ratio: bool = True
    devtools_threshold_px: float = 160.0
    viewport_ratio_min: float = 0.3
    viewport_ratio_max: float = 5.0

    # Event-time anomaly rules
    fast_typing_ms: float = 100.0
    uniform_typing_ms: float = 50.0
    fast_click_ms: float = 100.0
    visibility_burst_window_ms: float = 100.0
    visibility_burst_max: int = 5

    def __post_init__(self) -> None:
        if isinstance(self.weights, dict):
            self.weights = ChannelWeights(**self.weights)
        for name in ("bot_threshold", "human_threshold", "suspicious_linearity_threshold", "human_confidence_bonus"):
            _require_unit(name, getattr(self, name))
        if self.bot_threshold >= self.human_threshold:
            raise ConfigurationError(
                "bot_threshold",
                f"must be below human_threshold ({self.bot_threshold} >= {self.human_threshold})",
            )
        for name in (
            "min_tracking_ms",
            "min_fill_ms",
            "click_consistency_tolerance_ms",
            "natural_pause_ms",
            "devtools_threshold_px",
            "fast_typing_ms",
            "uniform_typing_ms",
            "fast_click_ms",
            "visibility_burst_window_ms",
        ):
            _require_non_negative(name, getattr(self, name))
        if self.analysis_interval_ms <= 0:
            raise ConfigurationError("analysis_interval_ms", "must be positive")
        for name in ("buffer_capacity", "flag_log_capacity"):
            if getattr(self, name) < 3:
                raise ConfigurationError(name, "must be at least 3")
        for name in ("min_pointer_samples", "min_pointer_movements", "required_channels", "visibility_burst_max"):
            _require_non_negative(name, getattr(self, name))
        if self.required_channels > 5:
            raise ConfigurationError("required_channels", "there are only 5 channels")
        if not 0 < self.viewport_ratio_min < self.viewport_ratio_max:
            raise ConfigurationError("viewport_ratio_min", "must be positive and below viewport_ratio_max")

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            out[f.name] = value.to_dict() if isinstance(value, ChannelWeights) else value
        return out


def _require_unit(name: str, value: float) -> None:
    if not isinstance(value, (int, float)) or math.isnan(value) or not 0.0 <= value <= 1.0:
        raise ConfigurationError(name, f"must be in [0, 1], got {value!r}")


def _require_non_negative(name: str, value: float) -> None:
    if not isinstance(value, (int, float)) or math.isnan(value) or value < 0:
        raise ConfigurationError(name, f"must be >= 0, got {value!r}")


def get_settings(**overrides: Any) -> EngineConfig:
    """
    Return an EngineConfig built from BEHAVIORGUARD_* environment variables.

    Keyword overrides win over the environment. Unset variables keep the
    dataclass defaults.
    """
    from behaviorguard.config.env import read_env_overrides

    values = read_env_overrides()
    values.update(overrides)
    return EngineConfig(**values)
