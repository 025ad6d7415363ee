"""
Analysis engine package: behavioral features, channel scores, anomaly flags.

Consumes timestamped interaction observations, derives per-channel
statistics, scores each channel, fuses them into one human-likelihood score
and raises explainable anomaly flags.
"""

from behaviorguard.analysis_engine.anomaly import (
    DEFAULT_PENALTY,
    PENALTIES,
    AnomalyFlag,
    AnomalyType,
    DevToolsMonitor,
    FlagLog,
    compute_confidence,
    detect_environment_anomalies,
    make_flag,
    penalty_for,
)
from behaviorguard.analysis_engine.features import (
    ClickAccumulator,
    ClickFeatures,
    KeyboardAccumulator,
    KeyboardFeatures,
    PointerAccumulator,
    PointerFeatures,
    TimingAccumulator,
    TimingFeatures,
    TouchAccumulator,
    TouchFeatures,
    variance,
)
from behaviorguard.analysis_engine.models import ChannelScores, Classification
from behaviorguard.analysis_engine.scorer import (
    classify,
    fuse_scores,
    score_channels,
    score_click,
    score_keyboard,
    score_pointer,
    score_timing,
    score_touch,
)

__all__ = [
    "DEFAULT_PENALTY",
    "PENALTIES",
    "AnomalyFlag",
    "AnomalyType",
    "DevToolsMonitor",
    "FlagLog",
    "compute_confidence",
    "detect_environment_anomalies",
    "make_flag",
    "penalty_for",
    "ClickAccumulator",
    "ClickFeatures",
    "KeyboardAccumulator",
    "KeyboardFeatures",
    "PointerAccumulator",
    "PointerFeatures",
    "TimingAccumulator",
    "TimingFeatures",
    "TouchAccumulator",
    "TouchFeatures",
    "variance",
    "ChannelScores",
    "Classification",
    "classify",
    "fuse_scores",
    "score_channels",
    "score_click",
    "score_keyboard",
    "score_pointer",
    "score_timing",
    "score_touch",
]
