"""
Channel scoring and fusion.

Five stateless scorers map channel features to a score in [0, 1] (0 =
bot-like, 1 = human-like, 0.5 = no evidence). The fused overall score is the
weighted sum of the five and is classified as bot / uncertain / human by two
thresholds. Rule-based and explainable; every constant below is a tuning knob.
"""

from __future__ import annotations

from behaviorguard.analysis_engine.features import (
    ClickFeatures,
    KeyboardFeatures,
    PointerFeatures,
    TimingFeatures,
    TouchFeatures,
)
from behaviorguard.analysis_engine.models import NEUTRAL_SCORE, ChannelScores, Classification
from behaviorguard.config.settings import ChannelWeights

# Pointer: too few samples is itself an automation signal
POINTER_INSUFFICIENT_SCORE = 0.1
POINTER_LINEARITY_PENALTY = 0.4
# A suspiciously straight path never scores above this, whatever its speed profile
POINTER_LINEAR_CEILING = 0.2
POINTER_VELOCITY_SCALE = 1000.0
POINTER_VELOCITY_MAX_BONUS = 0.3
POINTER_ACCEL_SCALE = 10000.0
POINTER_ACCEL_MAX_BONUS = 0.2
DEFAULT_SUSPICIOUS_LINEARITY = 0.95

TOUCH_MULTI_BONUS = 0.2
TOUCH_SWIPE_SCALE = 1000.0
TOUCH_SWIPE_MAX_BONUS = 0.3

CLICK_VARIANCE_SCALE = 100000.0
CLICK_VARIANCE_MAX_BONUS = 0.4
CLICK_CONSISTENCY_THRESHOLD = 0.8
CLICK_CONSISTENCY_PENALTY = 0.3

KEYBOARD_VARIANCE_SCALE = 10000.0
KEYBOARD_VARIANCE_MAX_BONUS = 0.4
KEYBOARD_PAUSE_MAX_BONUS = 0.1

TIMING_TOO_FAST_MS = 100.0
TIMING_TOO_FAST_PENALTY = 0.3
TIMING_NATURAL_MIN_MS = 500.0
TIMING_NATURAL_MAX_MS = 10000.0
TIMING_NATURAL_BONUS = 0.3
TIMING_VARIANCE_SCALE = 1_000_000.0
TIMING_VARIANCE_MAX_BONUS = 0.2


def clamp01(value: float) -> float:
    return max(0.0, min(1.0, value))


def _bonus(value: float, scale: float, cap: float) -> float:
    return clamp01(min(value / scale, cap)) if value > 0 else 0.0


def score_pointer(
    features: PointerFeatures,
    *,
    suspicious_linearity: float = DEFAULT_SUSPICIOUS_LINEARITY,
) -> float:
    if not features.sufficient:
        return POINTER_INSUFFICIENT_SCORE
    score = NEUTRAL_SCORE
    score += _bonus(features.velocity_variance, POINTER_VELOCITY_SCALE, POINTER_VELOCITY_MAX_BONUS)
    score += _bonus(features.acceleration_variance, POINTER_ACCEL_SCALE, POINTER_ACCEL_MAX_BONUS)
    if features.linearity > suspicious_linearity:
        score = min(score - POINTER_LINEARITY_PENALTY, POINTER_LINEAR_CEILING)
    return clamp01(score)


def score_touch(features: TouchFeatures) -> float:
    # Desktop sessions have no touch events; do not penalize them
    if features.event_count == 0:
        return NEUTRAL_SCORE
    score = NEUTRAL_SCORE
    if features.multi_touch:
        score += TOUCH_MULTI_BONUS
    if features.swipe_count > 0:
        score += _bonus(features.swipe_velocity_variance, TOUCH_SWIPE_SCALE, TOUCH_SWIPE_MAX_BONUS)
    return clamp01(score)


def score_click(features: ClickFeatures) -> float:
    if features.interval_count == 0:
        return NEUTRAL_SCORE
    score = NEUTRAL_SCORE
    score += _bonus(features.interval_variance, CLICK_VARIANCE_SCALE, CLICK_VARIANCE_MAX_BONUS)
    if features.consistency_ratio > CLICK_CONSISTENCY_THRESHOLD:
        score -= CLICK_CONSISTENCY_PENALTY
    return clamp01(score)


def score_keyboard(features: KeyboardFeatures) -> float:
    if features.interval_count == 0:
        return NEUTRAL_SCORE
    score = NEUTRAL_SCORE
    score += _bonus(features.interval_variance, KEYBOARD_VARIANCE_SCALE, KEYBOARD_VARIANCE_MAX_BONUS)
    score += min(features.natural_pause_ratio, KEYBOARD_PAUSE_MAX_BONUS)
    return clamp01(score)


def score_timing(features: TimingFeatures) -> float:
    score = NEUTRAL_SCORE
    delay = features.first_interaction_delay
    if delay is not None:
        if delay < TIMING_TOO_FAST_MS:
            score -= TIMING_TOO_FAST_PENALTY
        elif TIMING_NATURAL_MIN_MS < delay < TIMING_NATURAL_MAX_MS:
            score += TIMING_NATURAL_BONUS
    if len(features.interaction_delays) > 1:
        score += _bonus(features.delay_variance, TIMING_VARIANCE_SCALE, TIMING_VARIANCE_MAX_BONUS)
    return clamp01(score)


def score_channels(
    pointer: PointerFeatures,
    touch: TouchFeatures,
    click: ClickFeatures,
    keyboard: KeyboardFeatures,
    timing: TimingFeatures,
    *,
    suspicious_linearity: float = DEFAULT_SUSPICIOUS_LINEARITY,
) -> ChannelScores:
    """Run all five channel scorers."""
    return ChannelScores(
        pointer=score_pointer(pointer, suspicious_linearity=suspicious_linearity),
        touch=score_touch(touch),
        click=score_click(click),
        keyboard=score_keyboard(keyboard),
        timing=score_timing(timing),
    )


def fuse_scores(scores: ChannelScores, weights: ChannelWeights | None = None) -> float:
    """Weighted sum of channel scores, clamped to [0, 1]."""
    w = weights or ChannelWeights()
    overall = (
        scores.pointer * w.pointer
        + scores.touch * w.touch
        + scores.click * w.click
        + scores.keyboard * w.keyboard
        + scores.timing * w.timing
    )
    return clamp01(overall)


def classify(score: float, *, bot_threshold: float = 0.3, human_threshold: float = 0.7) -> Classification:
    """score <= bot_threshold is bot, score >= human_threshold is human, otherwise uncertain."""
    if score <= bot_threshold:
        return Classification.BOT
    if score >= human_threshold:
        return Classification.HUMAN
    return Classification.UNCERTAIN
