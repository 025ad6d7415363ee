"""
Final decision gate: ordered admission checks at submission time.

Checks run in a fixed order and stop at the first failure: honeypot,
tracking time, fill time, pointer evidence, bot classification, then the
verification level (with the composite 0-100 score for enhanced sessions).
Every outcome carries a reason and remediation recommendations the UI layer
can render.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

from behaviorguard.analysis_engine.models import Classification
from behaviorguard.config.settings import EngineConfig
from behaviorguard.verification.levels import VerificationLevel

REASON_HONEYPOT = "honeypot filled"
REASON_TRACKING_TIME = "insufficient tracking time"
REASON_TOO_FAST = "form filled too quickly"
REASON_POINTER = "insufficient mouse movement"
REASON_BOT = "bot behavior detected"
REASON_VERIFIED = "human verified"
REASON_ENHANCED_PASSED = "enhanced verification passed"
REASON_ENHANCED_INSUFFICIENT = "enhanced verification insufficient"
REASON_LEVEL_INSUFFICIENT = "verification level insufficient"

RECOMMEND_BLOCK = "block submission, likely automated"
RECOMMEND_LONGER_TRACKING = "require longer interaction time"
RECOMMEND_CAPTCHA_FALLBACK = "show CAPTCHA or additional verification"
RECOMMEND_POINTER = "request mouse interaction"
RECOMMEND_BLOCK_BEHAVIOR = "block submission, behavioral analysis failed"
RECOMMEND_CAPTCHA = "show CAPTCHA"

# Composite score rollup
COMPOSITE_CONFIDENCE_POINTS = 100.0
COMPOSITE_OVERALL_POINTS = 20.0
COMPOSITE_CHANNELS_BONUS = 10.0
COMPOSITE_TIME_BONUS = 5.0
COMPOSITE_FLAG_PENALTY = 15.0
ENHANCED_MIN_COMPOSITE = 70.0


@dataclass
class VerificationDecision:
    """Outcome of one submission attempt."""

    allow: bool
    reason: str
    confidence: float
    score: float
    """Composite score in [0, 100]."""
    recommendations: list[str] = field(default_factory=list)
    level: VerificationLevel = VerificationLevel.NONE
    classification: Classification = Classification.UNCERTAIN

    def to_dict(self) -> dict[str, Any]:
        return {
            "allow": self.allow,
            "reason": self.reason,
            "confidence": self.confidence,
            "score": self.score,
            "recommendations": list(self.recommendations),
            "level": self.level.value,
            "classification": self.classification.value,
        }


@dataclass
class GateInputs:
    """Session state the gate reads; assembled by the engine at submission."""

    honeypot_value: str | None
    session_ms: float
    fill_ms: float
    pointer_movements: int
    classification: Classification
    level: VerificationLevel
    confidence: float
    overall_score: float
    interacted_channels: int
    flag_count: int


def composite_score(
    *,
    confidence: float,
    overall_score: float,
    interacted_channels: int,
    flag_count: int,
    session_ms: float,
    config: EngineConfig,
) -> float:
    """
    0-100 rollup: confidence x100 + overall x20 + 10 when enough channels saw
    input + 5 when the session lasted the minimum fill time - 15 per flag.
    """
    score = confidence * COMPOSITE_CONFIDENCE_POINTS + overall_score * COMPOSITE_OVERALL_POINTS
    if interacted_channels >= config.required_channels:
        score += COMPOSITE_CHANNELS_BONUS
    if session_ms >= config.min_fill_ms:
        score += COMPOSITE_TIME_BONUS
    score -= flag_count * COMPOSITE_FLAG_PENALTY
    return max(0.0, min(100.0, score))


def _reject(inputs: GateInputs, score: float, reason: str, *recommendations: str) -> VerificationDecision:
    return VerificationDecision(
        allow=False,
        reason=reason,
        confidence=inputs.confidence,
        score=score,
        recommendations=list(recommendations),
        level=inputs.level,
        classification=inputs.classification,
    )


def _check_honeypot(inputs: GateInputs, config: EngineConfig, score: float) -> VerificationDecision | None:
    if config.honeypot_enabled and inputs.honeypot_value:
        return _reject(inputs, score, REASON_HONEYPOT, RECOMMEND_BLOCK)
    return None


def _check_tracking_time(inputs: GateInputs, config: EngineConfig, score: float) -> VerificationDecision | None:
    if inputs.session_ms < config.min_tracking_ms:
        return _reject(inputs, score, REASON_TRACKING_TIME, RECOMMEND_LONGER_TRACKING)
    return None


def _check_fill_time(inputs: GateInputs, config: EngineConfig, score: float) -> VerificationDecision | None:
    if inputs.fill_ms < config.min_fill_ms:
        return _reject(inputs, score, REASON_TOO_FAST, RECOMMEND_CAPTCHA_FALLBACK)
    return None


def _check_pointer(inputs: GateInputs, config: EngineConfig, score: float) -> VerificationDecision | None:
    if config.require_pointer_movement and inputs.pointer_movements < config.min_pointer_movements:
        return _reject(inputs, score, REASON_POINTER, RECOMMEND_POINTER)
    return None


def _check_classification(inputs: GateInputs, config: EngineConfig, score: float) -> VerificationDecision | None:
    if inputs.classification == Classification.BOT:
        return _reject(inputs, score, REASON_BOT, RECOMMEND_BLOCK_BEHAVIOR)
    return None


GateCheck = Callable[[GateInputs, EngineConfig, float], "VerificationDecision | None"]

ORDERED_CHECKS: tuple[GateCheck, ...] = (
    _check_honeypot,
    _check_tracking_time,
    _check_fill_time,
    _check_pointer,
    _check_classification,
)


def evaluate_submission(inputs: GateInputs, config: EngineConfig) -> VerificationDecision:
    """Run the ordered checks; the first failure wins, otherwise the level decides."""
    score = composite_score(
        confidence=inputs.confidence,
        overall_score=inputs.overall_score,
        interacted_channels=inputs.interacted_channels,
        flag_count=inputs.flag_count,
        session_ms=inputs.session_ms,
        config=config,
    )
    for check in ORDERED_CHECKS:
        decision = check(inputs, config, score)
        if decision is not None:
            return decision

    if inputs.level == VerificationLevel.VERIFIED:
        return VerificationDecision(
            allow=True,
            reason=REASON_VERIFIED,
            confidence=inputs.confidence,
            score=score,
            level=inputs.level,
            classification=inputs.classification,
        )
    if inputs.level == VerificationLevel.ENHANCED:
        if score >= ENHANCED_MIN_COMPOSITE:
            return VerificationDecision(
                allow=True,
                reason=REASON_ENHANCED_PASSED,
                confidence=inputs.confidence,
                score=score,
                level=inputs.level,
                classification=inputs.classification,
            )
        return _reject(inputs, score, REASON_ENHANCED_INSUFFICIENT, RECOMMEND_CAPTCHA)
    return _reject(inputs, score, REASON_LEVEL_INSUFFICIENT, RECOMMEND_CAPTCHA)
