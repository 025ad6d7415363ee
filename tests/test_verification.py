"""
Pytest tests for verification levels, the submission gate and the token payload.
"""

from __future__ import annotations

import base64
import json

import pytest

from behaviorguard.analysis_engine.models import Classification
from behaviorguard.config.settings import EngineConfig
from behaviorguard.verification.gate import (
    REASON_BOT,
    REASON_ENHANCED_INSUFFICIENT,
    REASON_ENHANCED_PASSED,
    REASON_HONEYPOT,
    REASON_LEVEL_INSUFFICIENT,
    REASON_POINTER,
    REASON_TOO_FAST,
    REASON_TRACKING_TIME,
    REASON_VERIFIED,
    RECOMMEND_CAPTCHA,
    GateInputs,
    VerificationDecision,
    composite_score,
    evaluate_submission,
)
from behaviorguard.verification.levels import VerificationLevel, advance_level, derive_level
from behaviorguard.verification.token import build_token, decode_token, encode_token


def _inputs(**kw) -> GateInputs:
    base = dict(
        honeypot_value=None,
        session_ms=15_000.0,
        fill_ms=12_000.0,
        pointer_movements=60,
        classification=Classification.HUMAN,
        level=VerificationLevel.VERIFIED,
        confidence=0.95,
        overall_score=0.8,
        interacted_channels=3,
        flag_count=0,
    )
    base.update(kw)
    return GateInputs(**base)


# --- Levels ---


def test_derive_level_ladder():
    assert derive_level(0.9, 0, 12_000, 10_000) == VerificationLevel.VERIFIED
    assert derive_level(0.9, 0, 5_000, 10_000) == VerificationLevel.ENHANCED
    assert derive_level(0.9, 1, 12_000, 10_000) == VerificationLevel.ENHANCED
    assert derive_level(0.65, 2, 12_000, 10_000) == VerificationLevel.BASIC
    assert derive_level(0.4, 0, 0, 10_000) == VerificationLevel.BASIC
    assert derive_level(0.39, 0, 12_000, 10_000) == VerificationLevel.NONE


def test_advance_level_never_downgrades():
    assert advance_level(VerificationLevel.NONE, VerificationLevel.BASIC) == VerificationLevel.BASIC
    assert advance_level(VerificationLevel.ENHANCED, VerificationLevel.NONE) == VerificationLevel.ENHANCED
    assert VerificationLevel.VERIFIED.rank > VerificationLevel.ENHANCED.rank > VerificationLevel.BASIC.rank


# --- Composite score ---


def test_composite_score_rollup_and_clamp():
    config = EngineConfig()
    # 0.5 * 100 + 0.5 * 20 + 10 (channels) + 5 (time) - 15 (one flag)
    assert composite_score(
        confidence=0.5, overall_score=0.5, interacted_channels=3, flag_count=1, session_ms=4000, config=config
    ) == pytest.approx(60.0)
    assert composite_score(
        confidence=1.0, overall_score=1.0, interacted_channels=5, flag_count=0, session_ms=20_000, config=config
    ) == 100.0
    assert composite_score(
        confidence=0.0, overall_score=0.0, interacted_channels=0, flag_count=4, session_ms=0, config=config
    ) == 0.0


# --- Gate ---


def test_gate_allows_verified_session():
    decision = evaluate_submission(_inputs(), EngineConfig())
    assert decision.allow is True
    assert decision.reason == REASON_VERIFIED
    assert decision.recommendations == []


@pytest.mark.parametrize(
    "overrides, reason",
    [
        ({"honeypot_value": "x"}, REASON_HONEYPOT),
        ({"session_ms": 500.0}, REASON_TRACKING_TIME),
        ({"fill_ms": 1000.0}, REASON_TOO_FAST),
        ({"pointer_movements": 3}, REASON_POINTER),
        ({"classification": Classification.BOT}, REASON_BOT),
        ({"level": VerificationLevel.BASIC}, REASON_LEVEL_INSUFFICIENT),
    ],
)
def test_gate_rejections(overrides, reason):
    decision = evaluate_submission(_inputs(**overrides), EngineConfig())
    assert decision.allow is False
    assert decision.reason == reason
    assert decision.recommendations


def test_gate_checks_run_in_order():
    """Honeypot wins over everything else that is also wrong."""
    decision = evaluate_submission(
        _inputs(honeypot_value="spam", session_ms=10.0, pointer_movements=0, classification=Classification.BOT),
        EngineConfig(),
    )
    assert decision.reason == REASON_HONEYPOT


def test_gate_pointer_requirement_can_be_disabled():
    decision = evaluate_submission(_inputs(pointer_movements=0), EngineConfig(require_pointer_movement=False))
    assert decision.allow is True


def test_gate_enhanced_needs_composite_70():
    passed = evaluate_submission(_inputs(level=VerificationLevel.ENHANCED, confidence=0.7, flag_count=1), EngineConfig())
    assert passed.allow is True
    assert passed.reason == REASON_ENHANCED_PASSED
    # 0.55 * 100 + 0.6 * 20 + 10 + 5 - 15 = 67
    failed = evaluate_submission(
        _inputs(level=VerificationLevel.ENHANCED, confidence=0.55, overall_score=0.6, flag_count=1),
        EngineConfig(),
    )
    assert failed.allow is False
    assert failed.reason == REASON_ENHANCED_INSUFFICIENT
    assert failed.recommendations == [RECOMMEND_CAPTCHA]


def test_decision_to_dict():
    decision = evaluate_submission(_inputs(), EngineConfig())
    d = decision.to_dict()
    assert d["allow"] is True
    assert d["level"] == "verified"
    assert d["classification"] == "human"
    assert 0 <= d["score"] <= 100


# --- Token ---


def test_token_payload_shape():
    decision = VerificationDecision(allow=True, reason=REASON_VERIFIED, confidence=0.91234567, score=88.123456)
    payload = build_token(decision, timestamp=1_700_000_012_000.7, session_duration_ms=12_000.9)
    assert payload == {
        "timestamp": 1_700_000_012_000,
        "score": 88.1235,
        "confidence": 0.9123,
        "sessionDurationMs": 12_000,
    }


def test_token_is_base64_json():
    payload = {"timestamp": 1, "score": 50.0, "confidence": 0.5, "sessionDurationMs": 3000}
    token = encode_token(payload)
    assert json.loads(base64.b64decode(token)) == payload
    assert decode_token(token) == payload


@pytest.mark.parametrize("token", ["not base64!", base64.b64encode(b"[1, 2]").decode(), base64.b64encode(b"{oops").decode()])
def test_decode_token_rejects_garbage(token):
    assert decode_token(token) is None
