# Verification: staged trust levels, final decision gate, token payload.

from behaviorguard.verification.gate import (
    GateInputs,
    VerificationDecision,
    composite_score,
    evaluate_submission,
)
from behaviorguard.verification.levels import VerificationLevel, advance_level, derive_level
from behaviorguard.verification.token import build_token, decode_token, encode_token

__all__ = [
    "GateInputs",
    "VerificationDecision",
    "composite_score",
    "evaluate_submission",
    "VerificationLevel",
    "advance_level",
    "derive_level",
    "build_token",
    "decode_token",
    "encode_token",
]
