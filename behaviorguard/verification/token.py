"""
Verification token payload.

Shapes {timestamp, score, confidence, sessionDurationMs} for an outbound
request. The encoding is plain base64 JSON; signing is left to the
server-side collaborator.
"""

from __future__ import annotations

import base64
import json
from typing import Any

from behaviorguard.verification.gate import VerificationDecision


def build_token(decision: VerificationDecision, *, timestamp: float, session_duration_ms: float) -> dict[str, Any]:
    return {
        "timestamp": int(timestamp),
        "score": round(decision.score, 4),
        "confidence": round(decision.confidence, 4),
        "sessionDurationMs": int(max(0.0, session_duration_ms)),
    }


def encode_token(payload: dict[str, Any]) -> str:
    raw = json.dumps(payload, separators=(",", ":"), sort_keys=True).encode("utf-8")
    return base64.b64encode(raw).decode("ascii")


def decode_token(token: str) -> dict[str, Any] | None:
    """Inverse of encode_token; None for anything that is not a base64 JSON object."""
    try:
        data = json.loads(base64.b64decode(token.encode("ascii"), validate=True))
    except (ValueError, UnicodeError):
        return None
    return data if isinstance(data, dict) else None
