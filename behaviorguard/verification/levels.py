"""
Verification levels: none -> basic -> enhanced -> verified.

The level is derived from confidence, flag count and elapsed session time.
Within a session it only moves up; a full reset is the caller's call.
"""

from __future__ import annotations

from enum import Enum


class VerificationLevel(str, Enum):
    NONE = "none"
    BASIC = "basic"
    ENHANCED = "enhanced"
    VERIFIED = "verified"

    @property
    def rank(self) -> int:
        return _ORDER.index(self)


_ORDER = (
    VerificationLevel.NONE,
    VerificationLevel.BASIC,
    VerificationLevel.ENHANCED,
    VerificationLevel.VERIFIED,
)

VERIFIED_MIN_CONFIDENCE = 0.8
ENHANCED_MIN_CONFIDENCE = 0.6
ENHANCED_MAX_FLAGS = 1
BASIC_MIN_CONFIDENCE = 0.4


def derive_level(
    confidence: float,
    flag_count: int,
    elapsed_ms: float,
    min_tracking_ms: float,
) -> VerificationLevel:
    """Level the current state supports, ignoring any level reached earlier."""
    if confidence >= VERIFIED_MIN_CONFIDENCE and flag_count == 0 and elapsed_ms >= min_tracking_ms:
        return VerificationLevel.VERIFIED
    if confidence >= ENHANCED_MIN_CONFIDENCE and flag_count <= ENHANCED_MAX_FLAGS:
        return VerificationLevel.ENHANCED
    if confidence >= BASIC_MIN_CONFIDENCE:
        return VerificationLevel.BASIC
    return VerificationLevel.NONE


def advance_level(current: VerificationLevel, derived: VerificationLevel) -> VerificationLevel:
    """Higher of the two; a level once reached is never downgraded here."""
    return derived if derived.rank > current.rank else current
