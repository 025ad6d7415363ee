"""
Library-level exceptions.

Only programmer mistakes raise: a misconfigured engine fails fast at
construction. Malformed events and failing callbacks never surface as
exceptions during scoring.
"""

from __future__ import annotations


class BehaviorGuardError(Exception):
    """Base class for all behaviorguard errors."""


class ConfigurationError(BehaviorGuardError, ValueError):
    """Invalid engine configuration (weights, thresholds, durations)."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        super().__init__(f"{field}: {message}")
