"""
Core utilities: shared exceptions and cross-cutting concerns used by the
capture layer, analysis engine, verification gate and session tracker.
"""

from behaviorguard.core.exceptions import BehaviorGuardError, ConfigurationError

__all__ = ["BehaviorGuardError", "ConfigurationError"]
