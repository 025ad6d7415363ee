"""
Configuration for the behavior engine.

Validates thresholds and weights at construction and optionally loads
overrides from the environment. Exposes a single source of truth for every
tunable constant.
"""

from behaviorguard.config.settings import ChannelWeights, EngineConfig, get_settings  # noqa: F401

__all__ = ["ChannelWeights", "EngineConfig", "get_settings"]
