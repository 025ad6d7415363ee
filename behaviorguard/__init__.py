"""
BehaviorGuard: behavioral human-vs-automation classification for web forms.

Collects pointer, touch, click, keyboard and timing observations for one
form session, scores each channel, fuses them into a human-likelihood score,
raises explainable anomaly flags and makes the final allow/reject decision
at submission. Pure in-memory; the host UI layer forwards events and
renders the outcome.
"""

from behaviorguard.analysis_engine.anomaly import AnomalyFlag, AnomalyType
from behaviorguard.analysis_engine.models import ChannelScores, Classification
from behaviorguard.capture.events import EventKind, InteractionEvent, parse_event
from behaviorguard.config.settings import ChannelWeights, EngineConfig, get_settings
from behaviorguard.core.exceptions import BehaviorGuardError, ConfigurationError
from behaviorguard.environment.probe import EnvironmentProbe, StaticEnvironmentProbe, WindowGeometry
from behaviorguard.session.tracker import BehaviorEngine, EngineHooks
from behaviorguard.verification.gate import VerificationDecision
from behaviorguard.verification.levels import VerificationLevel
from behaviorguard.verification.token import decode_token

__version__ = "0.1.0"

__all__ = [
    "AnomalyFlag",
    "AnomalyType",
    "BehaviorEngine",
    "BehaviorGuardError",
    "ChannelScores",
    "ChannelWeights",
    "Classification",
    "ConfigurationError",
    "EngineConfig",
    "EngineHooks",
    "EnvironmentProbe",
    "EventKind",
    "InteractionEvent",
    "StaticEnvironmentProbe",
    "VerificationDecision",
    "VerificationLevel",
    "WindowGeometry",
    "decode_token",
    "get_settings",
    "parse_event",
]
