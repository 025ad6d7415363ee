# Session tracking: the per-form session record and the behavior engine.

from behaviorguard.session.session import FieldInteraction, Session
from behaviorguard.session.tracker import BehaviorEngine, EngineHooks

__all__ = ["BehaviorEngine", "EngineHooks", "FieldInteraction", "Session"]
