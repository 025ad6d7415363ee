"""
Structured logging for behaviorguard.

JSON logs with timestamp, session_id, event_type and flag details.
Use get_logger() in every engine module for aggregation-friendly output.
"""

from behaviorguard.logging.logger import bind_session, get_logger

__all__ = ["bind_session", "get_logger"]
