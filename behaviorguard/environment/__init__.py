# Host environment probe: automation markers, user agent, window geometry.

from behaviorguard.environment.probe import (
    MARKER_PHANTOM,
    MARKER_WEBDRIVER,
    EnvironmentProbe,
    StaticEnvironmentProbe,
    WindowGeometry,
)

__all__ = [
    "MARKER_PHANTOM",
    "MARKER_WEBDRIVER",
    "EnvironmentProbe",
    "StaticEnvironmentProbe",
    "WindowGeometry",
]
