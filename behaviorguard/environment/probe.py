"""
Host environment probe.

Automation markers, user agent, languages and window geometry only exist in
a browser host. The engine reads them through this protocol so scoring stays
host-agnostic: a browser bridge forwards what the page reports, tests use
StaticEnvironmentProbe.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

MARKER_WEBDRIVER = "webdriver"
MARKER_PHANTOM = "phantom"


@dataclass(frozen=True)
class WindowGeometry:
    inner_width: float
    inner_height: float
    outer_width: float
    outer_height: float

    @property
    def viewport_ratio(self) -> float | None:
        if self.inner_height <= 0:
            return None
        return self.inner_width / self.inner_height


@runtime_checkable
class EnvironmentProbe(Protocol):
    def automation_markers(self) -> frozenset[str]:
        """Markers present in the host, e.g. {"webdriver"} when navigator.webdriver is set."""
        ...

    def user_agent(self) -> str | None: ...

    def languages(self) -> tuple[str, ...]: ...

    def window_geometry(self) -> WindowGeometry | None:
        """Current window geometry; None when the host cannot report it."""
        ...


@dataclass
class StaticEnvironmentProbe:
    """Probe over fixed values; geometry may be updated between ticks."""

    markers: frozenset[str] = field(default_factory=frozenset)
    agent: str | None = "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 Chrome/120.0 Safari/537.36"
    langs: tuple[str, ...] = ("en-US", "en")
    geometry: WindowGeometry | None = field(
        default_factory=lambda: WindowGeometry(
            inner_width=1280, inner_height=720, outer_width=1280, outer_height=800
        )
    )

    def automation_markers(self) -> frozenset[str]:
        return frozenset(self.markers)

    def user_agent(self) -> str | None:
        return self.agent

    def languages(self) -> tuple[str, ...]:
        return tuple(self.langs)

    def window_geometry(self) -> WindowGeometry | None:
        return self.geometry
