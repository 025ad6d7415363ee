"""
Pytest fixtures for BehaviorGuard tests. A fake millisecond clock drives the
engine so sessions are deterministic; no timer thread unless a test asks for one.
"""

from __future__ import annotations

import pytest

T0 = 1_700_000_000_000.0


class FakeClock:
    """Manually advanced clock in epoch milliseconds."""

    def __init__(self, start: float = T0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Keep BEHAVIORGUARD_* variables from the developer shell out of config tests."""
    import os

    for name in list(os.environ):
        if name.startswith("BEHAVIORGUARD_") and name not in ("BEHAVIORGUARD_LOG_LEVEL", "BEHAVIORGUARD_LOG_FORMAT"):
            monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_engine(clock):
    """Factory: engine on the fake clock, started without a background timer."""
    from behaviorguard import BehaviorEngine, EngineConfig

    engines = []

    def _make(config=None, *, hooks=None, probe=None, start=True):
        engine = BehaviorEngine(config or EngineConfig(), hooks=hooks, probe=probe, clock=clock)
        if start:
            engine.start(background=False)
        engines.append(engine)
        return engine

    yield _make
    for engine in engines:
        engine.stop()


def staircase_path(engine, t_start: float, count: int = 50) -> float:
    """
    Feed an irregular, human-like pointer path: unit steps alternating right
    and down, alternating 10 ms and 30 ms apart. Returns the last timestamp.
    """
    x, y, t = 100.0, 100.0, t_start
    engine.observe("pointer-move", {"x": x, "y": y}, timestamp=t)
    for i in range(1, count):
        if i % 2:
            x += 1
        else:
            y += 1
        t += 10 if i % 2 else 30
        engine.observe("pointer-move", {"x": x, "y": y}, timestamp=t)
    return t


def human_typing(engine, t_start: float, count: int = 12) -> float:
    """Key-down/key-up pairs, 60 ms held, gaps cycling 80/400/600 ms. Returns the last timestamp."""
    gaps = (80, 400, 600)
    t = t_start
    for i in range(count):
        engine.observe("key-down", {}, timestamp=t)
        engine.observe("key-up", {}, timestamp=t + 60)
        t += 60 + gaps[i % len(gaps)]
    return t


def run_human_session(engine, clock) -> None:
    """Pointer at ~1 s, typing from ~4 s; leaves the clock at 12 s after start."""
    t0 = engine.session.start
    staircase_path(engine, t0 + 1000)
    human_typing(engine, t0 + 4000)
    clock.now = t0 + 12_000
