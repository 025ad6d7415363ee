"""
Pytest tests for anomaly flags: penalties, flag log, confidence, environment checks and event rules.
"""

from __future__ import annotations

import pytest

from behaviorguard.analysis_engine.anomaly import (
    DEFAULT_PENALTY,
    AnomalyType,
    DevToolsMonitor,
    FlagLog,
    check_fast_clicking,
    check_fast_typing,
    check_uniform_typing,
    compute_confidence,
    detect_environment_anomalies,
    make_flag,
    penalty_for,
)
from behaviorguard.analysis_engine.models import Classification
from behaviorguard.config.settings import EngineConfig
from behaviorguard.environment.probe import StaticEnvironmentProbe, WindowGeometry


def test_penalty_table():
    assert penalty_for(AnomalyType.HONEYPOT_FILLED) == pytest.approx(-0.8)
    assert penalty_for("phantom_detected") == pytest.approx(-0.9)
    assert penalty_for(AnomalyType.FAST_CLICKING) == DEFAULT_PENALTY
    assert penalty_for("something_custom") == DEFAULT_PENALTY


def test_make_flag_carries_type_and_penalty():
    flag = make_flag(AnomalyType.UNIFORM_TYPING, 123.0, {"interval": 20})
    assert flag.type == "uniform_typing"
    assert flag.penalty == pytest.approx(-0.4)
    assert flag.to_dict() == {
        "type": "uniform_typing",
        "data": {"interval": 20},
        "timestamp": 123.0,
        "penalty": pytest.approx(-0.4),
    }


def test_flag_log_bounded_totals_survive_eviction():
    log = FlagLog(capacity=3)
    for i in range(5):
        log.append(make_flag(AnomalyType.PASTE_DETECTED, float(i)))
    assert len(log) == 3
    assert log.total == 5
    assert log.penalty_total == pytest.approx(-0.5)
    assert [f.timestamp for f in log] == [2.0, 3.0, 4.0]
    assert log.count("paste_detected") == 3
    log.clear()
    assert len(log) == 0
    assert log.total == 0
    assert log.penalty_total == 0.0


def test_confidence_combines_score_bonus_and_penalties():
    assert compute_confidence(0.5, Classification.UNCERTAIN, 0.0) == pytest.approx(0.5)
    assert compute_confidence(0.75, Classification.HUMAN, 0.0) == pytest.approx(0.95)
    assert compute_confidence(0.75, Classification.HUMAN, -0.4) == pytest.approx(0.55)


def test_confidence_clamped_to_unit_interval():
    assert compute_confidence(0.9, Classification.HUMAN, 0.0) == 1.0
    assert compute_confidence(0.2, Classification.BOT, -2.5) == 0.0


# --- Environment checks ---


def test_clean_environment_raises_nothing():
    assert detect_environment_anomalies(StaticEnvironmentProbe(), EngineConfig(), 0.0) == []


def test_webdriver_and_phantom_markers():
    probe = StaticEnvironmentProbe(markers=frozenset({"webdriver", "phantom"}))
    types = [f.type for f in detect_environment_anomalies(probe, EngineConfig(), 0.0)]
    assert "webdriver_detected" in types
    assert "phantom_detected" in types


def test_automation_marker_check_can_be_disabled():
    probe = StaticEnvironmentProbe(markers=frozenset({"webdriver"}))
    flags = detect_environment_anomalies(probe, EngineConfig(check_automation_flags=False), 0.0)
    assert flags == []


@pytest.mark.parametrize("agent", ["Mozilla/5.0 HeadlessChrome/120.0", "PhantomJS/2.1", "", None, "undefined"])
def test_suspicious_user_agents(agent):
    probe = StaticEnvironmentProbe(agent=agent)
    types = [f.type for f in detect_environment_anomalies(probe, EngineConfig(), 0.0)]
    assert types == ["suspicious_user_agent"]


def test_missing_languages():
    probe = StaticEnvironmentProbe(langs=())
    types = [f.type for f in detect_environment_anomalies(probe, EngineConfig(), 0.0)]
    assert types == ["missing_languages"]


def test_unusual_viewport_ratio():
    probe = StaticEnvironmentProbe(geometry=WindowGeometry(inner_width=3000, inner_height=200, outer_width=3000, outer_height=280))
    flags = detect_environment_anomalies(probe, EngineConfig(), 0.0)
    assert [f.type for f in flags] == ["unusual_viewport_ratio"]
    assert flags[0].data["ratio"] == pytest.approx(15.0)


def test_failing_probe_only_disables_its_own_check():
    """A probe method that raises is logged and skipped; other checks still run."""

    class BrokenProbe(StaticEnvironmentProbe):
        def automation_markers(self):
            raise RuntimeError("bridge gone")

    probe = BrokenProbe(langs=())
    types = [f.type for f in detect_environment_anomalies(probe, EngineConfig(), 0.0)]
    assert types == ["missing_languages"]


def test_devtools_flags_once_per_opening():
    monitor = DevToolsMonitor(threshold_px=160)
    closed = WindowGeometry(1280, 720, 1280, 800)
    docked = WindowGeometry(900, 720, 1280, 800)
    assert monitor.check(closed, 0.0) is None
    flag = monitor.check(docked, 1.0)
    assert flag is not None and flag.type == "dev_tools_detected"
    assert monitor.check(docked, 2.0) is None
    assert monitor.check(closed, 3.0) is None
    assert monitor.check(docked, 4.0) is not None
    assert monitor.check(None, 5.0) is None


# --- Event-time rules ---


def test_fast_typing_rule():
    config = EngineConfig()
    assert check_fast_typing("email", 40.0, config, 0.0).type == "fast_typing"
    assert check_fast_typing("email", 100.0, config, 0.0) is None


def test_uniform_typing_rule_ignores_zero_interval():
    config = EngineConfig()
    assert check_uniform_typing(20.0, config, 0.0).type == "uniform_typing"
    assert check_uniform_typing(0.0, config, 0.0) is None
    assert check_uniform_typing(50.0, config, 0.0) is None


def test_fast_clicking_rule():
    config = EngineConfig(fast_click_ms=150)
    assert check_fast_clicking(120.0, config, 0.0).type == "fast_clicking"
    assert check_fast_clicking(200.0, config, 0.0) is None
