"""
Pytest tests for per-channel feature accumulators (pointer, touch, click, keyboard, timing).
"""

from __future__ import annotations

import math

import pytest

from behaviorguard.analysis_engine.features import (
    ClickAccumulator,
    KeyboardAccumulator,
    PointerAccumulator,
    TimingAccumulator,
    TouchAccumulator,
    variance,
)
from behaviorguard.capture.events import EventKind, Point, TouchContact


def test_variance_is_population_variance():
    assert variance([]) == 0.0
    assert variance([5.0]) == 0.0
    assert variance([1.0, 3.0]) == pytest.approx(1.0)
    assert variance([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(4.0)


# --- Pointer ---


def test_pointer_insufficient_samples_are_neutral():
    """Below min_samples: statistics are zero and sufficient is False."""
    acc = PointerAccumulator(min_samples=5)
    for i in range(4):
        acc.push(Point(i * 10.0, 0.0, i * 10.0))
    f = acc.features()
    assert f.sufficient is False
    assert f.sample_count == 4
    assert f.velocity_variance == 0.0
    assert f.linearity == 0.0


def test_pointer_straight_constant_speed():
    """Straight line at constant speed: linearity 1, zero velocity variance."""
    acc = PointerAccumulator()
    for i in range(20):
        acc.push(Point(i * 10.0, 50.0, 1000.0 + i * 10.0))
    f = acc.features()
    assert f.sufficient is True
    assert f.linearity == pytest.approx(1.0)
    assert f.velocity_variance == pytest.approx(0.0)
    assert f.acceleration_variance == pytest.approx(0.0)
    assert f.avg_velocity == pytest.approx(1000.0)
    assert f.max_velocity == pytest.approx(1000.0)
    assert f.total_distance == pytest.approx(190.0)


def test_pointer_right_angle_turns_clamp_linearity_to_zero():
    acc = PointerAccumulator()
    x = y = 0.0
    for i in range(10):
        if i % 2:
            x += 1
        else:
            y += 1
        acc.push(Point(x, y, i * 20.0))
    assert acc.features().linearity == 0.0


def test_pointer_zero_elapsed_adds_distance_not_velocity():
    """Same-timestamp samples contribute distance but no velocity sample."""
    acc = PointerAccumulator(min_samples=2)
    acc.push(Point(0.0, 0.0, 100.0))
    acc.push(Point(3.0, 4.0, 100.0))
    f = acc.features()
    assert f.total_distance == pytest.approx(5.0)
    assert f.avg_velocity == 0.0
    assert f.max_velocity == 0.0


def test_pointer_out_of_order_timestamps_never_negative():
    acc = PointerAccumulator(min_samples=2)
    acc.push(Point(0.0, 0.0, 500.0))
    acc.push(Point(10.0, 0.0, 400.0))
    acc.push(Point(20.0, 0.0, 450.0))
    f = acc.features()
    assert f.max_velocity >= 0.0
    assert f.avg_velocity >= 0.0
    assert not math.isnan(f.velocity_variance)


def test_pointer_buffer_bounded_and_linearity_tracks_window():
    """Ring buffer keeps capacity points; running linearity follows the window, not history."""
    acc = PointerAccumulator(capacity=10, min_samples=3)
    # Zig-zag first, then a long straight segment that fills the window
    x = y = 0.0
    for i in range(10):
        if i % 2:
            x += 1
        else:
            y += 1
        acc.push(Point(x, y, i * 10.0))
    assert acc.features().linearity == 0.0
    for i in range(30):
        x += 5
        acc.push(Point(x, y, 100.0 + i * 10.0))
    f = acc.features()
    assert len(acc) == 10
    assert f.sample_count == 10
    assert f.total_count == 40
    assert f.linearity == pytest.approx(1.0)


# --- Touch ---


def test_touch_multi_touch_and_swipes():
    acc = TouchAccumulator()
    acc.push(EventKind.TOUCH_START, [TouchContact(1, 0.0, 0.0)], 0.0)
    acc.push(EventKind.TOUCH_MOVE, [TouchContact(1, 10.0, 0.0)], 10.0)
    acc.push(EventKind.TOUCH_MOVE, [TouchContact(1, 30.0, 0.0)], 20.0)
    acc.push(EventKind.TOUCH_MOVE, [TouchContact(1, 35.0, 0.0), TouchContact(2, 80.0, 80.0)], 30.0)
    acc.push(EventKind.TOUCH_END, [], 40.0)
    f = acc.features()
    assert f.event_count == 5
    assert f.multi_touch is True
    # Swipes between consecutive moves: 20 px in 10 ms, 5 px in 10 ms
    assert f.swipe_count == 2
    assert f.total_swipe_distance == pytest.approx(25.0)
    assert f.avg_swipe_velocity == pytest.approx(1250.0)
    assert f.swipe_velocity_variance > 0


def test_touch_swipes_reset_between_gestures():
    """The first move of a new gesture does not pair with the last move of the previous one."""
    acc = TouchAccumulator()
    acc.push(EventKind.TOUCH_MOVE, [TouchContact(1, 0.0, 0.0)], 0.0)
    acc.push(EventKind.TOUCH_END, [], 5.0)
    acc.push(EventKind.TOUCH_START, [TouchContact(1, 500.0, 500.0)], 10.0)
    acc.push(EventKind.TOUCH_MOVE, [TouchContact(1, 500.0, 510.0)], 20.0)
    f = acc.features()
    assert f.swipe_count == 0
    assert f.multi_touch is False


# --- Click ---


def test_click_intervals_and_consistency():
    acc = ClickAccumulator(tolerance_ms=10)
    for t in (0, 200, 400, 600, 800):
        acc.push(float(t))
    f = acc.features()
    assert f.click_count == 5
    assert f.interval_count == 4
    assert f.mean_interval == pytest.approx(200.0)
    assert f.interval_variance == pytest.approx(0.0)
    assert f.consistency_ratio == pytest.approx(1.0)


def test_click_single_click_has_no_intervals():
    acc = ClickAccumulator()
    acc.push(10.0)
    f = acc.features()
    assert f.interval_count == 0
    assert f.consistency_ratio == 0.0


def test_click_out_of_order_interval_clamped():
    acc = ClickAccumulator()
    acc.push(1000.0)
    acc.push(900.0)
    acc.push(1300.0)
    f = acc.features()
    assert f.interval_count == 2
    # 900 -> clamped 0; 1300 measured from the latest seen (1000)
    assert f.mean_interval == pytest.approx(150.0)


# --- Keyboard ---


def test_keyboard_interval_from_keyup_to_next_keydown():
    acc = KeyboardAccumulator(natural_pause_ms=500)
    acc.push(EventKind.KEY_DOWN, 0.0)
    acc.push(EventKind.KEY_UP, 50.0)
    acc.push(EventKind.KEY_DOWN, 150.0)
    acc.push(EventKind.KEY_UP, 200.0)
    acc.push(EventKind.KEY_DOWN, 900.0)
    f = acc.features()
    assert f.keypress_count == 5
    assert f.keydown_count == 3
    assert f.interval_count == 2
    assert f.mean_interval == pytest.approx(400.0)
    assert f.natural_pauses == 1
    assert f.natural_pause_ratio == pytest.approx(0.5)


def test_keyboard_overlapping_keydowns_produce_no_interval():
    acc = KeyboardAccumulator()
    acc.push(EventKind.KEY_DOWN, 0.0)
    acc.push(EventKind.KEY_DOWN, 30.0)
    acc.push(EventKind.KEY_UP, 60.0)
    f = acc.features()
    assert f.interval_count == 0
    assert f.natural_pause_ratio == 0.0


# --- Timing ---


def test_timing_first_interaction_and_per_kind_delays():
    acc = TimingAccumulator(session_start=1000.0)
    assert acc.features().first_interaction_delay is None
    assert acc.push(EventKind.POINTER_MOVE, 1800.0) is True
    assert acc.push(EventKind.POINTER_MOVE, 1900.0) is False
    assert acc.push(EventKind.KEY_DOWN, 3800.0) is False
    f = acc.features()
    assert f.first_interaction == 1800.0
    assert f.first_interaction_delay == pytest.approx(800.0)
    assert f.interaction_delays == {"pointer-move": 800.0, "key-down": 2800.0}
    assert f.delay_variance == pytest.approx(1_000_000.0)


def test_timing_single_delay_has_no_variance():
    acc = TimingAccumulator(session_start=0.0)
    acc.push(EventKind.CLICK, 700.0)
    assert acc.features().delay_variance == 0.0
