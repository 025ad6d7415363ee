"""
Behavioral feature extraction from raw interaction observations.

One accumulator per channel (pointer, touch, click, keyboard, timing). Each
keeps bounded ring buffers of its most recent observations and updates its
running aggregates incrementally on push; features() derives statistics
from the buffered window only and never mutates state. No scoring logic;
output feeds the channel scorers and the analysis snapshot.
"""

from __future__ import annotations

import math
from collections import deque
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

import numpy as np

from behaviorguard.capture.events import EventKind, Point, TouchContact

DEFAULT_CAPACITY = 1000
DEFAULT_MIN_POINTER_SAMPLES = 5
# Linearity needs a heading change, so at least three points
MIN_LINEARITY_POINTS = 3
DEFAULT_NATURAL_PAUSE_MS = 500.0
DEFAULT_CONSISTENCY_TOLERANCE_MS = 10.0


def variance(values: Iterable[float]) -> float:
    """Population variance; 0.0 for an empty sequence."""
    arr = np.fromiter(values, dtype=np.float64)
    if arr.size == 0:
        return 0.0
    return float(np.var(arr))


def _mean(values: Iterable[float]) -> float:
    arr = np.fromiter(values, dtype=np.float64)
    if arr.size == 0:
        return 0.0
    return float(np.mean(arr))


def _heading_deviation(p1: Point, p2: Point, p3: Point) -> float:
    """Absolute change of heading between p1->p2 and p2->p3, in [0, pi]."""
    a1 = math.atan2(p2.y - p1.y, p2.x - p1.x)
    a2 = math.atan2(p3.y - p2.y, p3.x - p2.x)
    d = abs(a2 - a1)
    if d > math.pi:
        d = 2 * math.pi - d
    return d


@dataclass
class PointerFeatures:
    """Pointer movement statistics over the buffered window."""

    sample_count: int
    """Points currently buffered (capped at capacity)."""
    total_count: int
    """Pointer-move observations over the whole session."""
    total_distance: float
    max_velocity: float
    avg_velocity: float
    velocity_variance: float
    acceleration_variance: float
    linearity: float
    """1.0 = perfectly straight; 0 when not computable."""
    sufficient: bool
    """False below the minimum sample size; derived statistics are then neutral."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "sample_count": self.sample_count,
            "total_count": self.total_count,
            "total_distance": self.total_distance,
            "max_velocity": self.max_velocity,
            "avg_velocity": self.avg_velocity,
            "velocity_variance": self.velocity_variance,
            "acceleration_variance": self.acceleration_variance,
            "linearity": self.linearity,
            "sufficient": self.sufficient,
        }


class PointerAccumulator:
    """
    Rolling pointer path: velocity (px/s), acceleration (px/s^2), linearity.

    Linearity is 1 - sum(heading deviation) / sum(step distance) over every
    consecutive triplet in the window; the two sums are kept as running
    totals and the evicted triplet is subtracted when the window slides.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        min_samples: int = DEFAULT_MIN_POINTER_SAMPLES,
    ) -> None:
        self.capacity = capacity
        self.min_samples = min_samples
        self._points: deque[Point] = deque(maxlen=capacity)
        self._velocities: deque[float] = deque(maxlen=capacity)
        self._accelerations: deque[float] = deque(maxlen=capacity)
        # One (deviation, distance) entry per triplet; a full window of points holds capacity - 2
        self._triplets: deque[tuple[float, float]] = deque(maxlen=max(1, capacity - 2))
        self._deviation_sum = 0.0
        self._triplet_distance_sum = 0.0
        self._last_velocity: float | None = None
        self.total_count = 0
        self.total_distance = 0.0
        self.max_velocity = 0.0

    def __len__(self) -> int:
        return len(self._points)

    def push(self, point: Point) -> None:
        prev = self._points[-1] if self._points else None
        before_prev = self._points[-2] if len(self._points) > 1 else None
        self.total_count += 1

        if prev is not None:
            distance = math.hypot(point.x - prev.x, point.y - prev.y)
            self.total_distance += distance
            elapsed = max(0.0, point.timestamp - prev.timestamp) / 1000.0
            if elapsed > 0:
                velocity = distance / elapsed
                self._velocities.append(velocity)
                if velocity > self.max_velocity:
                    self.max_velocity = velocity
                if self._last_velocity is not None:
                    self._accelerations.append((velocity - self._last_velocity) / elapsed)
                self._last_velocity = velocity

            if before_prev is not None:
                self._push_triplet(before_prev, prev, point, distance)

        self._points.append(point)

    def _push_triplet(self, p1: Point, p2: Point, p3: Point, distance: float) -> None:
        first_leg = math.hypot(p2.x - p1.x, p2.y - p1.y)
        # A zero-length leg has no heading
        deviation = _heading_deviation(p1, p2, p3) if first_leg > 0 and distance > 0 else 0.0
        if len(self._triplets) == self._triplets.maxlen:
            old_dev, old_dist = self._triplets[0]
            self._deviation_sum = max(0.0, self._deviation_sum - old_dev)
            self._triplet_distance_sum = max(0.0, self._triplet_distance_sum - old_dist)
        self._triplets.append((deviation, distance))
        self._deviation_sum += deviation
        self._triplet_distance_sum += distance

    def linearity(self) -> float:
        if len(self._points) < MIN_LINEARITY_POINTS or self._triplet_distance_sum <= 0:
            return 0.0
        value = 1.0 - self._deviation_sum / self._triplet_distance_sum
        return max(0.0, min(1.0, value))

    def features(self) -> PointerFeatures:
        n = len(self._points)
        sufficient = n >= self.min_samples
        return PointerFeatures(
            sample_count=n,
            total_count=self.total_count,
            total_distance=self.total_distance,
            max_velocity=self.max_velocity,
            avg_velocity=_mean(self._velocities) if sufficient else 0.0,
            velocity_variance=variance(self._velocities) if sufficient else 0.0,
            acceleration_variance=variance(self._accelerations) if sufficient else 0.0,
            linearity=self.linearity() if sufficient else 0.0,
            sufficient=sufficient,
        )


@dataclass(frozen=True)
class TouchSnapshot:
    phase: str
    """start | move | end"""
    contacts: tuple[TouchContact, ...]
    timestamp: float


@dataclass
class TouchFeatures:
    event_count: int
    """Touch observations over the whole session (start, move and end)."""
    sample_count: int
    multi_touch: bool
    swipe_count: int
    avg_swipe_velocity: float
    swipe_velocity_variance: float
    total_swipe_distance: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "event_count": self.event_count,
            "sample_count": self.sample_count,
            "multi_touch": self.multi_touch,
            "swipe_count": self.swipe_count,
            "avg_swipe_velocity": self.avg_swipe_velocity,
            "swipe_velocity_variance": self.swipe_velocity_variance,
            "total_swipe_distance": self.total_swipe_distance,
        }


class TouchAccumulator:
    """Touch start/move/end snapshots; swipes between consecutive move samples of a gesture."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self.capacity = capacity
        self._snapshots: deque[TouchSnapshot] = deque(maxlen=capacity)
        self._swipe_velocities: deque[float] = deque(maxlen=capacity)
        self._last_move: TouchSnapshot | None = None
        self.event_count = 0
        self.swipe_count = 0
        self.total_swipe_distance = 0.0
        self.multi_touch = False

    def __len__(self) -> int:
        return len(self._snapshots)

    def push(self, phase: EventKind, contacts: list[TouchContact], timestamp: float) -> None:
        if phase == EventKind.TOUCH_START:
            name = "start"
        elif phase == EventKind.TOUCH_MOVE:
            name = "move"
        else:
            name = "end"
            contacts = []
        snapshot = TouchSnapshot(phase=name, contacts=tuple(contacts), timestamp=timestamp)
        self._snapshots.append(snapshot)
        self.event_count += 1
        if len(contacts) > 1:
            self.multi_touch = True

        if name == "move":
            self._record_swipe(snapshot)
            self._last_move = snapshot
        else:
            self._last_move = None

    def _record_swipe(self, current: TouchSnapshot) -> None:
        prev = self._last_move
        if prev is None or not prev.contacts or not current.contacts:
            return
        a, b = prev.contacts[0], current.contacts[0]
        distance = math.hypot(b.x - a.x, b.y - a.y)
        elapsed = max(0.0, current.timestamp - prev.timestamp) / 1000.0
        self.total_swipe_distance += distance
        if elapsed <= 0:
            return
        self._swipe_velocities.append(distance / elapsed)
        self.swipe_count += 1

    def features(self) -> TouchFeatures:
        return TouchFeatures(
            event_count=self.event_count,
            sample_count=len(self._snapshots),
            multi_touch=self.multi_touch,
            swipe_count=self.swipe_count,
            avg_swipe_velocity=_mean(self._swipe_velocities),
            swipe_velocity_variance=variance(self._swipe_velocities),
            total_swipe_distance=self.total_swipe_distance,
        )


@dataclass
class ClickFeatures:
    click_count: int
    interval_count: int
    mean_interval: float
    interval_variance: float
    consistency_ratio: float
    """Fraction of intervals within tolerance of the mean; high means mechanical."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "click_count": self.click_count,
            "interval_count": self.interval_count,
            "mean_interval": self.mean_interval,
            "interval_variance": self.interval_variance,
            "consistency_ratio": self.consistency_ratio,
        }


class ClickAccumulator:
    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        tolerance_ms: float = DEFAULT_CONSISTENCY_TOLERANCE_MS,
    ) -> None:
        self.capacity = capacity
        self.tolerance_ms = tolerance_ms
        self._timestamps: deque[float] = deque(maxlen=capacity)
        self._intervals: deque[float] = deque(maxlen=capacity)
        self._latest: float | None = None
        self.click_count = 0

    def __len__(self) -> int:
        return len(self._timestamps)

    def push(self, timestamp: float) -> None:
        if self._latest is not None:
            self._intervals.append(max(0.0, timestamp - self._latest))
            self._latest = max(self._latest, timestamp)
        else:
            self._latest = timestamp
        self._timestamps.append(timestamp)
        self.click_count += 1

    def features(self) -> ClickFeatures:
        n = len(self._intervals)
        if n == 0:
            return ClickFeatures(
                click_count=self.click_count,
                interval_count=0,
                mean_interval=0.0,
                interval_variance=0.0,
                consistency_ratio=0.0,
            )
        mean = _mean(self._intervals)
        consistent = sum(1 for i in self._intervals if abs(i - mean) < self.tolerance_ms)
        return ClickFeatures(
            click_count=self.click_count,
            interval_count=n,
            mean_interval=mean,
            interval_variance=variance(self._intervals),
            consistency_ratio=consistent / n,
        )


@dataclass
class KeyboardFeatures:
    keypress_count: int
    """Key-down plus key-up observations over the whole session."""
    keydown_count: int
    interval_count: int
    mean_interval: float
    interval_variance: float
    natural_pauses: int
    natural_pause_ratio: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "keypress_count": self.keypress_count,
            "keydown_count": self.keydown_count,
            "interval_count": self.interval_count,
            "mean_interval": self.mean_interval,
            "interval_variance": self.interval_variance,
            "natural_pauses": self.natural_pauses,
            "natural_pause_ratio": self.natural_pause_ratio,
        }


class KeyboardAccumulator:
    """
    Typing rhythm: the interval is the gap from a key-up to the next key-down,
    so held keys and overlapping presses do not produce intervals.
    """

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        natural_pause_ms: float = DEFAULT_NATURAL_PAUSE_MS,
    ) -> None:
        self.capacity = capacity
        self.natural_pause_ms = natural_pause_ms
        self._events: deque[tuple[str, float]] = deque(maxlen=capacity)
        self._intervals: deque[float] = deque(maxlen=capacity)
        self.keypress_count = 0
        self.keydown_count = 0

    def __len__(self) -> int:
        return len(self._events)

    def push(self, kind: EventKind, timestamp: float) -> None:
        direction = "down" if kind == EventKind.KEY_DOWN else "up"
        if direction == "down":
            self.keydown_count += 1
            if self._events and self._events[-1][0] == "up":
                self._intervals.append(max(0.0, timestamp - self._events[-1][1]))
        self._events.append((direction, timestamp))
        self.keypress_count += 1

    def features(self) -> KeyboardFeatures:
        n = len(self._intervals)
        pauses = sum(1 for i in self._intervals if i > self.natural_pause_ms)
        return KeyboardFeatures(
            keypress_count=self.keypress_count,
            keydown_count=self.keydown_count,
            interval_count=n,
            mean_interval=_mean(self._intervals),
            interval_variance=variance(self._intervals),
            natural_pauses=pauses,
            natural_pause_ratio=pauses / n if n else 0.0,
        )


@dataclass
class TimingFeatures:
    session_start: float
    first_interaction: float | None
    first_interaction_delay: float | None
    """Milliseconds from session start to the first qualifying interaction."""
    interaction_delays: dict[str, float] = field(default_factory=dict)
    """First-occurrence delay per interaction kind."""
    delay_variance: float = 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "session_start": self.session_start,
            "first_interaction": self.first_interaction,
            "first_interaction_delay": self.first_interaction_delay,
            "interaction_delays": dict(self.interaction_delays),
            "delay_variance": self.delay_variance,
        }


class TimingAccumulator:
    """Delay before the first interaction and before the first use of each interaction kind."""

    def __init__(self, session_start: float) -> None:
        self.session_start = session_start
        self.first_interaction: float | None = None
        # Bounded by the number of event kinds
        self._delays: dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._delays)

    def push(self, kind: EventKind, timestamp: float) -> bool:
        """Record an interaction; True when it was the first of the session."""
        delay = max(0.0, timestamp - self.session_start)
        if kind.value not in self._delays:
            self._delays[kind.value] = delay
        if self.first_interaction is None:
            self.first_interaction = timestamp
            return True
        return False

    def features(self) -> TimingFeatures:
        delay = None
        if self.first_interaction is not None:
            delay = max(0.0, self.first_interaction - self.session_start)
        delays = dict(self._delays)
        return TimingFeatures(
            session_start=self.session_start,
            first_interaction=self.first_interaction,
            first_interaction_delay=delay,
            interaction_delays=delays,
            delay_variance=variance(delays.values()) if len(delays) > 1 else 0.0,
        )
