"""Derived behavioral signals from raw interaction streams."""

from __future__ import annotations

import logging
import math
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Any, Hashable

from .events import EventRecord, EventTag


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ClickPoint:
    """A click position (viewport px) and its time in epoch milliseconds."""
    x: float
    y: float
    t: int


@dataclass(frozen=True, slots=True)
class Viewport:
    width: int = 0
    height: int = 0


@dataclass
class RageClickDetector:
    """
    Spatio-temporal click clustering.

    Keeps the clicks of the last `threshold_ms`. When at least
    `required_count` of them lie within `radius_px` of the newest click,
    a rage-click record is emitted and the window is cleared, so one
    burst yields one signal.
    """
    threshold_ms: int = 600
    required_count: int = 3
    radius_px: float = 25.0

    viewport: Viewport = field(default_factory=Viewport)

    _window: deque[ClickPoint] = field(default_factory=deque, init=False)
    _signals: int = field(default=0, init=False)

    def on(self, click: ClickPoint, context: dict[str, Any] | None = None) -> EventRecord | None:
        now = click.t
        self._window.append(click)
        while self._window and now - self._window[0].t > self.threshold_ms:
            self._window.popleft()

        center = self._window[-1]
        nearby = [
            c for c in self._window
            if math.hypot(c.x - center.x, c.y - center.y) <= self.radius_px
        ]
        if len(nearby) < self.required_count:
            return None

        self._window.clear()
        self._signals += 1
        logger.debug(f"Rage click at ({center.x}, {center.y}) x{len(nearby)}")
        return EventRecord.create(
            EventTag.RAGE_CLICK,
            {
                **(context or {}),
                "center": {"x": center.x, "y": center.y},
                "count": len(nearby),
                "windowSize": {"w": self.viewport.width, "h": self.viewport.height},
            },
            action_type="rage_click",
        )

    def reset(self) -> None:
        self._window.clear()

    @property
    def window_size(self) -> int:
        return len(self._window)

    @property
    def signals(self) -> int:
        return self._signals


@dataclass
class _CadenceState:
    last: int
    intervals: deque[int]
    recorded: int = 0


@dataclass
class TypingCadenceTracker:
    """
    Rolling per-subject inter-keystroke statistics.

    The first keystroke on a subject only starts the clock. Each later one
    records the gap since the previous keystroke into a window of the last
    `window` gaps; every `report_every` recorded gaps a cadence record is
    emitted with the rounded mean of the window.

    Subjects beyond `max_subjects` are evicted least recently used
    (None disables eviction).
    """
    window: int = 40
    report_every: int = 10
    max_subjects: int | None = 1024

    _subjects: OrderedDict[Hashable, _CadenceState] = field(default_factory=OrderedDict, init=False)

    def on(
        self,
        subject: Hashable,
        timestamp_ms: int,
        target: dict[str, Any] | None = None,
        context: dict[str, Any] | None = None,
    ) -> EventRecord | None:
        state = self._subjects.get(subject)
        if state is None:
            self._subjects[subject] = _CadenceState(
                last=timestamp_ms,
                intervals=deque(maxlen=self.window),
            )
            self._evict()
            return None

        self._subjects.move_to_end(subject)
        state.intervals.append(timestamp_ms - state.last)
        state.last = timestamp_ms
        state.recorded += 1

        if state.recorded % self.report_every != 0:
            return None

        mean = sum(state.intervals) / len(state.intervals)
        return EventRecord.create(
            EventTag.TYPING_SPEED,
            {
                **(context or {}),
                "target": target or {},
                "avgMsBetweenKeys": round(mean),
                "sampleCount": len(state.intervals),
            },
            action_type="typing_speed",
        )

    def forget(self, subject: Hashable) -> bool:
        return self._subjects.pop(subject, None) is not None

    def _evict(self) -> None:
        if self.max_subjects is None:
            return
        while len(self._subjects) > self.max_subjects:
            evicted, _ = self._subjects.popitem(last=False)
            logger.debug(f"Evicted typing cadence state for {evicted!r}")

    @property
    def subjects(self) -> int:
        return len(self._subjects)
