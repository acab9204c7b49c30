"""Per-frame stage timing for the intent pipeline.

The pipeline opens each frame with :meth:`StageTimer.begin_frame`, wraps its
stages in :meth:`StageTimer.stage` and closes the frame with
:meth:`StageTimer.end_frame`. The resulting :class:`FrameTiming` feeds the
per-stage counters in :class:`~gesture_pilot.metrics.MetricsCollector`; a
rolling window of them backs the ``stages`` block of ``/api/status``.
"""

from __future__ import annotations

import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Iterable, Iterator, Optional

STAGES = (
    "selection",
    "smoothing",
    "classification",
    "debounce",
    "mode",
    "pointer",
    "dispatch",
)


@dataclass
class FrameTiming:
    """Milliseconds spent in each stage of one frame; skipped stages are absent."""
    stages: dict[str, float] = field(default_factory=dict)

    @property
    def total_ms(self) -> float:
        return sum(self.stages.values())

    @property
    def slowest(self) -> Optional[str]:
        if not self.stages:
            return None
        return max(self.stages, key=self.stages.get)


class StageTimer:
    """Times the stages of the frame in flight.

    Stages run outside ``begin_frame``/``end_frame`` (or while disabled) are
    not recorded.
    """

    def __init__(self, window: int = 120, enabled: bool = True):
        self.enabled = enabled
        self._frames: deque[FrameTiming] = deque(maxlen=window)
        self._current: Optional[FrameTiming] = None

    def begin_frame(self):
        self._current = FrameTiming() if self.enabled else None

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        current = self._current
        if current is None:
            yield
            return

        t0 = time.perf_counter()
        try:
            yield
        finally:
            elapsed_ms = (time.perf_counter() - t0) * 1000.0
            current.stages[name] = current.stages.get(name, 0.0) + elapsed_ms

    def end_frame(self) -> Optional[FrameTiming]:
        timing, self._current = self._current, None
        if timing is not None:
            self._frames.append(timing)
        return timing

    @property
    def last(self) -> Optional[FrameTiming]:
        return self._frames[-1] if self._frames else None

    def summary(self) -> dict[str, dict]:
        """Per-stage figures over the window.

        ``avg_ms`` and ``max_ms`` cover the frames that ran the stage,
        ``frames`` counts them, and ``share`` is the stage's fraction of all
        timed work in the window.
        """
        totals: dict[str, float] = {}
        peaks: dict[str, float] = {}
        counts: dict[str, int] = {}
        for frame in self._frames:
            for name, ms in frame.stages.items():
                totals[name] = totals.get(name, 0.0) + ms
                peaks[name] = max(peaks.get(name, 0.0), ms)
                counts[name] = counts.get(name, 0) + 1

        grand_total = sum(totals.values())
        return {
            name: {
                "avg_ms": round(totals[name] / counts[name], 3),
                "max_ms": round(peaks[name], 3),
                "share": round(totals[name] / grand_total, 3) if grand_total > 0 else 0.0,
                "frames": counts[name],
            }
            for name in _in_pipeline_order(totals)
        }

    def reset(self):
        self._frames.clear()
        self._current = None


def _in_pipeline_order(names: Iterable[str]) -> list[str]:
    names = set(names)
    known = [s for s in STAGES if s in names]
    return known + sorted(names - set(STAGES))
