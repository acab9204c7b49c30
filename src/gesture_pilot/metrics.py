"""Prometheus text exposition for GesturePilot.

The format is rendered by hand; there is no client library dependency.

Tracked metrics:
- gesture_pilot_frames_total (counter)
- gesture_pilot_face_presence_rate (gauge, moving average)
- gesture_pilot_gestures_total (counter, by confirmed label)
- gesture_pilot_mode_transitions_total (counter, by target mode)
- gesture_pilot_dispatches_total (counter, by kind and outcome)
- gesture_pilot_cooldown_rejections_total (counter)
- gesture_pilot_frame_latency_seconds (histogram)
- gesture_pilot_stage_seconds_total (counter, time spent per pipeline stage)
- gesture_pilot_active_connections (gauge)
"""

from __future__ import annotations

import threading
import time
from collections import Counter


class _Histogram:
    """Cumulative-bucket histogram."""

    def __init__(self, buckets: list[float]):
        self.buckets = sorted(buckets)
        self.bucket_counts = [0] * len(self.buckets)
        self.count = 0
        self.sum = 0.0
        self._lock = threading.Lock()

    def observe(self, value: float):
        with self._lock:
            self.count += 1
            self.sum += value
            for i, b in enumerate(self.buckets):
                if value <= b:
                    self.bucket_counts[i] += 1
                    break

    def render(self, name: str, help_text: str) -> str:
        lines = [
            f"# HELP {name} {help_text}",
            f"# TYPE {name} histogram",
        ]
        with self._lock:
            cumulative = 0
            for i, b in enumerate(self.buckets):
                cumulative += self.bucket_counts[i]
                lines.append(f'{name}_bucket{{le="{b}"}} {cumulative}')
            lines.append(f'{name}_bucket{{le="+Inf"}} {self.count}')
            lines.append(f"{name}_sum {self.sum:.6f}")
            lines.append(f"{name}_count {self.count}")
        return "\n".join(lines)


class MetricsCollector:
    """Thread-safe counters fed by the pipeline and the server."""

    def __init__(self):
        self._gesture_counts: Counter = Counter()
        self._transition_counts: Counter = Counter()
        self._dispatch_counts: Counter = Counter()  # (kind, outcome) -> count
        self._stage_seconds: dict[str, float] = {}
        self._frames_total = 0
        self._cooldown_rejections = 0
        self._face_presence_rate = 0.0
        self._active_connections = 0
        self._lock = threading.Lock()

        # 1ms to 100ms
        self._latency = _Histogram(
            [0.001, 0.002, 0.005, 0.010, 0.020, 0.033, 0.050, 0.100]
        )
        self._start_time = time.time()

    def record_frame(self, latency_seconds: float, face_present: bool):
        with self._lock:
            self._frames_total += 1
            rate = 1.0 if face_present else 0.0
            self._face_presence_rate = 0.95 * self._face_presence_rate + 0.05 * rate
        self._latency.observe(latency_seconds)

    def record_gesture(self, label: str):
        with self._lock:
            self._gesture_counts[label] += 1

    def record_transition(self, mode: str):
        with self._lock:
            self._transition_counts[mode] += 1

    def record_dispatch(self, kind: str, ok: bool):
        with self._lock:
            self._dispatch_counts[(kind, "ok" if ok else "failed")] += 1

    def record_stages(self, stages_ms: dict[str, float]):
        """Add one frame's per-stage timings (milliseconds)."""
        with self._lock:
            for name, ms in stages_ms.items():
                self._stage_seconds[name] = self._stage_seconds.get(name, 0.0) + ms / 1000.0

    def record_cooldown_rejection(self):
        with self._lock:
            self._cooldown_rejections += 1

    def set_connections(self, count: int):
        self._active_connections = count

    def render(self) -> str:
        lines: list[str] = []

        uptime = time.time() - self._start_time
        lines.append("# HELP gesture_pilot_uptime_seconds Time since start")
        lines.append("# TYPE gesture_pilot_uptime_seconds gauge")
        lines.append(f"gesture_pilot_uptime_seconds {uptime:.1f}")
        lines.append("")

        with self._lock:
            lines.append("# HELP gesture_pilot_frames_total Total frames processed")
            lines.append("# TYPE gesture_pilot_frames_total counter")
            lines.append(f"gesture_pilot_frames_total {self._frames_total}")
            lines.append("")

            lines.append("# HELP gesture_pilot_face_presence_rate Moving average of frames with a face")
            lines.append("# TYPE gesture_pilot_face_presence_rate gauge")
            lines.append(f"gesture_pilot_face_presence_rate {self._face_presence_rate:.4f}")
            lines.append("")

            lines.append("# HELP gesture_pilot_gestures_total Confirmed gestures by label")
            lines.append("# TYPE gesture_pilot_gestures_total counter")
            for label, count in sorted(self._gesture_counts.items()):
                lines.append(f'gesture_pilot_gestures_total{{gesture="{label}"}} {count}')
            lines.append("")

            lines.append("# HELP gesture_pilot_mode_transitions_total Mode transitions by target mode")
            lines.append("# TYPE gesture_pilot_mode_transitions_total counter")
            for mode, count in sorted(self._transition_counts.items()):
                lines.append(f'gesture_pilot_mode_transitions_total{{mode="{mode}"}} {count}')
            lines.append("")

            lines.append("# HELP gesture_pilot_dispatches_total Dispatched actions by kind and outcome")
            lines.append("# TYPE gesture_pilot_dispatches_total counter")
            for (kind, outcome), count in sorted(self._dispatch_counts.items()):
                lines.append(
                    f'gesture_pilot_dispatches_total{{kind="{kind}",outcome="{outcome}"}} {count}'
                )
            lines.append("")

            lines.append("# HELP gesture_pilot_cooldown_rejections_total Actions dropped by the cooldown")
            lines.append("# TYPE gesture_pilot_cooldown_rejections_total counter")
            lines.append(f"gesture_pilot_cooldown_rejections_total {self._cooldown_rejections}")
            lines.append("")

            lines.append("# HELP gesture_pilot_stage_seconds_total Time spent in each pipeline stage")
            lines.append("# TYPE gesture_pilot_stage_seconds_total counter")
            for stage, seconds in sorted(self._stage_seconds.items()):
                lines.append(f'gesture_pilot_stage_seconds_total{{stage="{stage}"}} {seconds:.6f}')
            lines.append("")

        lines.append(self._latency.render(
            "gesture_pilot_frame_latency_seconds",
            "Frame processing latency in seconds",
        ))
        lines.append("")

        lines.append("# HELP gesture_pilot_active_connections Current WebSocket connections")
        lines.append("# TYPE gesture_pilot_active_connections gauge")
        lines.append(f"gesture_pilot_active_connections {self._active_connections}")
        lines.append("")

        return "\n".join(lines) + "\n"

    @property
    def frames_total(self) -> int:
        return self._frames_total

    @property
    def gesture_counts(self) -> dict[str, int]:
        with self._lock:
            return dict(self._gesture_counts)

    @property
    def dispatch_counts(self) -> dict[tuple[str, str], int]:
        with self._lock:
            return dict(self._dispatch_counts)

    @property
    def cooldown_rejections(self) -> int:
        return self._cooldown_rejections

    @property
    def stage_seconds(self) -> dict[str, float]:
        with self._lock:
            return dict(self._stage_seconds)
