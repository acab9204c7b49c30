"""Per-frame input from the pose-estimation source."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

import numpy as np

HANDEDNESS = ("left", "right")


@dataclass
class HandObservation:
    """One detected hand: handedness tag plus 21 landmarks."""
    handedness: str
    landmarks: np.ndarray

    def __post_init__(self):
        self.handedness = self.handedness.lower()


@dataclass
class LandmarkFrame:
    """Everything the pipeline sees for one video frame."""
    face_present: bool
    hands: list[HandObservation] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "face_present": self.face_present,
            "hands": [
                {
                    "handedness": h.handedness,
                    "landmarks": np.asarray(h.landmarks, dtype=float).tolist(),
                }
                for h in self.hands
            ],
        }

    @classmethod
    def from_dict(cls, data: dict) -> LandmarkFrame:
        return cls(
            face_present=bool(data.get("face_present", False)),
            hands=[
                HandObservation(
                    handedness=h["handedness"],
                    landmarks=np.array(h["landmarks"], dtype=np.float32),
                )
                for h in data.get("hands", [])
            ],
        )


def select_active_hand(frame: LandmarkFrame, active_hand: str) -> Optional[np.ndarray]:
    """Return the landmarks of the first hand tagged ``active_hand``, if any."""
    wanted = active_hand.lower()
    for hand in frame.hands:
        if hand.handedness == wanted:
            return hand.landmarks
    return None


def smooth_landmarks(
    previous: Optional[np.ndarray], current: np.ndarray, factor: float
) -> np.ndarray:
    """Exponential moving average of landmark x/y; ``factor`` is the weight of ``previous``.

    z passes through unsmoothed. A missing or differently shaped history
    restarts the average at ``current``.
    """
    current = np.asarray(current, dtype=np.float32)
    if (
        previous is None
        or factor <= 0
        or current.ndim != 2
        or current.shape[1] < 2
        or previous.shape != current.shape
    ):
        return current
    smoothed = current.copy()
    smoothed[:, :2] = previous[:, :2] + (current[:, :2] - previous[:, :2]) * (1.0 - factor)
    return smoothed


class LandmarkSmoother:
    """Stateful wrapper around :func:`smooth_landmarks` for the active hand."""

    def __init__(self, factor: float = 0.4):
        if not 0 <= factor < 1:
            raise ValueError(f"smoothing factor must be in [0, 1), got {factor}")
        self.factor = factor
        self._last: Optional[np.ndarray] = None

    def update(self, landmarks: np.ndarray) -> np.ndarray:
        self._last = smooth_landmarks(self._last, landmarks, self.factor)
        return self._last

    def reset(self):
        self._last = None
