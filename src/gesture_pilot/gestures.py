"""Gesture vocabulary and hand geometry shared by the classifier and projector."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

import numpy as np


class GestureLabel(Enum):
    """Closed set of discrete gestures the classifier can produce."""
    UNKNOWN = "UNKNOWN"
    CLOSED_FIST = "CLOSED_FIST"
    OPEN_PALM = "OPEN_PALM"
    POINTING_UP = "POINTING_UP"
    PEACE_SIGN = "PEACE_SIGN"
    THREE_FINGERS = "THREE_FINGERS"
    FOUR_FINGERS = "FOUR_FINGERS"
    THUMBS_UP = "THUMBS_UP"
    ROCK_ON = "ROCK_ON"

    @classmethod
    def parse(cls, value: str | GestureLabel) -> GestureLabel:
        """Accept enum members or case-insensitive names like ``"open_palm"``."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().upper())
        except ValueError:
            raise ValueError(f"Unknown gesture label: {value!r}") from None


# MediaPipe hand landmark indices
WRIST = 0
THUMB_CMC, THUMB_MCP, THUMB_IP, THUMB_TIP = 1, 2, 3, 4
INDEX_MCP, INDEX_PIP, INDEX_DIP, INDEX_TIP = 5, 6, 7, 8
MIDDLE_MCP, MIDDLE_PIP, MIDDLE_DIP, MIDDLE_TIP = 9, 10, 11, 12
RING_MCP, RING_PIP, RING_DIP, RING_TIP = 13, 14, 15, 16
PINKY_MCP, PINKY_PIP, PINKY_DIP, PINKY_TIP = 17, 18, 19, 20

NUM_LANDMARKS = 21
LANDMARK_DIM = 3

# (tip, pip) pairs for index, middle, ring, pinky
FINGER_JOINTS = [
    (INDEX_TIP, INDEX_PIP),
    (MIDDLE_TIP, MIDDLE_PIP),
    (RING_TIP, RING_PIP),
    (PINKY_TIP, PINKY_PIP),
]


class MalformedPoseError(ValueError):
    """Raised by :func:`as_pose` when landmark data cannot be used."""


def as_pose(landmarks) -> np.ndarray:
    """Coerce landmark data to a finite float array of shape (21, 3).

    Raises:
        MalformedPoseError: wrong landmark count, wrong dimensionality,
            non-numeric or non-finite values.
    """
    try:
        pose = np.asarray(landmarks, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise MalformedPoseError(f"landmarks are not numeric: {e}") from e

    if pose.shape != (NUM_LANDMARKS, LANDMARK_DIM):
        raise MalformedPoseError(
            f"expected shape ({NUM_LANDMARKS}, {LANDMARK_DIM}), got {pose.shape}"
        )
    if not np.all(np.isfinite(pose)):
        raise MalformedPoseError("landmarks contain NaN or infinite values")
    return pose


@dataclass(frozen=True)
class FingerStates:
    """Open/closed state of each finger for one hand pose."""
    thumb: bool
    index: bool
    middle: bool
    ring: bool
    pinky: bool

    @property
    def open_count(self) -> int:
        """Number of open non-thumb fingers (0-4)."""
        return sum((self.index, self.middle, self.ring, self.pinky))

    def only(self, *fingers: str) -> bool:
        """True when exactly the named non-thumb fingers are open."""
        wanted = set(fingers)
        return all(
            getattr(self, name) == (name in wanted)
            for name in ("index", "middle", "ring", "pinky")
        )


def finger_states(pose: np.ndarray) -> FingerStates:
    """Determine which fingers are open.

    A non-thumb finger is open when its tip is farther from the wrist than
    its PIP joint, which holds regardless of hand rotation. The thumb is open
    when its tip sits horizontally farther from the wrist than its IP joint.

    Args:
        pose: Landmarks, shape (21, 3), already validated by :func:`as_pose`.
    """
    wrist = pose[WRIST]
    fingers = []
    for tip_idx, pip_idx in FINGER_JOINTS:
        tip_dist = np.linalg.norm(pose[tip_idx] - wrist)
        pip_dist = np.linalg.norm(pose[pip_idx] - wrist)
        fingers.append(bool(tip_dist > pip_dist))

    thumb = abs(pose[THUMB_TIP][0] - wrist[0]) > abs(pose[THUMB_IP][0] - wrist[0])

    return FingerStates(
        thumb=bool(thumb),
        index=fingers[0],
        middle=fingers[1],
        ring=fingers[2],
        pinky=fingers[3],
    )
