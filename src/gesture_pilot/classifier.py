"""Rule-based gesture classification from raw hand landmarks."""

from __future__ import annotations

import logging

import numpy as np

from gesture_pilot.gestures import (
    FINGER_JOINTS,
    FingerStates,
    GestureLabel,
    MalformedPoseError,
    as_pose,
    finger_states,
)

logger = logging.getLogger("gesture_pilot.classifier")


def _match_rules(fingers: FingerStates) -> GestureLabel:
    # Order matters: finger combinations overlap between rules.
    if fingers.only("index"):
        return GestureLabel.POINTING_UP
    if fingers.only("index", "middle"):
        return GestureLabel.PEACE_SIGN
    if fingers.thumb and fingers.open_count == 0:
        return GestureLabel.THUMBS_UP
    if fingers.only("index", "pinky"):
        return GestureLabel.ROCK_ON
    if fingers.only("index", "middle", "ring"):
        return GestureLabel.THREE_FINGERS
    if fingers.open_count == 0 and not fingers.thumb:
        return GestureLabel.CLOSED_FIST
    if fingers.open_count == 4:
        return GestureLabel.OPEN_PALM
    return GestureLabel.UNKNOWN


def classify_pose(landmarks) -> GestureLabel:
    """Classify a single hand pose into one gesture label.

    Deterministic and side-effect free. Malformed input (wrong landmark
    count, non-finite values) yields ``GestureLabel.UNKNOWN`` instead of
    raising, so one bad frame cannot break the frame loop.

    Args:
        landmarks: 21 (x, y, z) landmarks in normalized image coordinates.
    """
    try:
        pose = as_pose(landmarks)
    except MalformedPoseError as e:
        logger.debug("Classifying malformed pose as UNKNOWN: %s", e)
        return GestureLabel.UNKNOWN
    return _match_rules(finger_states(pose))


def is_precision_pose(
    landmarks,
    min_curl: float = 0.01,
    max_curl: float = 0.08,
    min_fingers: int = 3,
) -> bool:
    """Detect the partial-curl "grip" used to slow the pointer down.

    The index finger must not be open, and at least ``min_fingers`` of the
    four fingers must have their tip sitting below the PIP joint by a
    vertical offset strictly between ``min_curl`` and ``max_curl``. A full
    fist curls past ``max_curl`` and does not count.
    """
    try:
        pose = as_pose(landmarks)
    except MalformedPoseError:
        return False

    if finger_states(pose).index:
        return False

    partial = 0
    for tip_idx, pip_idx in FINGER_JOINTS:
        curl = pose[tip_idx][1] - pose[pip_idx][1]  # positive = tip below pip
        if min_curl < curl < max_curl:
            partial += 1
    return partial >= min_fingers


class GestureClassifier:
    """Classifier bound to a precision-pose configuration.

    The gesture rules themselves are fixed; only the grip thresholds used by
    :meth:`is_precision` are configurable.
    """

    def __init__(
        self,
        precision_min_curl: float = 0.01,
        precision_max_curl: float = 0.08,
        precision_min_fingers: int = 3,
    ):
        self.precision_min_curl = precision_min_curl
        self.precision_max_curl = precision_max_curl
        self.precision_min_fingers = precision_min_fingers

    def classify(self, landmarks: np.ndarray) -> GestureLabel:
        return classify_pose(landmarks)

    def is_precision(self, landmarks: np.ndarray) -> bool:
        return is_precision_pose(
            landmarks,
            min_curl=self.precision_min_curl,
            max_curl=self.precision_max_curl,
            min_fingers=self.precision_min_fingers,
        )
