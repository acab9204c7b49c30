"""Face and hand landmark extraction using MediaPipe."""

from __future__ import annotations

from typing import Optional

import numpy as np

try:
    import mediapipe as mp
except ImportError:
    mp = None

from gesture_pilot.frames import HandObservation, LandmarkFrame

_FLIPPED = {"left": "right", "right": "left"}


class PoseSource:
    """Turns RGB camera frames into :class:`LandmarkFrame` objects.

    Runs MediaPipe Hands for up to ``max_hands`` hands (21 landmarks each,
    x/y normalized to the image) and MediaPipe Face Detection for the
    presence gate. MediaPipe labels handedness as if the image were a
    mirrored selfie view; set ``flip_handedness`` when feeding an
    unmirrored camera image so "right" means the user's right hand.
    """

    def __init__(
        self,
        max_hands: int = 2,
        min_detection_confidence: float = 0.7,
        min_tracking_confidence: float = 0.5,
        min_face_confidence: float = 0.5,
        flip_handedness: bool = False,
        static_image_mode: bool = False,
    ):
        if mp is None:
            raise ImportError(
                "mediapipe is required. Install with: pip install mediapipe"
            )

        self.max_hands = max_hands
        self.flip_handedness = flip_handedness
        self._hands = mp.solutions.hands.Hands(
            static_image_mode=static_image_mode,
            max_num_hands=max_hands,
            min_detection_confidence=min_detection_confidence,
            min_tracking_confidence=min_tracking_confidence,
        )
        self._face = mp.solutions.face_detection.FaceDetection(
            model_selection=0,
            min_detection_confidence=min_face_confidence,
        )

    def read(self, frame_rgb: np.ndarray) -> LandmarkFrame:
        """Detect the face gate and hands in one RGB frame (H, W, 3), uint8."""
        face_results = self._face.process(frame_rgb)
        face_present = bool(face_results.detections)

        return LandmarkFrame(face_present=face_present, hands=self.detect_hands(frame_rgb))

    def detect_hands(self, frame_rgb: np.ndarray) -> list[HandObservation]:
        results = self._hands.process(frame_rgb)
        if not results.multi_hand_landmarks:
            return []

        handedness = results.multi_handedness or []
        hands = []
        for i, hand_landmarks in enumerate(results.multi_hand_landmarks):
            landmarks = np.array(
                [[lm.x, lm.y, lm.z] for lm in hand_landmarks.landmark],
                dtype=np.float32,
            )
            hands.append(HandObservation(
                handedness=self._label(handedness[i] if i < len(handedness) else None),
                landmarks=landmarks,
            ))
        return hands

    def _label(self, classification: Optional[object]) -> str:
        if classification is None:
            return "unknown"
        label = classification.classification[0].label.lower()
        if self.flip_handedness:
            return _FLIPPED.get(label, label)
        return label

    def close(self):
        """Release MediaPipe resources."""
        self._hands.close()
        self._face.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()
