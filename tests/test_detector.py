"""Tests for PoseSource with MediaPipe replaced by fakes."""

from types import SimpleNamespace

import numpy as np
import pytest

from gesture_pilot import detector


def fake_hand(x0=0.5):
    return SimpleNamespace(landmark=[SimpleNamespace(x=x0 + i * 0.01, y=0.5, z=0.0) for i in range(21)])


def fake_handedness(label):
    return SimpleNamespace(classification=[SimpleNamespace(label=label)])


class FakeModel:
    def __init__(self, result):
        self.result = result
        self.closed = False

    def process(self, frame):
        return self.result

    def close(self):
        self.closed = True


def install_fakes(monkeypatch, hands=None, labels=None, face=True):
    hands_result = SimpleNamespace(
        multi_hand_landmarks=hands,
        multi_handedness=[fake_handedness(l) for l in labels] if labels is not None else None,
    )
    face_result = SimpleNamespace(detections=[object()] if face else None)
    models = {}

    def make_hands(**kwargs):
        models["hands"] = FakeModel(hands_result)
        models["hands_kwargs"] = kwargs
        return models["hands"]

    def make_face(**kwargs):
        models["face"] = FakeModel(face_result)
        return models["face"]

    fake_mp = SimpleNamespace(solutions=SimpleNamespace(
        hands=SimpleNamespace(Hands=make_hands),
        face_detection=SimpleNamespace(FaceDetection=make_face),
    ))
    monkeypatch.setattr(detector, "mp", fake_mp)
    return models


FRAME = np.zeros((48, 64, 3), dtype=np.uint8)


class TestPoseSource:
    def test_requires_mediapipe(self, monkeypatch):
        monkeypatch.setattr(detector, "mp", None)
        with pytest.raises(ImportError, match="mediapipe"):
            detector.PoseSource()

    def test_reads_face_and_hands(self, monkeypatch):
        install_fakes(monkeypatch, hands=[fake_hand(0.2), fake_hand(0.6)], labels=["Right", "Left"])
        frame = detector.PoseSource().read(FRAME)
        assert frame.face_present
        assert [h.handedness for h in frame.hands] == ["right", "left"]
        assert frame.hands[0].landmarks.shape == (21, 3)
        assert frame.hands[0].landmarks.dtype == np.float32
        assert frame.hands[1].landmarks[0, 0] == pytest.approx(0.6)

    def test_no_face_no_hands(self, monkeypatch):
        install_fakes(monkeypatch, hands=None, face=False)
        frame = detector.PoseSource().read(FRAME)
        assert not frame.face_present
        assert frame.hands == []

    def test_flip_handedness(self, monkeypatch):
        install_fakes(monkeypatch, hands=[fake_hand()], labels=["Left"])
        frame = detector.PoseSource(flip_handedness=True).read(FRAME)
        assert frame.hands[0].handedness == "right"

    def test_missing_handedness(self, monkeypatch):
        install_fakes(monkeypatch, hands=[fake_hand()], labels=None)
        frame = detector.PoseSource().read(FRAME)
        assert frame.hands[0].handedness == "unknown"

    def test_passes_confidence(self, monkeypatch):
        models = install_fakes(monkeypatch)
        detector.PoseSource(max_hands=1, min_detection_confidence=0.9)
        assert models["hands_kwargs"]["max_num_hands"] == 1
        assert models["hands_kwargs"]["min_detection_confidence"] == 0.9

    def test_context_manager_closes(self, monkeypatch):
        models = install_fakes(monkeypatch)
        with detector.PoseSource():
            pass
        assert models["hands"].closed
        assert models["face"].closed
