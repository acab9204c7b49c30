"""Tests for landmark recording and replay."""

import json

import numpy as np
import pytest

from gesture_pilot.frames import HandObservation, LandmarkFrame
from gesture_pilot.recorder import FramePlayer, FrameRecorder


class FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def make_frame(face=True, n_hands=1):
    hands = [
        HandObservation("right" if i == 0 else "left", np.random.rand(21, 3).astype(np.float32))
        for i in range(n_hands)
    ]
    return LandmarkFrame(face_present=face, hands=hands)


class TestRecorder:
    def test_record_and_count(self):
        rec = FrameRecorder()
        rec.start()
        for _ in range(10):
            rec.add_frame(make_frame())
        assert rec.stop() == 10
        assert not rec.is_recording

    def test_not_recording_ignores_frames(self):
        rec = FrameRecorder()
        rec.add_frame(make_frame())
        assert rec.frame_count == 0

    def test_relative_timestamps(self):
        clock = FakeClock()
        rec = FrameRecorder(clock=clock)
        rec.start()
        clock.now = 100.5
        rec.add_frame(make_frame())
        clock.now = 101.25
        rec.add_frame(make_frame())
        assert rec.duration == pytest.approx(1.25)

    def test_explicit_timestamp(self):
        rec = FrameRecorder()
        rec.start()
        rec.add_frame(make_frame(), timestamp=3.0)
        assert rec.duration == 3.0

    def test_file_format(self, tmp_path):
        rec = FrameRecorder()
        rec.start()
        rec.add_frame(make_frame(face=False, n_hands=2), timestamp=0.0)
        rec.add_frame(make_frame(), timestamp=0.5)
        path = tmp_path / "sessions" / "s.json"
        rec.save(path)

        data = json.loads(path.read_text())
        assert data["version"] == 1
        assert data["frame_count"] == 2
        assert data["duration"] == 0.5
        first = data["frames"][0]
        assert first["face_present"] is False
        assert [h["handedness"] for h in first["hands"]] == ["right", "left"]
        assert len(first["hands"][0]["landmarks"]) == 21


class TestPlayer:
    def record(self, tmp_path, n=5):
        rec = FrameRecorder()
        rec.start()
        frames = [make_frame(face=i % 2 == 0) for i in range(n)]
        for i, frame in enumerate(frames):
            rec.add_frame(frame, timestamp=i * 0.1)
        path = tmp_path / "s.json"
        rec.save(path)
        return path, frames

    def test_load_and_play(self, tmp_path):
        path, frames = self.record(tmp_path)
        player = FramePlayer.load(path)
        assert player.frame_count == 5
        assert player.duration == pytest.approx(0.4)

        played = list(player.play())
        assert [r.frame.face_present for r in played] == [f.face_present for f in frames]
        np.testing.assert_allclose(played[1].frame.hands[0].landmarks, frames[1].hands[0].landmarks, atol=1e-6)

    def test_play_realtime_fast(self, tmp_path):
        path, _ = self.record(tmp_path, n=3)
        played = list(FramePlayer.load(path).play_realtime(speed=100.0))
        assert len(played) == 3

    def test_invalid_speed(self, tmp_path):
        path, _ = self.record(tmp_path, n=1)
        with pytest.raises(ValueError):
            list(FramePlayer.load(path).play_realtime(speed=0))

    def test_get_frame(self, tmp_path):
        path, _ = self.record(tmp_path)
        player = FramePlayer.load(path)
        assert player.get_frame(2).timestamp == pytest.approx(0.2)
        assert player.get_frame(99) is None

    def test_unsupported_version(self):
        with pytest.raises(ValueError, match="version"):
            FramePlayer.from_dict({"version": 9, "frames": []})

    def test_malformed_frames(self):
        with pytest.raises(ValueError):
            FramePlayer.from_dict({"version": 1, "frames": [{"face_present": True}]})

    def test_empty_recording(self):
        player = FramePlayer([])
        assert player.duration == 0.0
        assert list(player.play_realtime()) == []
