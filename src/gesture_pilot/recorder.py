"""Landmark recording and replay.

Recordings let the whole pipeline run without a camera: record a session
once, then replay it through ``gesture-pilot replay`` or the test suite.
Files are JSON:

    {"version": 1, "frame_count": N, "duration": seconds,
     "frames": [{"timestamp": t, "face_present": bool,
                 "hands": [{"handedness": "right", "landmarks": [[x, y, z], ...]}]}]}
"""

from __future__ import annotations

import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterator, Optional

from gesture_pilot.frames import LandmarkFrame

FORMAT_VERSION = 1


@dataclass
class RecordedFrame:
    """A single frame in a recording."""
    timestamp: float  # seconds from recording start
    frame: LandmarkFrame

    def to_dict(self) -> dict:
        return {"timestamp": self.timestamp, **self.frame.to_dict()}

    @classmethod
    def from_dict(cls, data: dict) -> RecordedFrame:
        return cls(timestamp=float(data["timestamp"]), frame=LandmarkFrame.from_dict(data))


class FrameRecorder:
    """Collects LandmarkFrames with timestamps relative to :meth:`start`.

    Usage:
        recorder = FrameRecorder()
        recorder.start()
        # In your frame loop:
        recorder.add_frame(frame)
        # When done:
        recorder.save("session.json")
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._frames: list[RecordedFrame] = []
        self._start_time: Optional[float] = None
        self._recording = False

    def start(self):
        self._frames = []
        self._start_time = self._clock()
        self._recording = True

    def stop(self) -> int:
        """Stop recording. Returns number of frames captured."""
        self._recording = False
        return len(self._frames)

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    def add_frame(self, frame: LandmarkFrame, timestamp: Optional[float] = None):
        """Append a frame; ignored unless recording.

        ``timestamp`` overrides the clock (seconds from start).
        """
        if not self._recording:
            return
        if timestamp is None:
            timestamp = self._clock() - self._start_time
        self._frames.append(RecordedFrame(timestamp=timestamp, frame=frame))

    def to_dict(self) -> dict:
        return {
            "version": FORMAT_VERSION,
            "frame_count": len(self._frames),
            "duration": self.duration,
            "frames": [f.to_dict() for f in self._frames],
        }

    def save(self, path: str | Path):
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w") as f:
            json.dump(self.to_dict(), f)


class FramePlayer:
    """Replays a recorded session.

    Usage:
        player = FramePlayer.load("session.json")
        for rec in player.play():
            pipeline.process(rec.frame, now=rec.timestamp)
    """

    def __init__(self, frames: list[RecordedFrame]):
        self._frames = frames

    @classmethod
    def load(cls, path: str | Path) -> FramePlayer:
        """Load a JSON recording.

        Raises:
            ValueError: unsupported version or malformed content.
        """
        with open(Path(path)) as f:
            data = json.load(f)
        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> FramePlayer:
        version = data.get("version", FORMAT_VERSION)
        if version != FORMAT_VERSION:
            raise ValueError(f"Unsupported recording version: {version}")
        try:
            frames = [RecordedFrame.from_dict(f) for f in data["frames"]]
        except (KeyError, TypeError) as e:
            raise ValueError(f"Malformed recording: {e}") from e
        return cls(frames)

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    @property
    def duration(self) -> float:
        if not self._frames:
            return 0.0
        return self._frames[-1].timestamp

    def play(self) -> Iterator[RecordedFrame]:
        """Iterate through all frames instantly (no timing)."""
        yield from self._frames

    def play_realtime(self, speed: float = 1.0) -> Iterator[RecordedFrame]:
        """Replay at original timing, scaled by ``speed`` (2.0 = double speed)."""
        if speed <= 0:
            raise ValueError("speed must be > 0")
        if not self._frames:
            return

        start = time.monotonic()
        for rec in self._frames:
            target_time = rec.timestamp / speed
            elapsed = time.monotonic() - start
            if target_time > elapsed:
                time.sleep(target_time - elapsed)
            yield rec

    def get_frame(self, index: int) -> Optional[RecordedFrame]:
        if 0 <= index < len(self._frames):
            return self._frames[index]
        return None
