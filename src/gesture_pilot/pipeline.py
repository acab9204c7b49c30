"""Frame-driven intent pipeline: landmarks in, mode, pointer and actions out.

One call to :meth:`IntentPipeline.process` runs every stage for a frame:

    face gate + hand selection -> smoothing -> classify -> debounce -> mode machine
    -> pointer projection (AIMING only) -> dispatch (COMMAND only)

The pipeline never reads a clock for its decisions; the caller passes the
frame timestamp in seconds.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Optional

import numpy as np

from gesture_pilot.actions import ActionKind, DispatchOutcome
from gesture_pilot.automation import build_automation
from gesture_pilot.classifier import GestureClassifier
from gesture_pilot.config import PilotConfig
from gesture_pilot.debounce import HoldDebouncer
from gesture_pilot.dispatch import ActionDispatcher
from gesture_pilot.frames import LandmarkFrame, LandmarkSmoother, select_active_hand
from gesture_pilot.gestures import GestureLabel
from gesture_pilot.metrics import MetricsCollector
from gesture_pilot.modes import InteractionMode, ModeDecision, ModeStateMachine, Transition
from gesture_pilot.pointer import PointerProjector, PointerState, Viewport
from gesture_pilot.profiler import FrameTiming, StageTimer

logger = logging.getLogger("gesture_pilot.pipeline")


@dataclass
class FrameSnapshot:
    """What a renderer needs to draw after one frame."""
    mode: InteractionMode
    pointer: Optional[PointerState]
    gesture: GestureLabel
    raw_gesture: GestureLabel
    precision: bool
    face_present: bool
    hand_present: bool
    pending: Optional[str] = None
    feedback: Optional[DispatchOutcome] = None
    timestamp: float = 0.0

    def to_dict(self) -> dict:
        return {
            "mode": self.mode.value,
            "pointer": self.pointer.to_dict() if self.pointer else None,
            "gesture": self.gesture.value,
            "raw_gesture": self.raw_gesture.value,
            "precision": self.precision,
            "face_present": self.face_present,
            "hand_present": self.hand_present,
            "pending": self.pending,
            "feedback": self.feedback.to_dict() if self.feedback else None,
            "timestamp": self.timestamp,
        }


@dataclass
class PipelineStats:
    """Runtime performance statistics."""
    fps: float
    avg_latency_ms: float
    total_frames: int
    total_dispatches: int
    stage_summary: dict = field(default_factory=dict)
    last_frame: Optional[FrameTiming] = None


class IntentPipeline:
    """Turns a stream of :class:`LandmarkFrame` into modes, pointer and actions.

    Collaborators can be injected for tests; :meth:`from_config` builds the
    whole chain from a validated :class:`PilotConfig`.

    Callbacks:
        on_action(outcome): every dispatched action (successful or failed).
        on_mode_change(old, new): every AIMING/COMMAND transition.

    Callback exceptions are logged and never stop the frame loop.
    """

    def __init__(
        self,
        dispatcher: ActionDispatcher,
        classifier: Optional[GestureClassifier] = None,
        debouncer: Optional[HoldDebouncer] = None,
        modes: Optional[ModeStateMachine] = None,
        projector: Optional[PointerProjector] = None,
        smoother: Optional[LandmarkSmoother] = None,
        active_hand: str = "right",
        feedback_seconds: float = 1.5,
        drive_system_cursor: bool = False,
        metrics: Optional[MetricsCollector] = None,
        timer: Optional[StageTimer] = None,
    ):
        self.dispatcher = dispatcher
        self.classifier = classifier if classifier is not None else GestureClassifier()
        self.debouncer = debouncer if debouncer is not None else HoldDebouncer()
        self.modes = modes if modes is not None else ModeStateMachine()
        self.projector = projector if projector is not None else PointerProjector(Viewport(1920, 1080))
        # Smoothing is off unless a smoother is passed in
        self.smoother = smoother if smoother is not None else LandmarkSmoother(0.0)
        self.active_hand = active_hand.lower()
        self.feedback_seconds = feedback_seconds
        self.drive_system_cursor = drive_system_cursor
        self.metrics = metrics
        self.timer = timer if timer is not None else StageTimer()

        self._action_callbacks: list[Callable[[DispatchOutcome], None]] = []
        self._mode_callbacks: list[Callable[[InteractionMode, InteractionMode], None]] = []
        self._last_outcome: Optional[DispatchOutcome] = None
        self._last_confirmed = GestureLabel.UNKNOWN
        self._frame_times: deque = deque(maxlen=60)
        self._total_frames = 0
        self._total_dispatches = 0
        self._snapshot = self._empty_snapshot()

    @classmethod
    def from_config(
        cls,
        config: PilotConfig,
        automation=None,
        broadcaster=None,
        metrics: Optional[MetricsCollector] = None,
    ) -> IntentPipeline:
        """Build the pipeline described by ``config``.

        ``automation`` defaults to the configured backend. A broadcaster is
        created only when ``broadcast.enabled`` is set and none is passed in.
        """
        if automation is None:
            automation = build_automation(config.automation)
        if broadcaster is None and config.broadcast.enabled:
            from gesture_pilot.broadcast import ActionBroadcaster

            broadcaster = ActionBroadcaster(
                host=config.broadcast.host,
                port=config.broadcast.port,
                kinds=config.broadcast_kinds,
            )

        ptr = config.pointer
        return cls(
            dispatcher=ActionDispatcher(
                automation,
                cooldown=config.dispatch.cooldown,
                input_cooldown=config.dispatch.input_cooldown,
                broadcaster=broadcaster,
            ),
            classifier=GestureClassifier(
                precision_min_curl=ptr.precision_min_curl,
                precision_max_curl=ptr.precision_max_curl,
                precision_min_fingers=ptr.precision_min_fingers,
            ),
            debouncer=HoldDebouncer(config.recognition.hold_threshold),
            modes=ModeStateMachine(
                config.command_table(),
                enter_gesture=config.enter_gesture,
                exit_gesture=config.exit_gesture,
            ),
            projector=PointerProjector(
                config.viewport,
                raycast_factor=ptr.raycast_factor,
                precision_slowdown=ptr.precision_slowdown,
                mirror=ptr.mirror,
            ),
            smoother=LandmarkSmoother(config.recognition.smoothing),
            active_hand=config.recognition.active_hand,
            feedback_seconds=config.dispatch.feedback_seconds,
            drive_system_cursor=ptr.drive_system_cursor,
            metrics=metrics,
        )

    def on_action(self, callback: Callable[[DispatchOutcome], None]):
        self._action_callbacks.append(callback)

    def on_mode_change(self, callback: Callable[[InteractionMode, InteractionMode], None]):
        self._mode_callbacks.append(callback)

    @property
    def automation(self):
        return self.dispatcher.automation

    @property
    def mode(self) -> InteractionMode:
        return self.modes.mode

    @property
    def snapshot(self) -> FrameSnapshot:
        """Snapshot produced by the most recent :meth:`process` call."""
        return self._snapshot

    def process(self, frame: LandmarkFrame, now: float) -> FrameSnapshot:
        t_start = time.perf_counter()
        self._total_frames += 1
        self.timer.begin_frame()

        with self.timer.stage("selection"):
            landmarks = None
            if frame.face_present:
                landmarks = select_active_hand(frame, self.active_hand)

        if landmarks is None:
            snapshot = self._no_gesture(frame, now)
        else:
            with self.timer.stage("smoothing"):
                landmarks = self.smoother.update(landmarks)
            snapshot = self._process_hand(frame, landmarks, now)

        elapsed = time.perf_counter() - t_start
        self._frame_times.append(elapsed)
        timing = self.timer.end_frame()
        if self.metrics:
            self.metrics.record_frame(elapsed, frame.face_present)
            if timing is not None:
                self.metrics.record_stages(timing.stages)

        self._snapshot = snapshot
        return snapshot

    def _process_hand(self, frame: LandmarkFrame, landmarks: np.ndarray, now: float) -> FrameSnapshot:
        with self.timer.stage("classification"):
            raw = self.classifier.classify(landmarks)
            precision = self.classifier.is_precision(landmarks)

        with self.timer.stage("debounce"):
            confirmed = self.debouncer.update(raw, now)
        self._note_confirmed(confirmed)

        with self.timer.stage("mode"):
            previous_mode = self.modes.mode
            decision = self.modes.update(confirmed, self.projector.last)

        with self.timer.stage("pointer"):
            if decision.mode == InteractionMode.AIMING:
                pointer = self.projector.update(landmarks, precision)
                if pointer is not None and self.drive_system_cursor:
                    self._move_cursor(pointer)
            else:
                pointer = self.modes.frozen_pointer

        if decision.transition != Transition.NONE:
            self._mode_changed(previous_mode, decision.mode)

        if decision.action is not None:
            with self.timer.stage("dispatch"):
                self._dispatch(decision, now)

        return FrameSnapshot(
            mode=decision.mode,
            pointer=pointer,
            gesture=confirmed,
            raw_gesture=raw,
            precision=precision,
            face_present=frame.face_present,
            hand_present=True,
            pending=decision.pending,
            feedback=self._feedback(now),
            timestamp=now,
        )

    def _no_gesture(self, frame: LandmarkFrame, now: float) -> FrameSnapshot:
        # The debouncer and edge detector keep running so a returning hand
        # produces a fresh rising edge; the mode itself does not change.
        with self.timer.stage("debounce"):
            confirmed = self.debouncer.update(GestureLabel.UNKNOWN, now)
        self._note_confirmed(confirmed)
        self.modes.observe(confirmed)
        self.projector.reset()
        self.smoother.reset()

        return FrameSnapshot(
            mode=self.modes.mode,
            pointer=None,
            gesture=GestureLabel.UNKNOWN,
            raw_gesture=GestureLabel.UNKNOWN,
            precision=False,
            face_present=frame.face_present,
            hand_present=select_active_hand(frame, self.active_hand) is not None,
            feedback=self._feedback(now),
            timestamp=now,
        )

    def _dispatch(self, decision: ModeDecision, now: float):
        event = decision.action
        frozen = self.modes.frozen_pointer
        if event.kind == ActionKind.CLICK and frozen is not None:
            event = event.at(frozen.x, frozen.y)

        outcome = self.dispatcher.dispatch(event, now)
        if not outcome.dispatched:
            if self.metrics:
                self.metrics.record_cooldown_rejection()
            return

        self._total_dispatches += 1
        self._last_outcome = outcome
        if self.metrics:
            self.metrics.record_dispatch(event.kind.value, outcome.ok)

        for cb in self._action_callbacks:
            try:
                cb(outcome)
            except Exception as e:
                logger.error("Action callback error: %s", e)

    def _mode_changed(self, old: InteractionMode, new: InteractionMode):
        if self.metrics:
            self.metrics.record_transition(new.value)
        for cb in self._mode_callbacks:
            try:
                cb(old, new)
            except Exception as e:
                logger.error("Mode callback error: %s", e)

    def _move_cursor(self, pointer: PointerState):
        try:
            self.dispatcher.automation.move_pointer(pointer.x, pointer.y)
        except Exception as e:
            logger.warning("Cursor move failed: %s", e)

    def _note_confirmed(self, confirmed: GestureLabel):
        if confirmed != self._last_confirmed:
            self._last_confirmed = confirmed
            if self.metrics and confirmed != GestureLabel.UNKNOWN:
                self.metrics.record_gesture(confirmed.value)

    def _feedback(self, now: float) -> Optional[DispatchOutcome]:
        outcome = self._last_outcome
        if outcome is None or now - outcome.timestamp > self.feedback_seconds:
            return None
        return outcome

    def _empty_snapshot(self) -> FrameSnapshot:
        return FrameSnapshot(
            mode=self.modes.mode,
            pointer=None,
            gesture=GestureLabel.UNKNOWN,
            raw_gesture=GestureLabel.UNKNOWN,
            precision=False,
            face_present=False,
            hand_present=False,
        )

    @property
    def stats(self) -> PipelineStats:
        if self._frame_times:
            avg_latency = sum(self._frame_times) / len(self._frame_times)
            fps = 1.0 / avg_latency if avg_latency > 0 else 0.0
        else:
            avg_latency = 0.0
            fps = 0.0

        return PipelineStats(
            fps=fps,
            avg_latency_ms=avg_latency * 1000,
            total_frames=self._total_frames,
            total_dispatches=self._total_dispatches,
            stage_summary=self.timer.summary(),
            last_frame=self.timer.last,
        )

    def reset(self):
        """Back to AIMING with no history; counters are cleared too."""
        self.debouncer.reset()
        self.modes.reset()
        self.projector.reset()
        self.smoother.reset()
        self.dispatcher.reset()
        self.timer.reset()
        self._last_outcome = None
        self._last_confirmed = GestureLabel.UNKNOWN
        self._frame_times.clear()
        self._total_frames = 0
        self._total_dispatches = 0
        self._snapshot = self._empty_snapshot()
