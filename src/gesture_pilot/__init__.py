"""GesturePilot: hands-free desktop control from webcam hand landmarks."""

__version__ = "0.1.0"

from gesture_pilot.actions import ActionEvent, ActionKind, AutomationResult, DispatchOutcome
from gesture_pilot.classifier import GestureClassifier, classify_pose, is_precision_pose
from gesture_pilot.config import PilotConfig, load_config
from gesture_pilot.debounce import HoldDebouncer
from gesture_pilot.dispatch import ActionDispatcher
from gesture_pilot.errors import ConfigError
from gesture_pilot.frames import HandObservation, LandmarkFrame
from gesture_pilot.gestures import GestureLabel
from gesture_pilot.modes import CommandTable, InteractionMode, ModeStateMachine
from gesture_pilot.pipeline import FrameSnapshot, IntentPipeline
from gesture_pilot.pointer import PointerProjector, PointerState, Viewport, to_screen
