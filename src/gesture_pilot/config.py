"""GesturePilot configuration: dataclass sections loaded from YAML.

Every threshold the frame loop uses is validated here, before the loop
starts. Invalid values raise :class:`ConfigError`.

Example ``pilot.yml``:

    recognition:
      hold_threshold: 0.3
      active_hand: right
    dispatch:
      cooldown: 2.0
      input_cooldown: 0.5
    commands:
      PEACE_SIGN: {kind: switch_slot, payload: 2}
      THUMBS_UP: {kind: click}
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field, fields
from pathlib import Path
from typing import Any, Optional

import yaml

from gesture_pilot.actions import ActionKind
from gesture_pilot.automation import DEFAULT_APPS
from gesture_pilot.errors import ConfigError
from gesture_pilot.frames import HANDEDNESS
from gesture_pilot.gestures import GestureLabel
from gesture_pilot.modes import CommandTable, ModeStateMachine
from gesture_pilot.pointer import Viewport

logger = logging.getLogger("gesture_pilot.config")

BACKENDS = ("dry_run", "xdotool")
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass
class RecognitionConfig:
    hold_threshold: float = 0.3
    smoothing: float = 0.4
    active_hand: str = "right"
    flip_handedness: bool = False
    enter_gesture: str = "OPEN_PALM"
    exit_gesture: str = "POINTING_UP"


@dataclass
class PointerConfig:
    viewport: tuple[int, int] = (1920, 1080)
    raycast_factor: float = 2.5
    precision_slowdown: float = 0.25
    mirror: bool = True
    precision_min_curl: float = 0.01
    precision_max_curl: float = 0.08
    precision_min_fingers: int = 3
    drive_system_cursor: bool = False


@dataclass
class DispatchConfig:
    cooldown: float = 2.0
    input_cooldown: Optional[float] = None
    feedback_seconds: float = 1.5


@dataclass
class AutomationConfig:
    backend: str = "dry_run"
    slot_key_template: str = "alt+{n}"
    screenshot_key: str = "Print"
    apps: dict[str, str] = field(default_factory=lambda: dict(DEFAULT_APPS))


@dataclass
class BroadcastConfig:
    enabled: bool = False
    host: str = "255.255.255.255"
    port: int = 41234
    kinds: list[str] = field(default_factory=lambda: ["switch_slot", "key"])
    # Replay actions mirrored by peers on this machine
    listen: bool = False


@dataclass
class LoggingConfig:
    level: str = "INFO"


@dataclass
class PilotConfig:
    recognition: RecognitionConfig = field(default_factory=RecognitionConfig)
    pointer: PointerConfig = field(default_factory=PointerConfig)
    dispatch: DispatchConfig = field(default_factory=DispatchConfig)
    automation: AutomationConfig = field(default_factory=AutomationConfig)
    broadcast: BroadcastConfig = field(default_factory=BroadcastConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    # None keeps the built-in command table; a mapping replaces it entirely.
    commands: Optional[dict[str, Optional[dict]]] = None

    @property
    def enter_gesture(self) -> GestureLabel:
        return GestureLabel.parse(self.recognition.enter_gesture)

    @property
    def exit_gesture(self) -> GestureLabel:
        return GestureLabel.parse(self.recognition.exit_gesture)

    @property
    def viewport(self) -> Viewport:
        width, height = self.pointer.viewport
        return Viewport(int(width), int(height))

    @property
    def broadcast_kinds(self) -> list[ActionKind]:
        return [ActionKind(k.lower()) for k in self.broadcast.kinds]

    def command_table(self) -> CommandTable:
        if self.commands is None:
            return CommandTable.with_defaults(exit_gesture=self.exit_gesture)
        return CommandTable.from_config(self.commands, exit_gesture=self.exit_gesture)

    def validate(self) -> PilotConfig:
        """Check every value; raises ConfigError on the first problem."""
        try:
            self._check()
        except TypeError as e:
            raise ConfigError(f"Invalid value type: {e}") from e
        return self

    def _check(self):
        rec, ptr, dsp = self.recognition, self.pointer, self.dispatch

        _require(rec.hold_threshold >= 0, "recognition.hold_threshold must be >= 0")
        _require(0 <= rec.smoothing < 1, "recognition.smoothing must be in [0, 1)")
        _require(
            rec.active_hand.lower() in HANDEDNESS,
            f"recognition.active_hand must be one of {HANDEDNESS}",
        )
        try:
            enter, exit_ = self.enter_gesture, self.exit_gesture
        except ValueError as e:
            raise ConfigError(str(e)) from e
        _require(enter != exit_, "enter_gesture and exit_gesture must differ")
        _require(
            GestureLabel.UNKNOWN not in (enter, exit_),
            "UNKNOWN cannot enter or exit command mode",
        )

        _require(
            isinstance(ptr.viewport, (list, tuple)) and len(ptr.viewport) == 2,
            "pointer.viewport must be [width, height]",
        )
        try:
            self.viewport
        except (TypeError, ValueError) as e:
            raise ConfigError(f"pointer.viewport: {e}") from e
        _require(ptr.raycast_factor >= 0, "pointer.raycast_factor must be >= 0")
        _require(
            0 < ptr.precision_slowdown <= 1,
            "pointer.precision_slowdown must be in (0, 1]",
        )
        _require(
            0 <= ptr.precision_min_curl < ptr.precision_max_curl,
            "pointer.precision_min_curl must be >= 0 and below precision_max_curl",
        )
        _require(
            1 <= ptr.precision_min_fingers <= 4,
            "pointer.precision_min_fingers must be between 1 and 4",
        )

        _require(dsp.cooldown >= 0, "dispatch.cooldown must be >= 0")
        _require(
            dsp.input_cooldown is None or dsp.input_cooldown >= 0,
            "dispatch.input_cooldown must be >= 0",
        )
        _require(dsp.feedback_seconds >= 0, "dispatch.feedback_seconds must be >= 0")

        _require(
            self.automation.backend in BACKENDS,
            f"automation.backend must be one of {BACKENDS}",
        )
        _require("{n}" in self.automation.slot_key_template,
                 "automation.slot_key_template must contain {n}")

        _require(0 < self.broadcast.port < 65536, "broadcast.port out of range")
        try:
            self.broadcast_kinds
        except ValueError as e:
            raise ConfigError(f"broadcast.kinds: {e}") from e

        _require(
            self.logging.level.upper() in LOG_LEVELS,
            f"logging.level must be one of {LOG_LEVELS}",
        )

        # The effective table must agree with the mode gestures
        ModeStateMachine(self.command_table(), enter_gesture=enter, exit_gesture=exit_)

    def to_dict(self) -> dict:
        data = asdict(self)
        data["pointer"]["viewport"] = list(self.pointer.viewport)
        if data["commands"] is None:
            del data["commands"]
        return data


def _require(condition: bool, message: str):
    if not condition:
        raise ConfigError(message)


_SECTIONS = {
    "recognition": RecognitionConfig,
    "pointer": PointerConfig,
    "dispatch": DispatchConfig,
    "automation": AutomationConfig,
    "broadcast": BroadcastConfig,
    "logging": LoggingConfig,
}


def _build_section(cls: type, name: str, data: Any):
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigError(f"Section '{name}' must be a mapping")
    known = {f.name for f in fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown keys in '{name}': {', '.join(unknown)}")
    try:
        return cls(**data)
    except TypeError as e:
        raise ConfigError(f"Section '{name}': {e}") from e


def config_from_dict(data: dict) -> PilotConfig:
    """Build and validate a config from a parsed mapping."""
    if not isinstance(data, dict):
        raise ConfigError("Configuration root must be a mapping")

    unknown = sorted(set(data) - set(_SECTIONS) - {"commands"})
    if unknown:
        raise ConfigError(f"Unknown configuration sections: {', '.join(unknown)}")

    kwargs = {name: _build_section(cls, name, data.get(name)) for name, cls in _SECTIONS.items()}
    commands = data.get("commands")
    if commands is not None and not isinstance(commands, dict):
        raise ConfigError("'commands' must map gesture names to actions")

    config = PilotConfig(commands=commands, **kwargs)
    if isinstance(config.pointer.viewport, list):
        config.pointer.viewport = tuple(config.pointer.viewport)
    return config.validate()


def load_config(path: Optional[str | Path] = None) -> PilotConfig:
    """Load a YAML config file; no path means built-in defaults."""
    if path is None:
        return PilotConfig().validate()

    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f) or {}
    except OSError as e:
        raise ConfigError(f"Cannot read config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    config = config_from_dict(data)
    logger.debug("Loaded config from %s", path)
    return config


def save_config(config: PilotConfig, path: str | Path):
    """Write a config back to YAML."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
