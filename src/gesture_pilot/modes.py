"""Two-mode interaction state machine (AIMING / COMMAND).

AIMING is the initial mode: the pointer follows the index-finger ray and no
actions fire. A rising edge to the enter gesture (OPEN_PALM) switches to
COMMAND and freezes the pointer where it was. In COMMAND, each rising edge
to a mapped gesture emits one action; a rising edge to the exit gesture
(POINTING_UP) returns to AIMING and releases the pointer.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Mapping, Optional

from gesture_pilot.actions import ActionEvent
from gesture_pilot.errors import ConfigError
from gesture_pilot.gestures import GestureLabel
from gesture_pilot.pointer import PointerState

logger = logging.getLogger("gesture_pilot.modes")

DEFAULT_ENTER_GESTURE = GestureLabel.OPEN_PALM
DEFAULT_EXIT_GESTURE = GestureLabel.POINTING_UP


class InteractionMode(Enum):
    AIMING = "AIMING"
    COMMAND = "COMMAND"


class Transition(Enum):
    NONE = "none"
    ENTERED_COMMAND = "entered_command"
    EXITED_COMMAND = "exited_command"


class CommandTable:
    """Complete mapping of every gesture label to an action (or None).

    The table must name every :class:`GestureLabel`; adding a label to the
    enum makes existing literal tables fail loudly at construction instead of
    silently ignoring the new gesture.
    """

    def __init__(
        self,
        mapping: Mapping[GestureLabel, Optional[ActionEvent]],
        exit_gesture: GestureLabel = DEFAULT_EXIT_GESTURE,
    ):
        missing = [label.value for label in GestureLabel if label not in mapping]
        if missing:
            raise ConfigError(f"Command table is missing gestures: {', '.join(missing)}")

        extra = [key for key in mapping if not isinstance(key, GestureLabel)]
        if extra:
            raise ConfigError(f"Command table keys must be gesture labels: {extra!r}")

        if mapping[exit_gesture] is not None:
            raise ConfigError(
                f"{exit_gesture.value} leaves command mode and cannot also map to an action"
            )

        self._actions: dict[GestureLabel, Optional[ActionEvent]] = dict(mapping)
        self.exit_gesture = exit_gesture

    @classmethod
    def from_partial(
        cls,
        mapping: Mapping[GestureLabel, Optional[ActionEvent]],
        exit_gesture: GestureLabel = DEFAULT_EXIT_GESTURE,
    ) -> CommandTable:
        """Build a table where unmapped gestures do nothing."""
        full: dict[GestureLabel, Optional[ActionEvent]] = {label: None for label in GestureLabel}
        full.update(mapping)
        return cls(full, exit_gesture=exit_gesture)

    @classmethod
    def from_config(
        cls,
        entries: Mapping[str, Optional[dict]],
        exit_gesture: GestureLabel = DEFAULT_EXIT_GESTURE,
    ) -> CommandTable:
        """Build a table from ``{"PEACE_SIGN": {"kind": ..., "payload": ...}}``."""
        mapping: dict[GestureLabel, Optional[ActionEvent]] = {}
        for name, entry in entries.items():
            try:
                label = GestureLabel.parse(name)
                mapping[label] = ActionEvent.from_dict(entry) if entry else None
            except (KeyError, ValueError, TypeError) as e:
                raise ConfigError(f"Invalid command for {name!r}: {e}") from e
        return cls.from_partial(mapping, exit_gesture=exit_gesture)

    @classmethod
    def with_defaults(cls, exit_gesture: GestureLabel = DEFAULT_EXIT_GESTURE) -> CommandTable:
        return cls({
            GestureLabel.UNKNOWN: None,
            GestureLabel.OPEN_PALM: None,
            GestureLabel.POINTING_UP: None,
            GestureLabel.PEACE_SIGN: ActionEvent.switch_slot(2, "TERMINAL 2"),
            GestureLabel.THREE_FINGERS: ActionEvent.switch_slot(3, "TERMINAL 3"),
            GestureLabel.FOUR_FINGERS: ActionEvent.switch_slot(4, "TERMINAL 4"),
            GestureLabel.THUMBS_UP: ActionEvent.click(),
            GestureLabel.CLOSED_FIST: ActionEvent.key("Return", "ENTER"),
            GestureLabel.ROCK_ON: ActionEvent.key("super+h", "VOICE INPUT"),
        }, exit_gesture=exit_gesture)

    def lookup(self, label: GestureLabel) -> Optional[ActionEvent]:
        return self._actions[label]

    def to_dict(self) -> dict:
        return {
            label.value: (action.to_dict() if action else None)
            for label, action in self._actions.items()
        }

    def __len__(self) -> int:
        return sum(1 for action in self._actions.values() if action is not None)


@dataclass(frozen=True)
class ModeState:
    mode: InteractionMode = InteractionMode.AIMING
    frozen_pointer: Optional[PointerState] = None
    last_label: GestureLabel = GestureLabel.UNKNOWN


@dataclass(frozen=True)
class ModeDecision:
    """What one confirmed label did to the interaction mode."""
    mode: InteractionMode
    transition: Transition = Transition.NONE
    action: Optional[ActionEvent] = None
    pending: Optional[str] = None  # label of the command the held gesture maps to


def step(
    state: ModeState,
    confirmed: GestureLabel,
    live_pointer: Optional[PointerState],
    commands: CommandTable,
    enter_gesture: GestureLabel = DEFAULT_ENTER_GESTURE,
    exit_gesture: GestureLabel = DEFAULT_EXIT_GESTURE,
) -> tuple[ModeState, ModeDecision]:
    """Advance the mode machine with this frame's confirmed gesture.

    Transitions and actions only happen on a rising edge: the frame where
    ``confirmed`` differs from the label seen on the previous call.
    """
    rising = confirmed != state.last_label
    state = replace(state, last_label=confirmed)

    if state.mode == InteractionMode.AIMING:
        if rising and confirmed == enter_gesture:
            state = replace(state, mode=InteractionMode.COMMAND, frozen_pointer=live_pointer)
            return state, ModeDecision(
                mode=InteractionMode.COMMAND,
                transition=Transition.ENTERED_COMMAND,
                pending="COMMAND MODE",
            )
        return state, ModeDecision(mode=InteractionMode.AIMING)

    if confirmed == exit_gesture:
        if rising:
            state = replace(state, mode=InteractionMode.AIMING, frozen_pointer=None)
            return state, ModeDecision(
                mode=InteractionMode.AIMING,
                transition=Transition.EXITED_COMMAND,
            )
        return state, ModeDecision(mode=InteractionMode.COMMAND, pending="EXIT COMMAND MODE")

    mapped = commands.lookup(confirmed)
    pending = mapped.label if mapped else None
    return state, ModeDecision(
        mode=InteractionMode.COMMAND,
        action=mapped if rising else None,
        pending=pending,
    )


def observe(state: ModeState, label: GestureLabel) -> ModeState:
    """Record a label for edge detection without acting on it."""
    return replace(state, last_label=label)


class ModeStateMachine:
    """Stateful wrapper around :func:`step`."""

    def __init__(
        self,
        commands: Optional[CommandTable] = None,
        enter_gesture: GestureLabel = DEFAULT_ENTER_GESTURE,
        exit_gesture: GestureLabel = DEFAULT_EXIT_GESTURE,
    ):
        if enter_gesture == exit_gesture:
            raise ConfigError("enter and exit gestures must differ")
        if GestureLabel.UNKNOWN in (enter_gesture, exit_gesture):
            raise ConfigError("UNKNOWN cannot enter or exit command mode")
        self.commands = commands if commands is not None else CommandTable.with_defaults()
        if self.commands.lookup(exit_gesture) is not None:
            raise ConfigError(f"{exit_gesture.value} cannot both exit and map to an action")
        self.enter_gesture = enter_gesture
        self.exit_gesture = exit_gesture
        self._state = ModeState()

    def update(
        self, confirmed: GestureLabel, live_pointer: Optional[PointerState] = None
    ) -> ModeDecision:
        previous = self._state.mode
        self._state, decision = step(
            self._state,
            confirmed,
            live_pointer,
            self.commands,
            enter_gesture=self.enter_gesture,
            exit_gesture=self.exit_gesture,
        )
        if decision.transition != Transition.NONE:
            logger.info("Mode %s -> %s (%s)", previous.value, decision.mode.value, confirmed.value)
        return decision

    def observe(self, label: GestureLabel):
        self._state = observe(self._state, label)

    @property
    def mode(self) -> InteractionMode:
        return self._state.mode

    @property
    def frozen_pointer(self) -> Optional[PointerState]:
        return self._state.frozen_pointer

    @property
    def state(self) -> ModeState:
        return self._state

    def reset(self):
        self._state = ModeState()
