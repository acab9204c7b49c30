"""Rate-limited handoff of actions to the automation backend."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from gesture_pilot.actions import ActionEvent, AutomationResult, DispatchOutcome
from gesture_pilot.automation import Automation

if TYPE_CHECKING:
    from gesture_pilot.broadcast import ActionBroadcaster

logger = logging.getLogger("gesture_pilot.dispatch")

DEFAULT_COOLDOWN = 2.0  # seconds


@dataclass(frozen=True)
class DispatchState:
    last_dispatch: Optional[float] = None


def acquire(state: DispatchState, now: float, cooldown: float) -> tuple[DispatchState, bool]:
    """Cooldown gate: allowed once ``cooldown`` seconds passed since the last grant."""
    if state.last_dispatch is not None and now - state.last_dispatch < cooldown:
        return state, False
    return DispatchState(last_dispatch=now), True


class ActionDispatcher:
    """Single-flight cooldown gate in front of the automation backend.

    CLICK and KEY actions use ``input_cooldown`` (falls back to
    ``cooldown``); every other kind uses ``cooldown``. Both share one
    last-dispatch timestamp. Automation failures come back inside the
    returned :class:`DispatchOutcome` and are never retried.
    """

    def __init__(
        self,
        automation: Automation,
        cooldown: float = DEFAULT_COOLDOWN,
        input_cooldown: Optional[float] = None,
        broadcaster: Optional[ActionBroadcaster] = None,
    ):
        if cooldown < 0:
            raise ValueError("cooldown must be >= 0")
        if input_cooldown is not None and input_cooldown < 0:
            raise ValueError("input_cooldown must be >= 0")
        self.automation = automation
        self.cooldown = cooldown
        self.input_cooldown = input_cooldown
        self.broadcaster = broadcaster
        self._state = DispatchState()

    def cooldown_for(self, event: ActionEvent) -> float:
        if event.is_input and self.input_cooldown is not None:
            return self.input_cooldown
        return self.cooldown

    def dispatch(self, event: ActionEvent, now: float) -> DispatchOutcome:
        self._state, allowed = acquire(self._state, now, self.cooldown_for(event))
        if not allowed:
            logger.debug("Cooldown active, dropping %s", event.label)
            return DispatchOutcome(
                dispatched=False, event=event, timestamp=now, reason="cooldown"
            )

        try:
            result = self.automation.execute(event)
        except Exception as e:
            logger.warning("Automation raised for %s: %s", event.label, e)
            result = AutomationResult.failure(str(e))

        if result.ok:
            logger.info("Dispatched %s", event.label)
            self._mirror(event, now)
        else:
            logger.warning("Action %s failed: %s", event.label, result.detail)

        return DispatchOutcome(dispatched=True, event=event, timestamp=now, result=result)

    def _mirror(self, event: ActionEvent, now: float):
        if self.broadcaster is None:
            return
        try:
            self.broadcaster.send(event, now)
        except Exception as e:
            logger.warning("Broadcast error: %s", e)

    @property
    def last_dispatch(self) -> Optional[float]:
        return self._state.last_dispatch

    def reset(self):
        self._state = DispatchState()
