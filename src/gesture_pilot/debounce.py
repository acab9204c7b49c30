"""Hold-time debouncing of the raw gesture label stream.

A raw label only becomes *confirmed* once the classifier has reported it
continuously for at least the hold threshold. Single-frame flicker (e.g.
THREE_FINGERS <-> FOUR_FINGERS while the ring finger is borderline) never
reaches the mode state machine.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Optional

from gesture_pilot.gestures import GestureLabel

DEFAULT_HOLD_THRESHOLD = 0.3  # seconds


@dataclass(frozen=True)
class DebounceState:
    raw_label: Optional[GestureLabel] = None
    raw_since: Optional[float] = None
    confirmed: GestureLabel = GestureLabel.UNKNOWN


def debounce(
    state: DebounceState,
    raw: GestureLabel,
    now: float,
    hold_threshold: float = DEFAULT_HOLD_THRESHOLD,
) -> tuple[DebounceState, GestureLabel]:
    """Advance the debouncer by one observation.

    A change of raw label restarts the hold timer and returns the previous
    confirmed label; a change is never confirmed on the frame it appears.

    Returns:
        (new_state, confirmed_label) tuple.
    """
    if raw != state.raw_label or state.raw_since is None:
        new_state = replace(state, raw_label=raw, raw_since=now)
        return new_state, new_state.confirmed

    if now - state.raw_since >= hold_threshold and state.confirmed != raw:
        state = replace(state, confirmed=raw)

    return state, state.confirmed


class HoldDebouncer:
    """Stateful wrapper around :func:`debounce`.

    Usage:
        debouncer = HoldDebouncer(hold_threshold=0.3)
        confirmed = debouncer.update(raw_label, time.monotonic())
    """

    def __init__(self, hold_threshold: float = DEFAULT_HOLD_THRESHOLD):
        if hold_threshold < 0:
            raise ValueError("hold_threshold must be >= 0")
        self.hold_threshold = hold_threshold
        self._state = DebounceState()

    def update(self, raw: GestureLabel, now: float) -> GestureLabel:
        self._state, confirmed = debounce(self._state, raw, now, self.hold_threshold)
        return confirmed

    @property
    def confirmed(self) -> GestureLabel:
        return self._state.confirmed

    @property
    def raw_label(self) -> Optional[GestureLabel]:
        return self._state.raw_label

    @property
    def state(self) -> DebounceState:
        return self._state

    def reset(self):
        self._state = DebounceState()
