"""Action descriptors handed from the dispatcher to the automation layer.

Each action kind carries a fixed payload shape:

    SWITCH_SLOT  positive int       switch to terminal/workspace slot N
    CLICK        None or (x, y)     click, optionally at a screen position
    KEY          str                key combo, e.g. "ctrl+tab"
    LAUNCH       str                application id from the app table
    SCREENSHOT   None

Config files may also write ``{kind: throw_window, payload: left}``, which
expands to the KEY combo that moves a window to the next monitor.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Optional


class ActionKind(Enum):
    SWITCH_SLOT = "switch_slot"
    CLICK = "click"
    KEY = "key"
    LAUNCH = "launch"
    SCREENSHOT = "screenshot"


# Kinds that synthesize raw input at the frozen pointer rather than acting on
# a whole application; the dispatcher can give them their own cooldown.
INPUT_KINDS = frozenset({ActionKind.CLICK, ActionKind.KEY})

# xdotool key names for the window-throw directions
THROW_KEYS = {"left": "Left", "right": "Right", "up": "Up", "down": "Down"}


def _check_payload(kind: ActionKind, payload: Any):
    if kind == ActionKind.SWITCH_SLOT:
        if isinstance(payload, bool) or not isinstance(payload, int) or payload < 1:
            raise ValueError(f"switch_slot needs a positive slot number, got {payload!r}")
    elif kind in (ActionKind.KEY, ActionKind.LAUNCH):
        if not isinstance(payload, str) or not payload.strip():
            raise ValueError(f"{kind.value} needs a non-empty string, got {payload!r}")
    elif kind == ActionKind.CLICK:
        if payload is not None and (
            not isinstance(payload, tuple) or len(payload) != 2
        ):
            raise ValueError(f"click payload must be None or (x, y), got {payload!r}")
    elif kind == ActionKind.SCREENSHOT:
        if payload is not None:
            raise ValueError("screenshot takes no payload")


def _default_label(kind: ActionKind, payload: Any) -> str:
    if kind == ActionKind.SWITCH_SLOT:
        return f"SLOT {payload}"
    if kind == ActionKind.KEY:
        return payload.upper()
    if kind == ActionKind.LAUNCH:
        return f"LAUNCH {payload}"
    return kind.name


@dataclass(frozen=True)
class ActionEvent:
    """One unit of dispatched intent."""
    kind: ActionKind
    payload: Any = None
    label: str = ""

    def __post_init__(self):
        _check_payload(self.kind, self.payload)

    @classmethod
    def switch_slot(cls, slot: int, label: str = "") -> ActionEvent:
        return cls(ActionKind.SWITCH_SLOT, slot, label or f"SLOT {slot}")

    @classmethod
    def click(cls, label: str = "CLICK") -> ActionEvent:
        return cls(ActionKind.CLICK, None, label)

    @classmethod
    def key(cls, combo: str, label: str = "") -> ActionEvent:
        return cls(ActionKind.KEY, combo, label or combo.upper())

    @classmethod
    def throw_window(cls, direction: str, label: str = "") -> ActionEvent:
        """Move the focused window to the neighbouring monitor."""
        key = THROW_KEYS.get(direction.lower())
        if key is None:
            raise ValueError(f"direction must be one of {sorted(THROW_KEYS)}, got {direction!r}")
        return cls.key(f"super+shift+{key}", label or f"THROW {direction.upper()}")

    @classmethod
    def launch(cls, app: str, label: str = "") -> ActionEvent:
        return cls(ActionKind.LAUNCH, app, label or f"LAUNCH {app}")

    @classmethod
    def screenshot(cls, label: str = "SCREENSHOT") -> ActionEvent:
        return cls(ActionKind.SCREENSHOT, None, label)

    def at(self, x: float, y: float) -> ActionEvent:
        """Return a click bound to a screen position (other kinds unchanged)."""
        if self.kind != ActionKind.CLICK:
            return self
        return replace(self, payload=(float(x), float(y)))

    @property
    def is_input(self) -> bool:
        return self.kind in INPUT_KINDS

    def to_dict(self) -> dict:
        payload = list(self.payload) if isinstance(self.payload, tuple) else self.payload
        return {"kind": self.kind.value, "payload": payload, "label": self.label}

    @classmethod
    def from_dict(cls, data: dict) -> ActionEvent:
        if str(data["kind"]).lower() == "throw_window":
            direction = data.get("payload")
            if not isinstance(direction, str):
                raise ValueError(f"throw_window needs a direction, got {direction!r}")
            return cls.throw_window(direction, data.get("label") or "")
        kind = ActionKind(str(data["kind"]).lower())
        payload = data.get("payload")
        if isinstance(payload, list):
            payload = tuple(payload)
        _check_payload(kind, payload)
        label = data.get("label") or _default_label(kind, payload)
        return cls(kind, payload, label)


@dataclass(frozen=True)
class AutomationResult:
    """Outcome reported by the automation layer for one action."""
    ok: bool
    detail: str = ""

    @classmethod
    def success(cls, detail: str = "") -> AutomationResult:
        return cls(True, detail)

    @classmethod
    def failure(cls, detail: str) -> AutomationResult:
        return cls(False, detail)


@dataclass(frozen=True)
class DispatchOutcome:
    """Result of one dispatch attempt; truthy when the action was handed off."""
    dispatched: bool
    event: ActionEvent
    timestamp: float
    result: Optional[AutomationResult] = None
    reason: str = ""

    def __bool__(self) -> bool:
        return self.dispatched

    @property
    def ok(self) -> bool:
        return self.dispatched and self.result is not None and self.result.ok

    def to_dict(self) -> dict:
        return {
            "dispatched": self.dispatched,
            "ok": self.ok,
            "action": self.event.to_dict(),
            "detail": self.result.detail if self.result else self.reason,
            "timestamp": self.timestamp,
        }
