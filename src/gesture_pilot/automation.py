"""OS automation backends that execute dispatched actions.

Backends are fire-and-forget: they start the OS call and report whether it
could be started, without waiting for it to finish.

- ``DryRunAutomation`` logs and records actions without touching the OS.
- ``XdotoolAutomation`` drives X11 through ``xdotool`` subprocesses and
  launches applications from a configured command table.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from typing import TYPE_CHECKING, Optional, Protocol

from gesture_pilot.actions import ActionEvent, ActionKind, AutomationResult

if TYPE_CHECKING:
    from gesture_pilot.config import AutomationConfig

logger = logging.getLogger("gesture_pilot.automation")

DEFAULT_APPS = {
    "chrome": "google-chrome",
    "code": "code",
    "slack": "slack",
    "explorer": "xdg-open .",
    "discord": "discord",
    "terminal": "x-terminal-emulator",
    "spotify": "spotify",
    "notepad": "gedit",
}


class Automation(Protocol):
    """What the dispatcher needs from an automation backend."""

    def execute(self, event: ActionEvent) -> AutomationResult:
        ...

    def move_pointer(self, x: float, y: float) -> None:
        ...


class DryRunAutomation:
    """Records actions instead of executing them."""

    def __init__(self):
        self.executed: list[ActionEvent] = []
        self.pointer: Optional[tuple[float, float]] = None

    def execute(self, event: ActionEvent) -> AutomationResult:
        self.executed.append(event)
        logger.info("Dry run: %s %s", event.kind.value, event.label)
        return AutomationResult.success(f"dry run: {event.label}")

    def move_pointer(self, x: float, y: float) -> None:
        self.pointer = (x, y)


class XdotoolAutomation:
    """Executes actions through ``xdotool`` and plain application commands."""

    def __init__(
        self,
        slot_key_template: str = "alt+{n}",
        screenshot_key: str = "Print",
        apps: Optional[dict[str, str]] = None,
        binary: str = "xdotool",
    ):
        self.slot_key_template = slot_key_template
        self.screenshot_key = screenshot_key
        self.apps = {k.lower(): v for k, v in (DEFAULT_APPS if apps is None else apps).items()}
        self.binary = binary

    def execute(self, event: ActionEvent) -> AutomationResult:
        if event.kind == ActionKind.SWITCH_SLOT:
            return self._spawn([self.binary, "key", self.slot_key_template.format(n=event.payload)])
        if event.kind == ActionKind.KEY:
            return self._spawn([self.binary, "key", event.payload])
        if event.kind == ActionKind.CLICK:
            if event.payload is None:
                return self._spawn([self.binary, "click", "1"])
            x, y = event.payload
            return self._spawn([
                self.binary, "mousemove", str(int(x)), str(int(y)), "click", "1",
            ])
        if event.kind == ActionKind.SCREENSHOT:
            return self._spawn([self.binary, "key", self.screenshot_key])
        if event.kind == ActionKind.LAUNCH:
            return self._launch(event.payload)
        return AutomationResult.failure(f"Unsupported action: {event.kind.value}")

    def move_pointer(self, x: float, y: float) -> None:
        self._spawn([self.binary, "mousemove", str(int(x)), str(int(y))])

    def _launch(self, app: str) -> AutomationResult:
        command = self.apps.get(app.lower())
        if not command:
            logger.warning("Unknown app: %s", app)
            return AutomationResult.failure(f"Unknown app: {app}")
        result = self._spawn(shlex.split(command))
        if result.ok:
            logger.info("Launched %s", app)
        return result

    def _spawn(self, argv: list[str]) -> AutomationResult:
        try:
            subprocess.Popen(
                argv,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            logger.warning("Failed to run %s: %s", argv[0], e)
            return AutomationResult.failure(f"{argv[0]}: {e}")
        logger.debug("Spawned: %s", " ".join(argv))
        return AutomationResult.success(" ".join(argv))


def build_automation(config: AutomationConfig) -> Automation:
    """Create the backend named by ``config.backend``."""
    if config.backend == "xdotool":
        return XdotoolAutomation(
            slot_key_template=config.slot_key_template,
            screenshot_key=config.screenshot_key,
            apps=config.apps,
        )
    return DryRunAutomation()
