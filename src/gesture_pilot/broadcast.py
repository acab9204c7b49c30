"""Mirror dispatched actions to peer machines over OSC/UDP.

Every message goes to ``/gesture_pilot/action`` with the arguments
``[source, kind, payload_json, label, timestamp]``. Peers run a
``BroadcastListener`` and ignore messages carrying their own source id.
Delivery is best effort: send failures are logged and dropped.
"""

from __future__ import annotations

import json
import logging
import socket
import threading
from typing import TYPE_CHECKING, Callable, Iterable, Optional

from pythonosc.dispatcher import Dispatcher
from pythonosc.osc_server import ThreadingOSCUDPServer
from pythonosc.udp_client import SimpleUDPClient

from gesture_pilot.actions import ActionEvent, ActionKind

if TYPE_CHECKING:
    from gesture_pilot.automation import Automation
    from gesture_pilot.config import BroadcastConfig

logger = logging.getLogger("gesture_pilot.broadcast")

OSC_ADDRESS = "/gesture_pilot/action"
DEFAULT_PORT = 41234


def encode_action(event: ActionEvent, source: str, timestamp: float) -> list:
    data = event.to_dict()
    return [source, data["kind"], json.dumps(data["payload"]), data["label"], float(timestamp)]


def decode_action(args: Iterable) -> tuple[str, ActionEvent, float]:
    """Inverse of :func:`encode_action`.

    Raises:
        ValueError: malformed argument list or invalid action.
    """
    args = list(args)
    if len(args) != 5:
        raise ValueError(f"expected 5 OSC arguments, got {len(args)}")
    source, kind, payload_json, label, timestamp = args
    event = ActionEvent.from_dict({
        "kind": kind,
        "payload": json.loads(payload_json),
        "label": label,
    })
    return str(source), event, float(timestamp)


class ActionBroadcaster:
    """Sends a configured subset of action kinds to the local network."""

    def __init__(
        self,
        host: str = "255.255.255.255",
        port: int = DEFAULT_PORT,
        kinds: Optional[Iterable[ActionKind]] = None,
        source: Optional[str] = None,
    ):
        self.host = host
        self.port = port
        self.kinds = frozenset(kinds) if kinds is not None else frozenset(ActionKind)
        self.source = source or socket.gethostname()
        self._client = SimpleUDPClient(host, port, allow_broadcast=True)

    def mirrors(self, event: ActionEvent) -> bool:
        return event.kind in self.kinds

    def send(self, event: ActionEvent, timestamp: float) -> bool:
        """Broadcast one event. Returns False when skipped or the send failed."""
        if not self.mirrors(event):
            return False
        try:
            self._client.send_message(OSC_ADDRESS, encode_action(event, self.source, timestamp))
        except OSError as e:
            logger.warning("Broadcast of %s failed: %s", event.kind.value, e)
            return False
        logger.debug("Broadcasted %s to %s:%d", event.label, self.host, self.port)
        return True


class BroadcastListener:
    """Receives actions mirrored by peers and hands them to a callback.

    Usage:
        listener = BroadcastListener(on_action=lambda src, ev: automation.execute(ev))
        listener.start()
        ...
        listener.stop()
    """

    def __init__(
        self,
        on_action: Callable[[str, ActionEvent], None],
        host: str = "0.0.0.0",
        port: int = DEFAULT_PORT,
        source: Optional[str] = None,
    ):
        self.on_action = on_action
        self.host = host
        self.port = port
        self.source = source or socket.gethostname()
        self._dispatcher = Dispatcher()
        self._dispatcher.map(OSC_ADDRESS, self._handle)
        self._server: Optional[ThreadingOSCUDPServer] = None
        self._thread: Optional[threading.Thread] = None

    def _handle(self, address: str, *args):
        try:
            source, event, _ = decode_action(args)
        except (ValueError, KeyError, TypeError) as e:
            logger.error("Invalid network message: %s", e)
            return
        if source == self.source:
            return
        logger.info("Received %s from %s", event.label, source)
        try:
            self.on_action(source, event)
        except Exception as e:
            logger.error("Broadcast handler error: %s", e)

    def start(self):
        if self._server is not None:
            return
        self._server = ThreadingOSCUDPServer((self.host, self.port), self._dispatcher)
        self._thread = threading.Thread(
            target=self._server.serve_forever, name="broadcast-listener", daemon=True
        )
        self._thread.start()
        logger.info("Listening for peer actions on %s:%d", self.host, self.port)

    def stop(self):
        if self._server is None:
            return
        self._server.shutdown()
        self._server.server_close()
        self._server = None
        self._thread = None


def peer_listener(config: BroadcastConfig, automation: Automation) -> Optional[BroadcastListener]:
    """Listener that replays peer actions on ``automation``; None unless ``listen`` is set.

    The listener is returned unstarted. Peer actions go straight to the
    automation backend, so they are never re-broadcast or rate limited here.
    """
    if not config.listen:
        return None

    def execute(source: str, event: ActionEvent):
        if event.kind == ActionKind.CLICK:
            # Peer screen coordinates do not apply here
            event = ActionEvent.click(event.label)
        result = automation.execute(event)
        if not result.ok:
            logger.warning("Peer action %s from %s failed: %s", event.label, source, result.detail)

    return BroadcastListener(on_action=execute, port=config.port)
