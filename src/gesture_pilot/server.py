"""FastAPI service: camera loop, status API and live WebSocket stream.

Captures from the server's webcam, runs every frame through the intent
pipeline and pushes snapshots and dispatched actions to WebSocket clients.

Endpoints:
    GET  /api/status    pipeline snapshot, fps, client count
    GET  /api/config    effective configuration
    GET  /api/commands  gesture -> action table and mode gestures
    GET  /metrics       Prometheus text exposition
    WS   /ws            {"type": "frame", ...} and {"type": "action", ...}

Usage:
    gesture-pilot serve --config pilot.yml
    # or
    uvicorn gesture_pilot.server:app --host 0.0.0.0 --port 8765
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import PlainTextResponse

try:
    import cv2
except ImportError:
    cv2 = None

from gesture_pilot import __version__
from gesture_pilot.actions import DispatchOutcome
from gesture_pilot.broadcast import peer_listener
from gesture_pilot.config import PilotConfig
from gesture_pilot.metrics import MetricsCollector
from gesture_pilot.pipeline import IntentPipeline

logger = logging.getLogger("gesture_pilot.server")

app = FastAPI(title="GesturePilot", version=__version__)


class ServerState:
    def __init__(self):
        self.clients: set[WebSocket] = set()
        self.metrics = MetricsCollector()
        self.config = PilotConfig()
        self.pipeline: IntentPipeline = self._build_pipeline(self.config)
        self.outbox: list[dict] = []
        self.capture: Optional[object] = None
        self.capture_enabled = True
        self.camera = 0
        self.running = False
        self.listener = None

    def configure(self, config: PilotConfig, automation=None):
        """Swap in a new config; the pipeline restarts from AIMING."""
        self.config = config
        self.pipeline = self._build_pipeline(config, automation)

    def _build_pipeline(self, config: PilotConfig, automation=None) -> IntentPipeline:
        pipeline = IntentPipeline.from_config(config, automation=automation, metrics=self.metrics)
        pipeline.on_action(self._queue_action)
        return pipeline

    def _queue_action(self, outcome: DispatchOutcome):
        self.outbox.append({"type": "action", **outcome.to_dict()})


state = ServerState()


# --- API endpoints ---

@app.get("/api/status")
async def api_status():
    stats = state.pipeline.stats
    return {
        "running": state.running,
        "clients": len(state.clients),
        "fps": round(stats.fps, 1),
        "latency_ms": round(stats.avg_latency_ms, 2),
        "frames": stats.total_frames,
        "dispatches": stats.total_dispatches,
        "snapshot": state.pipeline.snapshot.to_dict(),
        "stages": stats.stage_summary,
    }


@app.get("/api/config")
async def api_config():
    return state.config.to_dict()


@app.get("/api/commands")
async def api_commands():
    modes = state.pipeline.modes
    return {
        "enter_gesture": modes.enter_gesture.value,
        "exit_gesture": modes.exit_gesture.value,
        "commands": modes.commands.to_dict(),
    }


@app.get("/metrics")
async def metrics():
    state.metrics.set_connections(len(state.clients))
    return PlainTextResponse(
        state.metrics.render(),
        media_type="text/plain; version=0.0.4; charset=utf-8",
    )


# --- WebSocket ---

@app.websocket("/ws")
async def websocket_endpoint(ws: WebSocket):
    await ws.accept()
    state.clients.add(ws)
    logger.info("Client connected (%d total)", len(state.clients))

    try:
        await ws.send_json({
            "type": "connected",
            "snapshot": state.pipeline.snapshot.to_dict(),
        })

        while True:
            try:
                msg = await asyncio.wait_for(ws.receive_text(), timeout=30)
                data = json.loads(msg)
                if data.get("type") == "ping":
                    await ws.send_json({"type": "pong", "server_time": time.time()})
                elif data.get("type") == "get_status":
                    await ws.send_json({"type": "frame", **state.pipeline.snapshot.to_dict()})
            except asyncio.TimeoutError:
                await ws.send_json({"type": "ping"})
    except WebSocketDisconnect:
        pass
    except Exception as e:
        logger.debug("WebSocket error: %s", e)
    finally:
        state.clients.discard(ws)
        logger.info("Client disconnected (%d total)", len(state.clients))


async def broadcast(message: dict):
    """Send message to all clients, dropping the ones that fail."""
    if not state.clients:
        return
    dead = set()
    payload = json.dumps(message)
    for ws in state.clients:
        try:
            await ws.send_text(payload)
        except Exception:
            dead.add(ws)
    state.clients -= dead


async def flush_outbox():
    messages, state.outbox = state.outbox, []
    for message in messages:
        await broadcast(message)


# --- Camera capture loop ---

async def capture_loop():
    """Capture frames, run the pipeline and stream results."""
    if cv2 is None:
        logger.error("opencv-python required for camera capture")
        return

    from gesture_pilot.detector import PoseSource

    logger.info("Starting camera capture on device %d", state.camera)
    state.capture = cv2.VideoCapture(state.camera)
    if not state.capture.isOpened():
        logger.error("Could not open camera %d", state.camera)
        state.capture.release()
        state.capture = None
        return

    source = PoseSource(flip_handedness=state.config.recognition.flip_handedness)
    state.running = True

    try:
        while state.running:
            ret, frame = state.capture.read()
            if not ret:
                await asyncio.sleep(0.01)
                continue

            frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            landmarks = source.read(frame_rgb)
            snapshot = state.pipeline.process(landmarks, time.monotonic())

            await broadcast({"type": "frame", **snapshot.to_dict()})
            await flush_outbox()
            await asyncio.sleep(0.001)
    finally:
        state.running = False
        state.capture.release()
        source.close()
        logger.info("Capture loop stopped")


@app.on_event("startup")
async def startup():
    state.listener = peer_listener(state.config.broadcast, state.pipeline.automation)
    if state.listener is not None:
        state.listener.start()
    if state.capture_enabled:
        asyncio.create_task(capture_loop())


@app.on_event("shutdown")
async def shutdown():
    state.running = False
    if state.listener is not None:
        state.listener.stop()
        state.listener = None
