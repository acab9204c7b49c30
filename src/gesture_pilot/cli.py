"""GesturePilot CLI.

Usage:
    gesture-pilot run      - Camera loop with an optional overlay window
    gesture-pilot serve    - Start the HTTP/WebSocket server
    gesture-pilot replay   - Run a recording through the pipeline (dry run)
    gesture-pilot record   - Record landmark frames from the camera
    gesture-pilot config   - Validate and print the effective configuration
"""

from __future__ import annotations

import logging
import sys
import time
from pathlib import Path
from typing import Optional

import typer
import yaml

from gesture_pilot.config import PilotConfig, load_config, save_config
from gesture_pilot.errors import ConfigError

app = typer.Typer(
    name="gesture-pilot",
    help="🖐  Hands-free desktop control from webcam hand landmarks.",
    add_completion=False,
)

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s | %(message)s"

ConfigOption = typer.Option(None, "--config", "-c", help="Path to pilot YAML config")


def configure_logging(level: str = "INFO"):
    """Console logging for every ``gesture_pilot.*`` logger."""
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root = logging.getLogger("gesture_pilot")
    root.handlers[:] = [handler]
    root.setLevel(level.upper())
    root.propagate = False


def _load(path: Optional[str], log_level: Optional[str] = None) -> PilotConfig:
    try:
        config = load_config(path)
    except ConfigError as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(2)
    configure_logging(log_level or config.logging.level)
    return config


def _open_camera(camera: int):
    import cv2

    cap = cv2.VideoCapture(camera)
    if not cap.isOpened():
        typer.echo(f"❌ Could not open camera {camera}", err=True)
        raise typer.Exit(1)
    return cap


@app.command()
def run(
    config_path: Optional[str] = ConfigOption,
    camera: int = typer.Option(0, help="Camera device index"),
    show: bool = typer.Option(True, "--show/--no-show", help="Show the OpenCV overlay window"),
    log_level: Optional[str] = typer.Option(None, help="Override logging.level"),
):
    """Run the camera loop and drive the desktop."""
    import cv2
    from gesture_pilot.broadcast import peer_listener
    from gesture_pilot.detector import PoseSource
    from gesture_pilot.pipeline import IntentPipeline

    config = _load(config_path, log_level)
    pipeline = IntentPipeline.from_config(config)
    pipeline.on_mode_change(lambda old, new: typer.echo(f"   🔀 {old.value} -> {new.value}"))
    pipeline.on_action(lambda o: typer.echo(
        f"   ⚡ {o.event.label} ({'ok' if o.ok else 'failed: ' + o.result.detail})"
    ))

    cap = _open_camera(camera)
    source = PoseSource(flip_handedness=config.recognition.flip_handedness)
    typer.echo(f"🎥 Running on camera {camera} ({config.automation.backend} automation)")
    listener = peer_listener(config.broadcast, pipeline.automation)
    if listener is not None:
        listener.start()
        typer.echo(f"👂 Replaying peer actions from port {config.broadcast.port}")
    typer.echo("   Press q in the window or Ctrl+C to stop")

    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                continue

            frame_rgb = cv2.cvtColor(frame, cv2.COLOR_BGR2RGB)
            snapshot = pipeline.process(source.read(frame_rgb), time.monotonic())

            if show:
                _draw_overlay(frame, snapshot, config)
                cv2.imshow("gesture-pilot", frame)
                if cv2.waitKey(1) & 0xFF == ord("q"):
                    break
    except KeyboardInterrupt:
        pass
    finally:
        cap.release()
        source.close()
        if listener is not None:
            listener.stop()
        if show:
            cv2.destroyAllWindows()

    stats = pipeline.stats
    typer.echo(f"\n✅ {stats.total_frames} frames, {stats.total_dispatches} actions dispatched")


def _draw_overlay(frame, snapshot, config: PilotConfig):
    import cv2

    h, w = frame.shape[:2]
    color = (0, 200, 0) if snapshot.mode.value == "AIMING" else (0, 140, 255)
    cv2.putText(frame, f"{snapshot.mode.value}  {snapshot.gesture.value}", (10, 30),
                cv2.FONT_HERSHEY_SIMPLEX, 0.8, color, 2)
    if snapshot.pending:
        cv2.putText(frame, snapshot.pending, (10, 60), cv2.FONT_HERSHEY_SIMPLEX, 0.6, color, 1)
    if snapshot.feedback:
        cv2.putText(frame, snapshot.feedback.event.label, (10, h - 20),
                    cv2.FONT_HERSHEY_SIMPLEX, 0.7, (255, 255, 255), 2)
    if not snapshot.face_present:
        cv2.putText(frame, "NO FACE", (w - 140, 30), cv2.FONT_HERSHEY_SIMPLEX, 0.7, (0, 0, 255), 2)

    if snapshot.pointer is not None:
        vw, vh = config.pointer.viewport
        px = int(snapshot.pointer.x / vw * w)
        py = int(snapshot.pointer.y / vh * h)
        radius = 6 if snapshot.pointer.precision else 12
        cv2.circle(frame, (px, py), radius, color, 2)


@app.command()
def serve(
    config_path: Optional[str] = ConfigOption,
    host: str = typer.Option("0.0.0.0", help="Bind address"),
    port: int = typer.Option(8765, help="Port"),
    camera: int = typer.Option(0, help="Camera device index"),
    capture: bool = typer.Option(True, "--capture/--no-capture", help="Run the camera loop"),
    log_level: Optional[str] = typer.Option(None, help="Override logging.level"),
):
    """Start the status API and WebSocket stream."""
    import uvicorn
    from gesture_pilot.server import app as fastapi_app, state

    config = _load(config_path, log_level)
    state.configure(config)
    state.camera = camera
    state.capture_enabled = capture

    typer.echo(f"🚀 Starting GesturePilot server on {host}:{port}")
    uvicorn.run(fastapi_app, host=host, port=port, log_level=config.logging.level.lower())


@app.command()
def replay(
    recording: str = typer.Argument(..., help="Path to recording file"),
    config_path: Optional[str] = ConfigOption,
    speed: float = typer.Option(1.0, help="Playback speed multiplier"),
    realtime: bool = typer.Option(False, help="Play at original timing"),
    log_level: Optional[str] = typer.Option(None, help="Override logging.level"),
):
    """Replay a recording through the pipeline with dry-run automation."""
    from gesture_pilot.automation import DryRunAutomation
    from gesture_pilot.pipeline import IntentPipeline
    from gesture_pilot.recorder import FramePlayer

    config = _load(config_path, log_level)

    path = Path(recording)
    if not path.exists():
        typer.echo(f"❌ Recording not found: {recording}", err=True)
        raise typer.Exit(1)
    try:
        player = FramePlayer.load(path)
    except ValueError as e:
        typer.echo(f"❌ Cannot read recording: {e}", err=True)
        raise typer.Exit(1)

    typer.echo(f"▶️  Replaying {path.name} ({player.frame_count} frames, {player.duration:.1f}s)")

    automation = DryRunAutomation()
    pipeline = IntentPipeline.from_config(config, automation=automation)
    clock = {"t": 0.0}
    pipeline.on_mode_change(lambda old, new: typer.echo(
        f"   [{clock['t']:7.3f}s] 🔀 {old.value} -> {new.value}"
    ))
    pipeline.on_action(lambda o: typer.echo(
        f"   [{o.timestamp:7.3f}s] ⚡ {o.event.label} ({o.event.kind.value})"
    ))

    frames = player.play_realtime(speed=speed) if realtime else player.play()
    for rec in frames:
        clock["t"] = rec.timestamp
        pipeline.process(rec.frame, rec.timestamp)

    typer.echo(f"\n✅ Replay complete. {len(automation.executed)} actions dispatched.")


@app.command()
def record(
    output: str = typer.Option("recording.json", "-o", help="Output file path"),
    duration: float = typer.Option(0, help="Recording duration in seconds (0 = until Ctrl+C)"),
    camera: int = typer.Option(0, help="Camera device index"),
    flip_handedness: bool = typer.Option(False, help="Swap left/right hand labels"),
):
    """Record face/hand landmark frames from the camera."""
    import cv2
    from gesture_pilot.detector import PoseSource
    from gesture_pilot.recorder import FrameRecorder

    configure_logging("INFO")
    cap = _open_camera(camera)
    source = PoseSource(flip_handedness=flip_handedness)
    recorder = FrameRecorder()

    typer.echo(f"🎥 Recording from camera {camera}...")
    typer.echo("   Press Ctrl+C to stop")
    recorder.start()
    start = time.monotonic()

    try:
        while True:
            ret, frame = cap.read()
            if not ret:
                continue

            landmarks = source.read(cv2.cvtColor(frame, cv2.COLOR_BGR2RGB))
            recorder.add_frame(landmarks)

            if recorder.frame_count % 30 == 0:
                elapsed = time.monotonic() - start
                typer.echo(
                    f"\r   Frames: {recorder.frame_count} | Duration: {elapsed:.1f}s"
                    f" | Hands: {len(landmarks.hands)}",
                    nl=False,
                )

            if duration > 0 and (time.monotonic() - start) >= duration:
                break
    except KeyboardInterrupt:
        pass
    finally:
        recorder.stop()
        cap.release()
        source.close()

    typer.echo(f"\n\n📼 Recorded {recorder.frame_count} frames ({recorder.duration:.1f}s)")
    recorder.save(output)
    typer.echo(f"💾 Saved to: {output}")


@app.command("config")
def show_config(
    config_path: Optional[str] = ConfigOption,
    output: Optional[str] = typer.Option(None, "-o", help="Write the effective config here"),
):
    """Validate a config file and print the effective settings."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        typer.echo(f"❌ Invalid configuration: {e}", err=True)
        raise typer.Exit(2)

    if output:
        save_config(config, output)
        typer.echo(f"💾 Saved to: {output}")
        return

    typer.echo(yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False))


def main():
    app()


if __name__ == "__main__":
    main()
