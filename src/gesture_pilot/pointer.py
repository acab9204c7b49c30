"""Raycast pointer projection with precision damping."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from gesture_pilot.gestures import INDEX_TIP, WRIST, MalformedPoseError, as_pose

logger = logging.getLogger("gesture_pilot.pointer")

DEFAULT_RAYCAST_FACTOR = 2.5
DEFAULT_PRECISION_SLOWDOWN = 0.25


@dataclass(frozen=True)
class Viewport:
    """Screen area the pointer lives in, in pixels."""
    width: int
    height: int

    def __post_init__(self):
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"viewport must be positive, got {self.width}x{self.height}")


@dataclass(frozen=True)
class PointerState:
    """Screen-space pointer, always inside the viewport."""
    x: float
    y: float
    precision: bool = False

    def to_dict(self) -> dict:
        return {"x": round(self.x, 2), "y": round(self.y, 2), "precision": self.precision}


def _clamp(value: float, lo: float, hi: float) -> float:
    return max(lo, min(hi, value))


def to_screen(
    x: float, y: float, viewport: Viewport, mirror: bool = True
) -> tuple[float, float]:
    """Map normalized camera coordinates to clamped screen pixels.

    Pre: ``x``, ``y`` in camera-normalized units (0..1 spans the frame; values
    outside that range are allowed and get clamped).
    Post: ``0 <= px <= width`` and ``0 <= py <= height``. With ``mirror`` the
    horizontal axis is flipped so a front-facing camera behaves like a mirror.
    """
    nx = 1.0 - x if mirror else x
    px = _clamp(nx * viewport.width, 0.0, float(viewport.width))
    py = _clamp(y * viewport.height, 0.0, float(viewport.height))
    return px, py


@dataclass(frozen=True)
class ProjectorState:
    last: Optional[PointerState] = None


def project(
    state: ProjectorState,
    landmarks,
    precision: bool,
    viewport: Viewport,
    raycast_factor: float = DEFAULT_RAYCAST_FACTOR,
    precision_slowdown: float = DEFAULT_PRECISION_SLOWDOWN,
    mirror: bool = True,
) -> tuple[ProjectorState, Optional[PointerState]]:
    """Project the index-finger ray onto the screen.

    The wrist -> index tip vector is extended past the tip by
    ``raycast_factor`` so small hand motion covers the whole screen. With
    ``precision`` set, the pointer moves only ``precision_slowdown`` of the
    way from its previous position to the new target.

    Returns:
        (new_state, pointer). A malformed pose leaves the state untouched and
        returns the previous pointer (None if there is none).
    """
    try:
        pose = as_pose(landmarks)
    except MalformedPoseError as e:
        logger.debug("Skipping pointer update for malformed pose: %s", e)
        return state, state.last

    wrist = pose[WRIST]
    tip = pose[INDEX_TIP]
    ray_x = tip[0] + (tip[0] - wrist[0]) * raycast_factor
    ray_y = tip[1] + (tip[1] - wrist[1]) * raycast_factor
    target_x, target_y = to_screen(float(ray_x), float(ray_y), viewport, mirror=mirror)

    last = state.last
    if precision and last is not None:
        new_x = last.x + (target_x - last.x) * precision_slowdown
        new_y = last.y + (target_y - last.y) * precision_slowdown
    else:
        new_x, new_y = target_x, target_y

    pointer = PointerState(
        x=_clamp(new_x, 0.0, float(viewport.width)),
        y=_clamp(new_y, 0.0, float(viewport.height)),
        precision=precision,
    )
    return ProjectorState(last=pointer), pointer


class PointerProjector:
    """Keeps the last pointer position between frames for damping."""

    def __init__(
        self,
        viewport: Viewport,
        raycast_factor: float = DEFAULT_RAYCAST_FACTOR,
        precision_slowdown: float = DEFAULT_PRECISION_SLOWDOWN,
        mirror: bool = True,
    ):
        if raycast_factor < 0:
            raise ValueError("raycast_factor must be >= 0")
        if not 0 < precision_slowdown <= 1:
            raise ValueError("precision_slowdown must be in (0, 1]")
        self.viewport = viewport
        self.raycast_factor = raycast_factor
        self.precision_slowdown = precision_slowdown
        self.mirror = mirror
        self._state = ProjectorState()

    def update(self, landmarks, precision: bool = False) -> Optional[PointerState]:
        self._state, pointer = project(
            self._state,
            landmarks,
            precision,
            self.viewport,
            raycast_factor=self.raycast_factor,
            precision_slowdown=self.precision_slowdown,
            mirror=self.mirror,
        )
        return pointer

    @property
    def last(self) -> Optional[PointerState]:
        return self._state.last

    def reset(self):
        """Forget the last position; the next update jumps straight to target."""
        self._state = ProjectorState()
